"""Tests for the subscriber payload adapter and the Rule.io client."""
from datetime import date, datetime

import pytest
import requests

from workshop_sync.core.config import Settings
from workshop_sync.core.errors import ConfigurationError
from workshop_sync.core.models import Order, Party, Vehicle
from workshop_sync.export.rule_io import RuleIoClient
from workshop_sync.export.subscribers import (
    contactable_orders,
    order_to_subscriber,
    orders_to_subscriber_request,
)
from workshop_sync.processing.normalizers import derive_party_fields


def _order(environment="NIE2V", **overrides) -> Order:
    customer = derive_party_fields(
        Party(
            number=1,
            name="Andersson, Erik",
            postal_address="945 33 ROSVIK",
            org_number="850101-1234",
            tel2="070-383 35 67",
            email="erik@example.com",
        ),
        today=date(2024, 6, 1),
    )
    values = dict(
        order_number=1001,
        source_environment=environment,
        order_date=datetime(2024, 5, 2, 10, 0),
        registration_plate="ABC123",
        total_incl_vat=1250.0,
        odometer=12345,
        created_at=datetime(2024, 5, 2, 9, 0),
        customer=customer,
        vehicle=Vehicle("ABC123", make="Volvo", model="V70", model_year=2015, category="Personbil"),
        categories=["Bromsar", "AC"],
    )
    values.update(overrides)
    return Order(**values)


def _fields(subscriber):
    return {field.key: (field.value, field.type) for field in subscriber.fields}


def test_order_to_subscriber_maps_every_field():
    request = orders_to_subscriber_request([_order()])
    subscriber = request.subscribers[0]
    fields = _fields(subscriber)

    assert (subscriber.email, subscriber.phone_number, subscriber.language) == (
        "erik@example.com",
        "+46703833567",
        "sv",
    )
    assert [field.key for field in subscriber.fields][:4] == [
        "Kundinfo.Personnr",
        "Namn.Förnamn",
        "Namn.Efternamn",
        "Adress.Stad",
    ]
    assert fields["Kundinfo.Personnr"] == ("850101-1234", "text")
    assert fields["Namn.Förnamn"] == ("Erik", "text")
    assert fields["Datum.Födelsedag"] == ("1985-01-01", "date")
    assert fields["Infoflex.Datum"] == ("2024-05-02", "date")
    assert fields["Infoflex.Doknr"] == ("1001", "text")
    assert fields["Infoflex.Pris"] == ("1250", "text")
    assert fields["Infoflex.Anlaggning"] == ("Spantgatan", "text")
    assert fields["Infoflex.AnlaggningEpost"][0] == "verkstad.spantgatan@niemibil.se"
    assert fields["Infoflex.Mätarställning"] == ("12345", "text")
    assert fields["Infoflex.Modellar"] == ("2015", "text")
    assert fields["Infoflex.Jobbtyp"] == (["Bromsar", "AC"], "multiple")
    assert fields["Infoflex.Skapad"] == ("2024-05-02", "date")
    assert fields["Infoflex.Stad"] == ("ROSVIK", "text")


def test_missing_values_become_empty_strings():
    order = _order("NIEM7", customer=None, vehicle=None, odometer=0, total_incl_vat=None, created_at=None)
    fields = _fields(order_to_subscriber(order))

    assert fields["Namn.Förnamn"] == ("", "text")
    assert fields["Datum.Födelsedag"] == ("", "date")
    assert fields["Infoflex.Mätarställning"] == ("", "text")
    assert fields["Infoflex.Pris"] == ("", "text")
    assert fields["Infoflex.Modellar"] == ("", "text")
    assert fields["Infoflex.Skapad"] == ("", "date")


def test_unknown_environment_uses_fallback_facility():
    request = orders_to_subscriber_request([_order("NIEM7")])

    assert _fields(request.subscribers[0])["Infoflex.Anlaggning"] == ("NIEMI BIL", "text")


def test_request_payload_shape():
    payload = orders_to_subscriber_request([_order()], tag="Infoflex").to_payload()

    assert payload["update_on_duplicate"] is True
    assert payload["tags"] == ["Infoflex"]
    first_field = payload["subscribers"][0]["fields"][0]
    assert first_field == {"key": "Kundinfo.Personnr", "value": "850101-1234", "type": "text"}


def test_contactable_orders_need_email_or_mobile():
    reachable = _order()
    no_contact = _order(customer=Party(number=2, name="Bilfirma AB"))
    no_customer = _order(customer=None)

    assert contactable_orders([reachable, no_contact, no_customer]) == [reachable]


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


def test_client_posts_payload_with_bearer_token():
    session = FakeSession(FakeResponse(200, {"success": True, "message": "ok"}))
    client = RuleIoClient("https://rule.example/api/v2/", "secret", session=session)

    response = client.create_subscribers(orders_to_subscriber_request([_order()]))

    assert response.success and response.message == "ok"
    url, kwargs = session.calls[0]
    assert url == "https://rule.example/api/v2/subscribers"
    assert kwargs["headers"]["Authorization"] == "Bearer secret"
    assert kwargs["json"]["tags"] == ["Infoflex"]


def test_client_accepts_empty_success_body():
    client = RuleIoClient("https://rule.example", "secret", session=FakeSession(FakeResponse(201)))

    assert client.create_subscribers(orders_to_subscriber_request([_order()])).success


@pytest.mark.parametrize(
    "session, fragment",
    [
        (FakeSession(FakeResponse(422, text="invalid email")), "422"),
        (FakeSession(error=requests.Timeout("slow")), "timeout"),
        (FakeSession(error=requests.ConnectionError("down")), "HTTP error"),
    ],
)
def test_client_failures_become_unsuccessful_responses(session, fragment, caplog):
    client = RuleIoClient("https://rule.example", "secret", session=session)
    caplog.set_level("ERROR")

    response = client.create_subscribers(orders_to_subscriber_request([_order()]))

    assert response.success is False
    assert fragment in response.message
    assert caplog.records


def test_client_from_settings_requires_url_and_token():
    with pytest.raises(ConfigurationError):
        RuleIoClient.from_settings(Settings(rule_io_token="secret"))
    with pytest.raises(ConfigurationError):
        RuleIoClient.from_settings(Settings(rule_io_base_url="https://rule.example"))

    client = RuleIoClient.from_settings(Settings(rule_io_base_url="https://rule.example", rule_io_token="t"))
    assert client.base_url == "https://rule.example"
