"""Turn enriched orders into subscriber records for the marketing platform."""
from __future__ import annotations

from typing import Iterable, List, Optional

from workshop_sync.core.models import (
    Facility,
    Order,
    Subscriber,
    SubscriberField,
    SubscriberRequest,
)
from workshop_sync.core.utils import format_date
from workshop_sync.ingestion.environments import FACILITIES, FALLBACK_FACILITY, EnvironmentRegistry


def _number(value: Optional[float]) -> str:
    if value is None:
        return ""
    return str(int(value)) if float(value).is_integer() else str(value)


def contactable_orders(orders: Iterable[Order]) -> List[Order]:
    """Orders whose customer can be reached by email or mobile phone."""

    return [
        order
        for order in orders
        if order.customer is not None and (order.customer.email or order.customer.mobile_phone)
    ]


def order_to_subscriber(
    order: Order, facility: Facility = FALLBACK_FACILITY, language: str = "sv"
) -> Subscriber:
    customer = order.customer
    vehicle = order.vehicle
    fields = [
        SubscriberField("Kundinfo.Personnr", customer.org_number or "" if customer else ""),
        SubscriberField("Namn.Förnamn", customer.first_name or "" if customer else ""),
        SubscriberField("Namn.Efternamn", customer.last_name or "" if customer else ""),
        SubscriberField("Adress.Stad", customer.city or "" if customer else ""),
        SubscriberField(
            "Datum.Födelsedag", format_date(customer.birth_date if customer else None), "date"
        ),
        SubscriberField("Infoflex.Datum", format_date(order.order_date), "date"),
        SubscriberField("Infoflex.Doknr", str(order.order_number)),
        SubscriberField("Infoflex.Pris", _number(order.total_incl_vat)),
        SubscriberField("Infoflex.Anlaggning", facility.name),
        SubscriberField("Infoflex.AnlaggningEpost", facility.email),
        SubscriberField("Infoflex.AnlaggningTfn", facility.phone),
        SubscriberField("Infoflex.Fordonstyp", vehicle.category or "" if vehicle else ""),
        SubscriberField("Infoflex.Marke", vehicle.make or "" if vehicle else ""),
        SubscriberField("Infoflex.Mätarställning", str(order.odometer) if order.odometer else ""),
        SubscriberField("Infoflex.Modell", vehicle.model or "" if vehicle else ""),
        SubscriberField(
            "Infoflex.Modellar",
            str(vehicle.model_year) if vehicle and vehicle.model_year is not None else "",
        ),
        SubscriberField("Infoflex.Regnr", order.registration_plate or ""),
        SubscriberField("Infoflex.Jobbtyp", list(order.categories), "multiple"),
        SubscriberField("Infoflex.Skapad", format_date(order.created_at), "date"),
        SubscriberField("Infoflex.Stad", customer.city or "" if customer else ""),
    ]
    return Subscriber(
        email=customer.email or "" if customer else "",
        phone_number=customer.mobile_phone or "" if customer else "",
        language=language,
        fields=fields,
    )


def orders_to_subscriber_request(
    orders: Iterable[Order],
    registry: Optional[EnvironmentRegistry] = None,
    tag: str = "Infoflex",
    language: str = "sv",
) -> SubscriberRequest:
    """Build one request holding a subscriber per order, tagged for the campaign."""

    subscribers = []
    for order in orders:
        if registry is not None:
            facility = registry.facility_for(order.source_environment)
        else:
            facility = FACILITIES.get(order.source_environment.upper(), FALLBACK_FACILITY)
        subscribers.append(order_to_subscriber(order, facility, language))
    return SubscriberRequest(subscribers=subscribers, tags=[tag], update_on_duplicate=True)
