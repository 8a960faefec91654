"""Tests for the pure record normalizers."""
from datetime import date

import pytest

from workshop_sync.core.models import COMPANY, PRIVATE, Party
from workshop_sync.processing.normalizers import (
    canonical_mobile,
    classify_personal_number,
    clean_phone_number,
    derive_party_fields,
    find_mobile,
    split_name,
    split_postal,
)

TODAY = date(2024, 6, 1)


def test_split_name_recovers_first_and_last():
    assert split_name("Andersson, Erik") == ("Erik", "Andersson")


def test_split_name_title_cases_each_word():
    assert split_name("VON ANKA, KALLE") == ("Kalle", "Von Anka")


@pytest.mark.parametrize(
    "raw",
    ["Andersson,  Erik", "Andersson Erik", "Andersson, Erik Johan", "Andersson,Erik", "", None, "   "],
)
def test_split_name_rejects_other_shapes(raw):
    assert split_name(raw) == (None, None)


def test_canonical_mobile_handles_domestic_format():
    assert canonical_mobile("070-383 35 67") == "+46703833567"


def test_canonical_mobile_rejects_landlines():
    assert canonical_mobile("0920-230088") is None
    assert canonical_mobile("") is None
    assert canonical_mobile(None) is None


@pytest.mark.parametrize("raw", ["+46 70 383 35 67", "0046703833567", "46703833567", "703833567"])
def test_canonical_mobile_strips_country_prefixes(raw):
    assert canonical_mobile(raw) == "+46703833567"


@pytest.mark.parametrize("raw", ["070-383 35 67", "+46 73 111 22 33", "0920-230088", "12345", "0046 76-000 11 22"])
def test_canonical_mobile_is_idempotent(raw):
    first = canonical_mobile(raw)
    if first is None:
        return
    assert first.startswith("+467")
    assert canonical_mobile(first) == first


def test_find_mobile_respects_field_order():
    phones = {"tel1": "073-111 22 33", "tel2": "070-383 35 67", "tel3": None}

    assert find_mobile(phones, ("tel1", "tel2")) == "+46731112233"
    assert find_mobile(phones, ("tel2", "tel1")) == "+46703833567"
    assert find_mobile({"tel1": "0920-230088"}, ("tel1", "tel2", "tel3")) is None


def test_split_postal_separates_zip_and_city():
    assert split_postal("945 33 ROSVIK") == ("94533", "ROSVIK")
    assert split_postal("  97238 Luleå ") == ("97238", "Luleå")


def test_split_postal_without_letters_is_all_zip():
    assert split_postal("945 33") == ("94533", None)
    assert split_postal("") == (None, None)
    assert split_postal(None) == (None, None)


def test_personal_number_picks_century_with_valid_age():
    assert classify_personal_number("850101-1234", today=TODAY) == (PRIVATE, date(1985, 1, 1))
    assert classify_personal_number("150630-1234", today=TODAY) == (PRIVATE, date(2015, 6, 30))


@pytest.mark.parametrize("raw", ["556677-8899", "851301-1234", "8501011234", "85-01-01-1234", "", None, "Bolaget AB"])
def test_personal_number_falls_back_to_company(raw):
    assert classify_personal_number(raw, today=TODAY) == (COMPANY, None)


@pytest.mark.parametrize("yy", range(0, 100, 7))
def test_decoded_age_is_always_within_bounds(yy):
    customer_type, birth = classify_personal_number(f"{yy:02d}0615-0000", today=TODAY)

    assert customer_type == PRIVATE
    age = TODAY.year - birth.year - ((TODAY.month, TODAY.day) < (birth.month, birth.day))
    assert 0 <= age <= 99


def test_clean_phone_number_drops_one_prefix():
    assert clean_phone_number("+46 70-383 35 67") == "703833567"
    assert clean_phone_number("070-383 35 67") == "703833567"
    assert clean_phone_number("") == ""


def test_derive_party_fields_for_private_customer():
    party = Party(
        number=1,
        name="Andersson, Erik",
        postal_address="945 33 ROSVIK",
        org_number="850101-1234",
        tel1="0920-230088",
        tel2="070-383 35 67",
    )

    derived = derive_party_fields(party, today=TODAY)

    assert (derived.first_name, derived.last_name) == ("Erik", "Andersson")
    assert derived.company_name is None
    assert (derived.zip_code, derived.city) == ("94533", "ROSVIK")
    assert derived.mobile_phone == "+46703833567"
    assert derived.customer_type == PRIVATE
    assert derived.birth_date == date(1985, 1, 1)
    assert derive_party_fields(derived, today=TODAY) == derived


def test_derive_party_fields_for_company_uses_whole_name():
    derived = derive_party_fields(
        Party(number=2, name="  Bilfirma AB ", org_number="556677-8899"), today=TODAY
    )

    assert derived.customer_type == COMPANY
    assert derived.company_name == "Bilfirma AB"
    assert derived.first_name is None
    assert derived.birth_date is None
