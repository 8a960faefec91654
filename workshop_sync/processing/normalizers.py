"""Pure normalization helpers for customer register entries.

Nothing here touches the database; every function maps raw strings to derived
values so a ``Party`` can be re-derived at any time with the same result.
"""
from __future__ import annotations

import re
from dataclasses import replace
from datetime import date
from typing import Iterable, Mapping, Optional, Tuple

from workshop_sync.core.models import COMPANY, PRIVATE, Party

PERSONAL_NUMBER = re.compile(r"(\d{2})(\d{2})(\d{2})-\d{4}")
MOBILE_PREFIXES = ("0", "+", "46")


def _title(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def title_case(value: str) -> str:
    """Upper-case the first letter of every word and lower-case the rest."""

    return " ".join(_title(word) for word in value.split(" "))


def split_name(name: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Split ``"Lastname, Firstname"`` into ``(first, last)``.

    Only an ASCII comma followed by exactly one space and a single-word first
    name is accepted; every other shape yields ``(None, None)``.
    """

    if not name or not name.strip():
        return None, None

    normalized = name.strip()
    comma = normalized.find(",")
    if comma == -1:
        return None, None

    rest = normalized[comma + 1:]
    if not rest.startswith(" ") or rest.startswith("  "):
        return None, None

    last = normalized[:comma].strip()
    first = rest[1:]
    if not last or not first or " " in first:
        return None, None

    return title_case(first), title_case(last)


def canonical_mobile(phone: Optional[str]) -> Optional[str]:
    """Return a Swedish mobile number as ``+467...`` or ``None`` for anything else."""

    if not phone:
        return None

    digits = re.sub(r"\D", "", phone)
    stripped = True
    while stripped:
        stripped = False
        for prefix in MOBILE_PREFIXES:
            if digits.startswith(prefix):
                digits = digits[len(prefix):]
                stripped = True
                break

    if digits.startswith("7"):
        return "+46" + digits
    return None


def find_mobile(phones: Mapping[str, Optional[str]], order: Iterable[str]) -> Optional[str]:
    """Check phone fields in priority order and return the first mobile number."""

    for key in order:
        mobile = canonical_mobile(phones.get(key))
        if mobile:
            return mobile
    return None


def clean_phone_number(phone: Optional[str]) -> str:
    """Reduce a phone number to the key used when matching lookups against orders."""

    if not phone:
        return ""
    digits = re.sub(r"\D", "", phone)
    if digits.startswith("46"):
        return digits[2:]
    if digits.startswith("0"):
        return digits[1:]
    return digits


def split_postal(value: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Split ``"945 33 ROSVIK"`` into ``("94533", "ROSVIK")``."""

    if not value or not value.strip():
        return None, None

    normalized = value.strip()
    city_start = next((index for index, char in enumerate(normalized) if char.isalpha()), None)
    if city_start is None:
        return normalized.replace(" ", "") or None, None

    zip_code = normalized[:city_start].replace(" ", "")
    city = normalized[city_start:].strip()
    return zip_code or None, city or None


def _age_on(birth: date, today: date) -> int:
    had_birthday = (today.month, today.day) >= (birth.month, birth.day)
    return today.year - birth.year - (0 if had_birthday else 1)


def classify_personal_number(
    value: Optional[str], today: Optional[date] = None
) -> Tuple[str, Optional[date]]:
    """Classify an organization number field as a private person or a company.

    ``yyMMdd-####`` is a personal number; the century is whichever of the
    current and the previous one gives an age between 0 and 99.
    """

    if not value:
        return COMPANY, None
    match = PERSONAL_NUMBER.fullmatch(value.strip())
    if not match:
        return COMPANY, None

    today = today or date.today()
    yy, month, day = (int(part) for part in match.groups())
    century = today.year // 100 * 100
    for year in (century + yy, century - 100 + yy):
        try:
            birth = date(year, month, day)
        except ValueError:
            continue
        if 0 <= _age_on(birth, today) <= 99:
            return PRIVATE, birth
    return COMPANY, None


def derive_party_fields(
    party: Party,
    phone_order: Iterable[str] = ("tel1", "tel2", "tel3"),
    today: Optional[date] = None,
) -> Party:
    """Return a copy of ``party`` with every derived field recomputed."""

    customer_type, birth_date = classify_personal_number(party.org_number, today=today)
    first_name, last_name = split_name(party.name)
    zip_code, city = split_postal(party.postal_address)
    company_name = party.name.strip() if customer_type == COMPANY and party.name else None

    return replace(
        party,
        first_name=first_name,
        last_name=last_name,
        company_name=company_name or None,
        zip_code=zip_code,
        city=city,
        mobile_phone=find_mobile(party.phones(), phone_order),
        customer_type=customer_type,
        birth_date=birth_date,
    )
