"""Keyword based classification of labor line items into job categories."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from workshop_sync.core.errors import ConfigurationError
from workshop_sync.core.models import LineItem, Order, Vehicle

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Reparation"


@dataclass(frozen=True)
class KeywordCategory:
    name: str
    keywords: Tuple[str, ...]


@dataclass(frozen=True)
class KeywordTable:
    """Ordered categories; the first category with a hit wins."""

    categories: Tuple[KeywordCategory, ...]

    def names(self) -> List[str]:
        return [category.name for category in self.categories]

    def classify(self, text: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
        return classify(text, self)


# Keywords of two or three letters carry a leading space so they only match
# at the start of a word.
DEFAULT_KEYWORD_TABLE = KeywordTable(
    categories=(
        KeywordCategory("Reparation", ("REPARATION",)),
        KeywordCategory(
            "Felsökning",
            ("DIAGNOS", "FELKOD", "AVLÄS", "FELSÖK", "MOTORLA", "UNDERSÖK", " USK"),
        ),
        KeywordCategory("AC", (" AC", "KONDENSOR", "KYLER", "KOMPRESSOR")),
        KeywordCategory("Service", ("SERVICE", "MÅNAD")),
        KeywordCategory(
            "Tillbehör",
            (
                "DRAG",
                "EXTRALJUS",
                "LEDRAMP",
                "LED-RAMP",
                " MV",
                "KUPEV",
                " MOK",
                "MOTORVÄRMARE",
                "KUPÉVÄRMARE",
            ),
        ),
        KeywordCategory("Bromsar", ("BROMS", "KLOSSAR", "SKIVOR")),
        KeywordCategory(
            "Däck",
            ("DÄCK", "HJULINSTÄLLNING", "HJULSMATNING", "HJULSKIFT", "TPMS", "PUNK", "BALANS"),
        ),
        KeywordCategory("CTC", ("CTC",)),
    )
)


def classify(
    text: Optional[str], table: KeywordTable = DEFAULT_KEYWORD_TABLE
) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(keyword, category)`` for the first hit, or ``(None, None)``."""

    if not text or not text.strip():
        return None, None

    haystack = " " + text.upper()
    for category in table.categories:
        for keyword in category.keywords:
            if keyword.upper() in haystack:
                return keyword.strip(), category.name
    return None, None


def load_keyword_table(path: Path) -> KeywordTable:
    """Read a keyword table from JSON.

    The file holds a list of ``{"category": ..., "keywords": [...]}`` objects
    in evaluation order.
    """

    try:
        with path.open(encoding="utf-8") as handle:
            raw = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Could not read keyword table {path}: {exc}") from exc

    if not isinstance(raw, list) or not raw:
        raise ConfigurationError(f"Keyword table {path} must be a non-empty list")

    categories = []
    for entry in raw:
        try:
            name = str(entry["category"]).strip()
            keywords = tuple(str(keyword) for keyword in entry["keywords"] if str(keyword).strip())
        except (KeyError, TypeError) as exc:
            raise ConfigurationError(f"Malformed keyword table entry in {path}: {entry!r}") from exc
        if not name or not keywords:
            raise ConfigurationError(f"Keyword table entry needs a category and keywords: {entry!r}")
        categories.append(KeywordCategory(name, keywords))

    logger.info("Loaded %d keyword categories from %s", len(categories), path)
    return KeywordTable(tuple(categories))


def is_labor(item: LineItem, labor_codes: Sequence[str] = ("A",)) -> bool:
    code = (item.type_code or "").strip().upper()
    return code in {value.upper() for value in labor_codes} and bool(item.quantity)


def classify_line_items(
    items: Iterable[LineItem],
    table: KeywordTable = DEFAULT_KEYWORD_TABLE,
    labor_codes: Sequence[str] = ("A",),
) -> None:
    """Tag labor lines with their matched keyword and category in place."""

    for item in items:
        if not is_labor(item, labor_codes):
            item.matched_keyword = None
            item.matched_category = None
            continue
        item.matched_keyword, item.matched_category = classify(item.article_text, table)


def derive_categories(items: Sequence[LineItem], labor_codes: Sequence[str] = ("A",)) -> List[str]:
    """Distinct matched categories in line order, falling back to general repair."""

    categories: List[str] = []
    for item in items:
        if item.matched_category and item.matched_category not in categories:
            categories.append(item.matched_category)

    if not categories and any(is_labor(item, labor_codes) for item in items):
        return [DEFAULT_CATEGORY]
    return categories


def backfill_vehicle_category(
    vehicle: Optional[Vehicle], items: Iterable[LineItem], material_code: str = "Husbil"
) -> None:
    """Set an empty vehicle category from a line item material code sentinel."""

    if vehicle is None or (vehicle.category or "").strip() or not material_code:
        return
    sentinel = material_code.strip().lower()
    if any((item.material_code or "").strip().lower() == sentinel for item in items):
        vehicle.category = material_code


def apply_classification(
    order: Order,
    table: KeywordTable = DEFAULT_KEYWORD_TABLE,
    labor_codes: Sequence[str] = ("A",),
    material_code: str = "Husbil",
) -> Order:
    classify_line_items(order.line_items, table, labor_codes)
    order.categories = derive_categories(order.line_items, labor_codes)
    backfill_vehicle_category(order.vehicle, order.line_items, material_code)
    return order
