"""Tests for the keyword classifier and the category derivation rules."""
import json
from pathlib import Path

import pytest

from workshop_sync.core.errors import ConfigurationError
from workshop_sync.core.models import LineItem, Order, Vehicle
from workshop_sync.processing.keywords import (
    DEFAULT_CATEGORY,
    DEFAULT_KEYWORD_TABLE,
    KeywordCategory,
    KeywordTable,
    apply_classification,
    backfill_vehicle_category,
    classify,
    derive_categories,
    load_keyword_table,
)


def _item(text, type_code="A", quantity=1.0, material_code=None, row=1):
    return LineItem(
        order_number=1,
        row_number=row,
        article_text=text,
        quantity=quantity,
        type_code=type_code,
        material_code=material_code,
    )


def test_classify_is_case_insensitive():
    assert classify("byte bromsklossar fram") == ("BROMS", "Bromsar")
    assert classify("Felsökning motor") == ("FELSÖK", "Felsökning")


def test_classify_returns_none_pair_without_match():
    assert classify("Allmänt arbete") == (None, None)
    assert classify("") == (None, None)
    assert classify(None) == (None, None)


def test_category_order_wins_over_text_order():
    table = KeywordTable((KeywordCategory("AC", (" AC",)), KeywordCategory("Bromsar", ("BROMS",))))

    assert classify("Broms och AC kontroll", table) == ("AC", "AC")


def test_short_keywords_only_match_at_word_start():
    assert classify("AC kontroll") == ("AC", "AC")
    assert classify("Vacuumpump") == (None, None)
    assert classify("Montering MV") == ("MV", "Tillbehör")


def test_default_table_order():
    assert DEFAULT_KEYWORD_TABLE.names() == [
        "Reparation",
        "Felsökning",
        "AC",
        "Service",
        "Tillbehör",
        "Bromsar",
        "Däck",
        "CTC",
    ]


def test_derive_categories_keeps_first_seen_order_without_duplicates():
    items = [_item("Bromsar bak", row=1), _item("AC service", row=2), _item("Broms fram", row=3)]
    order = apply_classification(Order(order_number=1, source_environment="NIEM3", line_items=items))

    assert order.categories == ["Bromsar", "AC"]


def test_part_lines_are_never_classified():
    items = [_item("Bromsklossar", type_code="D"), _item("AC kontroll", quantity=0.0)]
    order = apply_classification(Order(order_number=1, source_environment="NIEM3", line_items=items))

    assert all(item.matched_category is None for item in items)
    assert order.categories == []


def test_labor_without_match_defaults_to_general_repair():
    items = [_item("Allmänt arbete"), _item("Bromsklossar", type_code="D")]

    order = apply_classification(Order(order_number=1, source_environment="NIEM3", line_items=items))

    assert order.categories == [DEFAULT_CATEGORY]
    assert derive_categories([]) == []


def test_backfill_sets_empty_vehicle_category_only():
    items = [_item("Packning", type_code="D", material_code="HUSBIL")]
    empty = Vehicle("XYZ789")
    filled = Vehicle("ABC123", category="Personbil")

    backfill_vehicle_category(empty, items)
    backfill_vehicle_category(filled, items)

    assert empty.category == "Husbil"
    assert filled.category == "Personbil"


def test_load_keyword_table_reads_json(tmp_path: Path):
    path = tmp_path / "keywords.json"
    path.write_text(
        json.dumps([{"category": "Glas", "keywords": ["RUTA", "VINDRUTA"]}, {"category": "AC", "keywords": [" AC"]}]),
        encoding="utf-8",
    )

    table = load_keyword_table(path)

    assert table.names() == ["Glas", "AC"]
    assert table.classify("Byte vindruta") == ("RUTA", "Glas")


@pytest.mark.parametrize("content", ["not json", "[]", '[{"category": "X"}]', '[{"category": "", "keywords": ["A"]}]'])
def test_load_keyword_table_rejects_bad_files(tmp_path: Path, content):
    path = tmp_path / "keywords.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_keyword_table(path)
