"""Pure record processing: normalizers and the keyword classifier."""
from workshop_sync.processing.keywords import (
    DEFAULT_CATEGORY,
    DEFAULT_KEYWORD_TABLE,
    KeywordCategory,
    KeywordTable,
    classify,
    load_keyword_table,
)
from workshop_sync.processing.normalizers import (
    canonical_mobile,
    classify_personal_number,
    clean_phone_number,
    derive_party_fields,
    split_name,
    split_postal,
)

__all__ = [
    "DEFAULT_CATEGORY",
    "DEFAULT_KEYWORD_TABLE",
    "KeywordCategory",
    "KeywordTable",
    "canonical_mobile",
    "classify",
    "classify_personal_number",
    "clean_phone_number",
    "derive_party_fields",
    "load_keyword_table",
    "split_name",
    "split_postal",
]
