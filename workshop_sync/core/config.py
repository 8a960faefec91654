"""Runtime settings resolved from secrets files, Streamlit secrets and the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from workshop_sync.core.errors import ConfigurationError
from workshop_sync.core.utils import get_config_value, load_env_file, split_list

DEFAULT_ENV_FILE = Path("secrets/workshop.env")
DEFAULT_ENVIRONMENTS = ("NIE2V", "NIEM3", "NIEM4", "NIEM5", "NIEM6", "NIEM7", "NIEMI")
PHONE_FIELDS = ("tel1", "tel2", "tel3")
_ENV_LOADED = False


def _ensure_env_file() -> None:
    """Populate os.environ from secrets/workshop.env once per process."""

    global _ENV_LOADED
    if _ENV_LOADED:
        return
    _ENV_LOADED = True
    load_env_file(Path(os.getenv("WORKSHOP_ENV_FILE", DEFAULT_ENV_FILE)))


def connection_string_key(environment: str) -> str:
    return f"CONNECTION_STRING_{environment.upper()}"


def _int_value(key: str, default: Optional[int]) -> Optional[int]:
    raw = get_config_value(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise ConfigurationError(f"{key} must be positive, got {value}")
    return value


def _phone_order(raw: str) -> Tuple[str, ...]:
    order = tuple(part.lower() for part in split_list(raw))
    unknown = [part for part in order if part not in PHONE_FIELDS]
    if unknown or not order:
        raise ConfigurationError(
            f"PHONE_FIELD_ORDER must list fields from {', '.join(PHONE_FIELDS)}, got {raw!r}"
        )
    return order


@dataclass(frozen=True)
class Settings:
    """Everything the fan-out, the sinks and the daily job need to run."""

    environments: Tuple[str, ...] = DEFAULT_ENVIRONMENTS
    connection_strings: Dict[str, str] = field(default_factory=dict)
    max_workers: Optional[int] = None
    chunk_size: int = 1000
    phone_field_order: Tuple[str, ...] = PHONE_FIELDS
    labor_type_codes: Tuple[str, ...] = ("A",)
    motorhome_material_code: str = "Husbil"
    keyword_table_file: Optional[Path] = None
    strict: bool = False
    rule_io_base_url: Optional[str] = None
    rule_io_token: Optional[str] = None
    rule_io_tag: str = "Infoflex"
    subscriber_language: str = "sv"
    daily_status: str = "KON"
    daily_customer_type: str = "Private"

    @classmethod
    def from_env(cls) -> "Settings":
        _ensure_env_file()

        environments = tuple(
            env.upper()
            for env in split_list(get_config_value("WORKSHOP_ENVIRONMENTS", ",".join(DEFAULT_ENVIRONMENTS)))
        )
        connection_strings = {}
        for environment in environments:
            value = get_config_value(connection_string_key(environment), "").strip()
            if value:
                connection_strings[environment] = value

        keyword_file = get_config_value("KEYWORD_TABLE_FILE", "").strip()
        return cls(
            environments=environments,
            connection_strings=connection_strings,
            max_workers=_int_value("FANOUT_MAX_WORKERS", None),
            chunk_size=_int_value("QUERY_CHUNK_SIZE", 1000),
            phone_field_order=_phone_order(get_config_value("PHONE_FIELD_ORDER", ",".join(PHONE_FIELDS))),
            labor_type_codes=tuple(
                code.upper() for code in split_list(get_config_value("LABOR_TYPE_CODES", "A"))
            ),
            motorhome_material_code=get_config_value("MOTORHOME_MATERIAL_CODE", "Husbil").strip(),
            keyword_table_file=Path(keyword_file) if keyword_file else None,
            strict=get_config_value("STRICT_FANOUT", "0") == "1",
            rule_io_base_url=get_config_value("RULE_IO_BASE_URL", "").strip() or None,
            rule_io_token=get_config_value("RULE_IO_TOKEN", "").strip() or None,
            rule_io_tag=get_config_value("RULE_IO_TAG", "Infoflex"),
            subscriber_language=get_config_value("SUBSCRIBER_LANGUAGE", "sv"),
            daily_status=get_config_value("DAILY_STATUS", "KON"),
            daily_customer_type=get_config_value("DAILY_CUSTOMER_TYPE", "Private"),
        )
