"""Shared utility functions for the workshop_sync package."""
import logging
import os
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_config_value(key: str, default: str = "") -> str:
    """Get configuration value from Streamlit secrets or environment variables.

    Checks Streamlit secrets first (for the hosted dashboard), then falls back
    to environment variables (for the CLI and scheduled runs).
    """
    try:
        import streamlit as st
        from streamlit.errors import StreamlitAPIException
    except ImportError:
        return os.getenv(key, default)

    try:
        if hasattr(st, "secrets") and key in st.secrets:
            return str(st.secrets[key])
    except (FileNotFoundError, KeyError, StreamlitAPIException):
        # No secrets.toml outside a deployed dashboard.
        pass

    return os.getenv(key, default)


def load_env_file(path: Path) -> List[str]:
    """Copy ``KEY=value`` lines from a shell-style env file into ``os.environ``.

    ``export`` prefixes and trailing ``# comments`` on unquoted values are
    accepted so the same file can be sourced by cron wrappers. Variables that
    are already set win. Returns the keys that were set.
    """
    if not path.is_file():
        logger.debug("No env file at %s", path)
        return []

    loaded: List[str] = []
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        logger.warning("Could not read env file %s: %s", path, exc)
        return loaded

    for line in (raw.strip() for raw in lines):
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#") or key in os.environ:
            continue
        value = value.strip()
        if value[:1] in {'"', "'"} and value.endswith(value[:1]) and len(value) > 1:
            value = value[1:-1]
        else:
            value = value.split(" #", 1)[0].rstrip()
        os.environ[key] = value
        loaded.append(key)

    logger.debug("Loaded %d setting(s) from %s", len(loaded), path)
    return loaded


def split_list(raw: str) -> List[str]:
    """Split a comma separated setting into trimmed, non-empty parts."""
    return [part.strip() for part in raw.split(",") if part.strip()]


def chunked(values: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of at most ``size`` values."""
    if size < 1:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(values), size):
        yield list(values[start:start + size])


def unique(values: Iterable[T]) -> List[T]:
    """Drop repeated values while keeping the first occurrence order."""
    seen = set()
    ordered: List[T] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


def format_date(value: Optional[date]) -> str:
    """Render dates the way downstream systems expect (``YYYY-MM-DD``)."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def clean_text(value: Optional[str]) -> Optional[str]:
    """Collapse whitespace and map blank strings to ``None``."""
    if value is None:
        return None
    cleaned = " ".join(str(value).split())
    return cleaned or None
