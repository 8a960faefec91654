"""Logging utilities shared across the workshop_sync package."""
from __future__ import annotations

import logging
import os

NOISY_LOGGERS = ("sqlalchemy.engine", "urllib3")


def configure_logging(level: str | None = None) -> None:
    """Initialize basic logging with a shared format and log level.

    The level can be provided directly or via the ``LOG_LEVEL`` environment
    variable (defaults to ``INFO``). SQL echo and HTTP connection chatter stay
    at WARNING unless DEBUG is requested, so fan-out summaries remain readable.
    """

    resolved_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if resolved_level != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
