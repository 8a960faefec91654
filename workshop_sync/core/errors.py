"""Exception taxonomy for the fan-out pipeline."""
from __future__ import annotations


class WorkshopSyncError(Exception):
    """Base class for errors raised by workshop_sync."""


class ConfigurationError(WorkshopSyncError, ValueError):
    """Unknown environment, missing connection string or missing sink settings."""


class ValidationError(WorkshopSyncError, ValueError):
    """Caller input rejected before any database work starts."""


class PerEnvironmentQueryError(WorkshopSyncError, RuntimeError):
    """A query against a single environment failed."""

    def __init__(self, environment: str, message: str) -> None:
        super().__init__(f"{environment}: {message}")
        self.environment = environment
