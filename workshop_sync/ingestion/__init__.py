"""Database access: environment registry, table definitions and the per-environment executor."""
from workshop_sync.ingestion.environments import FACILITIES, FALLBACK_FACILITY, EnvironmentRegistry
from workshop_sync.ingestion.executor import EnvironmentQueryExecutor, normalize_plate

__all__ = [
    "FACILITIES",
    "FALLBACK_FACILITY",
    "EnvironmentQueryExecutor",
    "EnvironmentRegistry",
    "normalize_plate",
]
