"""Core building blocks for the workshop_sync package."""
from workshop_sync.core.config import Settings
from workshop_sync.core.errors import (
    ConfigurationError,
    PerEnvironmentQueryError,
    ValidationError,
    WorkshopSyncError,
)
from workshop_sync.core.logging import configure_logging
from workshop_sync.core.models import (
    COMPANY,
    PRIVATE,
    Facility,
    Invoice,
    LineItem,
    LogEntry,
    Order,
    OrderQuery,
    Party,
    PhoneLookupItem,
    PhoneMatch,
    StockReceipt,
    StockReceiptRow,
    Vehicle,
)

__all__ = [
    "COMPANY",
    "PRIVATE",
    "ConfigurationError",
    "Facility",
    "Invoice",
    "LineItem",
    "LogEntry",
    "Order",
    "OrderQuery",
    "Party",
    "PerEnvironmentQueryError",
    "PhoneLookupItem",
    "PhoneMatch",
    "Settings",
    "StockReceipt",
    "StockReceiptRow",
    "ValidationError",
    "Vehicle",
    "WorkshopSyncError",
    "configure_logging",
]
