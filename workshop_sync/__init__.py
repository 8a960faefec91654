"""Fan-out order queries across workshop facility databases."""
from workshop_sync.core import (
    ConfigurationError,
    Order,
    OrderQuery,
    PerEnvironmentQueryError,
    PhoneLookupItem,
    Settings,
    ValidationError,
    configure_logging,
)
from workshop_sync.ingestion import EnvironmentQueryExecutor, EnvironmentRegistry
from workshop_sync.processing import DEFAULT_KEYWORD_TABLE, classify
from workshop_sync.processing.aggregator import OrderAggregator
from workshop_sync.processing.jobs import process_daily_orders
from workshop_sync.export import RuleIoClient, orders_to_subscriber_request

__all__ = [
    "ConfigurationError",
    "DEFAULT_KEYWORD_TABLE",
    "EnvironmentQueryExecutor",
    "EnvironmentRegistry",
    "Order",
    "OrderAggregator",
    "OrderQuery",
    "PerEnvironmentQueryError",
    "PhoneLookupItem",
    "RuleIoClient",
    "Settings",
    "ValidationError",
    "classify",
    "configure_logging",
    "orders_to_subscriber_request",
    "process_daily_orders",
]
