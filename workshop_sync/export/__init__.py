"""Export destinations for enriched orders."""
from workshop_sync.export.rule_io import RuleIoClient
from workshop_sync.export.sinks import ensure_output_dir, push_to_google_sheets, write_csv, write_excel
from workshop_sync.export.subscribers import contactable_orders, orders_to_subscriber_request
from workshop_sync.export.templates import ORDER_EXPORT_HEADERS, order_to_row, orders_to_rows

__all__ = [
    "ORDER_EXPORT_HEADERS",
    "RuleIoClient",
    "contactable_orders",
    "ensure_output_dir",
    "order_to_row",
    "orders_to_rows",
    "orders_to_subscriber_request",
    "push_to_google_sheets",
    "write_csv",
    "write_excel",
]
