"""Streamlit dashboard to fetch orders across facilities and sync subscribers."""
import csv
import io
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional, Tuple

import streamlit as st

# Allow running via "streamlit run workshop_sync/ui/dashboard.py" without installing the package
# by ensuring the repository root is on ``sys.path``.
if __package__ in {None, ""}:
    import sys

    sys.path.append(str(Path(__file__).resolve().parents[2]))

from workshop_sync.core.config import Settings
from workshop_sync.core.errors import WorkshopSyncError
from workshop_sync.core.logging import configure_logging
from workshop_sync.core.models import Order, OrderQuery
from workshop_sync.export.rule_io import RuleIoClient
from workshop_sync.export.subscribers import contactable_orders, orders_to_subscriber_request
from workshop_sync.export.templates import ORDER_EXPORT_HEADERS, orders_to_rows
from workshop_sync.processing.aggregator import OrderAggregator
from workshop_sync.processing.jobs import day_range


@st.cache_resource
def _aggregator() -> OrderAggregator:
    """One aggregator (and engine pool) per dashboard process."""

    return OrderAggregator.from_settings(Settings.from_env())


def _rows_to_csv(rows: List[dict]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=ORDER_EXPORT_HEADERS)
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


def _fetch(
    aggregator: OrderAggregator,
    environments: List[str],
    start: date,
    end: date,
    status: str,
    customer_type: str,
    invoiced: Optional[bool],
) -> Tuple[List[Order], Optional[str]]:
    query = OrderQuery(
        from_date=day_range(start)[0],
        to_date=day_range(end)[1],
        status=status.strip() or None,
        invoiced=invoiced,
    )
    try:
        orders = aggregator.aggregate(
            query,
            environments=environments,
            customer_type=None if customer_type == "Any" else customer_type,
        )
    except WorkshopSyncError as exc:
        return [], str(exc)
    return orders, None


def _send(aggregator: OrderAggregator, orders: List[Order]) -> Tuple[str, str]:
    settings = Settings.from_env()
    reachable = contactable_orders(orders)
    if not reachable:
        return "No orders with email or mobile phone to send.", "info"
    try:
        client = RuleIoClient.from_settings(settings)
    except WorkshopSyncError as exc:
        return str(exc), "warning"

    request = orders_to_subscriber_request(
        reachable,
        registry=aggregator.registry,
        tag=settings.rule_io_tag,
        language=settings.subscriber_language,
    )
    response = client.create_subscribers(request)
    if response.success:
        return f"Sent {len(reachable)} subscribers to Rule.io.", "success"
    return f"Rule.io rejected the request: {response.message}", "error"


def main() -> None:
    configure_logging()
    st.set_page_config(page_title="Workshop orders", layout="wide")
    st.title("Workshop orders")

    try:
        aggregator = _aggregator()
    except WorkshopSyncError as exc:
        st.error(f"Configuration problem: {exc}")
        return

    with st.sidebar:
        available = aggregator.list_environments()
        environments = st.multiselect("Environments", available, default=available)
        yesterday = date.today() - timedelta(days=1)
        start = st.date_input("From", value=yesterday)
        end = st.date_input("To", value=yesterday)
        status = st.text_input("Status", value="KON")
        customer_type = st.selectbox("Customer type", ["Any", "Private", "Company"])
        invoiced_label = st.selectbox("Invoiced", ["Yes", "No", "Any"])
        fetch = st.button("Fetch orders", type="primary")

    if fetch and not environments:
        st.warning("Select at least one environment to fetch orders.")
    elif fetch:
        invoiced = {"Yes": True, "No": False, "Any": None}[invoiced_label]
        orders, error = _fetch(aggregator, environments, start, end, status, customer_type, invoiced)
        if error:
            st.error(error)
        st.session_state.orders = orders

    orders: List[Order] = st.session_state.get("orders", [])
    if not orders:
        st.info("No orders loaded yet.")
        return

    rows = orders_to_rows(orders)
    reachable = contactable_orders(orders)
    col1, col2, col3 = st.columns(3)
    col1.metric("Orders", len(orders))
    col2.metric("Contactable", len(reachable))
    col3.metric("Environments", len({order.source_environment for order in orders}))

    st.dataframe(rows, use_container_width=True)
    st.download_button(
        "Download CSV",
        data=_rows_to_csv(rows),
        file_name="orders.csv",
        mime="text/csv",
    )

    if st.button("Send contactable orders to Rule.io"):
        message, level = _send(aggregator, orders)
        getattr(st, level)(message)


if __name__ == "__main__":
    main()
