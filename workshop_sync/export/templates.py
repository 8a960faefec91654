"""Flatten orders into spreadsheet rows."""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from workshop_sync.core.models import Order
from workshop_sync.core.utils import clean_text, format_date
from workshop_sync.ingestion.environments import FACILITIES, FALLBACK_FACILITY

ORDER_EXPORT_HEADERS = [
    "Environment",
    "Facility",
    "Order_Number",
    "Order_Date",
    "Registration_Plate",
    "Status",
    "Customer_Name",
    "Customer_Type",
    "Mobile_Phone",
    "Email",
    "City",
    "Vehicle_Make",
    "Vehicle_Model",
    "Vehicle_Category",
    "Total_Excl_VAT",
    "VAT",
    "Total_Incl_VAT",
    "Categories",
    "Invoices",
    "First_Log",
    "Last_Log",
    "Line_Items",
    "Weight",
]


def _format_amount(value: Optional[float]) -> str:
    if value is None:
        return ""
    return f"{value:.2f}"


def _format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.isoformat(sep=" ", timespec="seconds")


def _customer_name(order: Order) -> str:
    customer = order.customer
    if customer is None:
        return clean_text(order.name) or ""
    if customer.first_name and customer.last_name:
        return f"{customer.first_name} {customer.last_name}"
    return clean_text(customer.company_name or customer.name) or ""


def order_to_row(order: Order) -> Dict[str, Any]:
    """Convert an Order into the export template dictionary."""

    customer = order.customer
    vehicle = order.vehicle
    facility = FACILITIES.get(order.source_environment.upper(), FALLBACK_FACILITY)
    weight = sum(item.weight or 0.0 for item in order.line_items)
    return {
        "Environment": order.source_environment,
        "Facility": facility.name,
        "Order_Number": order.order_number,
        "Order_Date": format_date(order.order_date),
        "Registration_Plate": order.registration_plate or "",
        "Status": order.status or "",
        "Customer_Name": _customer_name(order),
        "Customer_Type": customer.customer_type or "" if customer else "",
        "Mobile_Phone": customer.mobile_phone or "" if customer else "",
        "Email": customer.email or "" if customer else "",
        "City": customer.city or "" if customer else "",
        "Vehicle_Make": vehicle.make or "" if vehicle else "",
        "Vehicle_Model": vehicle.model or "" if vehicle else "",
        "Vehicle_Category": vehicle.category or "" if vehicle else "",
        "Total_Excl_VAT": _format_amount(order.total_excl_vat),
        "VAT": _format_amount(order.vat_amount),
        "Total_Incl_VAT": _format_amount(order.total_incl_vat),
        "Categories": ", ".join(order.categories),
        "Invoices": len(order.invoices),
        "First_Log": _format_timestamp(order.min_log_timestamp),
        "Last_Log": _format_timestamp(order.max_log_timestamp),
        "Line_Items": len(order.line_items),
        "Weight": f"{weight:.4f}" if order.line_items else "",
    }


def orders_to_rows(orders: Iterable[Order]) -> List[Dict[str, Any]]:
    return [order_to_row(order) for order in orders]
