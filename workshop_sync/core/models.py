"""Data models for orders fetched from the facility databases."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

PRIVATE = "Private"
COMPANY = "Company"


@dataclass
class Party:
    """A customer register entry used as customer, payer or driver of an order."""

    number: int
    name: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    postal_address: Optional[str] = None
    org_number: Optional[str] = None
    tel1: Optional[str] = None
    tel2: Optional[str] = None
    tel3: Optional[str] = None
    email: Optional[str] = None

    # Derived from the raw fields above.
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None
    mobile_phone: Optional[str] = None
    customer_type: Optional[str] = None
    birth_date: Optional[date] = None

    def phones(self) -> Dict[str, Optional[str]]:
        return {"tel1": self.tel1, "tel2": self.tel2, "tel3": self.tel3}


@dataclass
class Vehicle:
    registration_plate: str
    make: Optional[str] = None
    model: Optional[str] = None
    model_year: Optional[int] = None
    category: Optional[str] = None
    fuel_type: Optional[str] = None
    vin: Optional[str] = None


@dataclass
class LineItem:
    """One priced row of an order, either labor or a part."""

    order_number: int
    row_number: int
    article_number: Optional[str] = None
    article_text: Optional[str] = None
    quantity: float = 0.0
    unit_price: float = 0.0
    discount: float = 0.0
    vat: float = 0.0
    type_code: Optional[str] = None
    material_code: Optional[str] = None
    net_sum: float = 0.0
    matched_keyword: Optional[str] = None
    matched_category: Optional[str] = None
    weight: Optional[float] = None


@dataclass
class LogEntry:
    id: int
    timestamp: Optional[datetime] = None
    transaction_number: Optional[int] = None
    description: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    log_type: Optional[int] = None
    key_number: Optional[str] = None


def _timestamps(entries: List[LogEntry]) -> List[datetime]:
    return [entry.timestamp for entry in entries if entry.timestamp is not None]


@dataclass
class Invoice:
    """Invoice snapshot written when an order was sent to the accounting system."""

    invoice_number: int
    vehicle_number: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    vin: Optional[str] = None
    registration_date: Optional[datetime] = None
    model_year: Optional[int] = None
    owner_number: Optional[int] = None
    owner_name: Optional[str] = None
    owner_phone: Optional[str] = None
    owner_mail: Optional[str] = None
    payer_number: Optional[int] = None
    payer_name: Optional[str] = None
    payer_phone: Optional[str] = None
    payer_mail: Optional[str] = None
    payer_vat_number: Optional[str] = None
    driver_number: Optional[int] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    driver_mail: Optional[str] = None
    log_entries: List[LogEntry] = field(default_factory=list)

    @property
    def min_log_timestamp(self) -> Optional[datetime]:
        stamps = _timestamps(self.log_entries)
        return min(stamps) if stamps else None

    @property
    def max_log_timestamp(self) -> Optional[datetime]:
        stamps = _timestamps(self.log_entries)
        return max(stamps) if stamps else None


@dataclass
class Order:
    """An order header from one facility database with its attached records."""

    order_number: int
    source_environment: str
    customer_number: Optional[int] = None
    order_date: Optional[datetime] = None
    registration_plate: Optional[str] = None
    status: Optional[str] = None
    delivery_date: Optional[datetime] = None
    invoiced_flag: Optional[str] = None
    name: Optional[str] = None
    total_incl_vat: Optional[float] = None
    total_excl_vat: Optional[float] = None
    vat_amount: Optional[float] = None
    odometer: Optional[int] = None
    payer_number: Optional[int] = None
    driver_number: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    customer: Optional[Party] = None
    payer: Optional[Party] = None
    driver: Optional[Party] = None
    vehicle: Optional[Vehicle] = None
    invoices: List[Invoice] = field(default_factory=list)
    line_items: List[LineItem] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "source_environment" and "source_environment" in self.__dict__:
            raise AttributeError("source_environment cannot change once set")
        super().__setattr__(name, value)

    @property
    def parties(self) -> List[Party]:
        return [party for party in (self.customer, self.payer, self.driver) if party is not None]

    @property
    def min_log_timestamp(self) -> Optional[datetime]:
        stamps = [stamp for invoice in self.invoices for stamp in _timestamps(invoice.log_entries)]
        return min(stamps) if stamps else None

    @property
    def max_log_timestamp(self) -> Optional[datetime]:
        stamps = [stamp for invoice in self.invoices for stamp in _timestamps(invoice.log_entries)]
        return max(stamps) if stamps else None

    def to_dict(self) -> Dict[str, Any]:
        """Return a plain dictionary, including the derived timestamps."""

        data = asdict(self)
        data["min_log_timestamp"] = self.min_log_timestamp
        data["max_log_timestamp"] = self.max_log_timestamp
        return data


@dataclass
class StockReceiptRow:
    """One article line of a goods-in (stock receipt) order."""

    order_number: int
    row_number: int
    article_number: Optional[str] = None
    description: Optional[str] = None
    quantity: int = 0
    price: float = 0.0
    supplier: Optional[str] = None
    line_amount: float = 0.0
    backordered: int = 0
    row_reference: Optional[str] = None
    received_marker: Optional[str] = None
    ordered_marker: Optional[str] = None
    order_file: Optional[str] = None
    delivered: int = 0
    stock_location: Optional[str] = None
    purchase_order_number: Optional[str] = None
    total: float = 0.0
    status: float = 0.0
    order_row_number: int = 0
    type_code: Optional[str] = None
    item_external_id: int = 0
    origin: float = 0.0
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None


@dataclass
class StockReceipt:
    """Goods-in header from a supplier delivery, with its article rows."""

    order_number: int
    source_environment: str
    order_date: Optional[datetime] = None
    supplier: Optional[str] = None
    delivery_date: Optional[datetime] = None
    total: float = 0.0
    order_type: Optional[str] = None
    supplier_reference: Optional[str] = None
    customer_reference: Optional[str] = None
    received_marker: Optional[str] = None
    ordered_marker: Optional[str] = None
    correlation_id: Optional[str] = None
    e_order_id: int = 0
    delivery_code: int = 0
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    rows: List[StockReceiptRow] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class OrderQuery:
    """Filter for one fan-out call.

    Either a date range (``from_date``/``to_date``) or a set of license plates
    must be given. ``from_date`` alone narrows a plate query to recent orders.
    """

    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    license_plates: Tuple[str, ...] = ()
    status: Optional[str] = None
    invoiced: Optional[bool] = None

    @property
    def by_plates(self) -> bool:
        return bool(self.license_plates)


@dataclass(frozen=True)
class PhoneLookupItem:
    """One entry of a phone batch lookup, with optional per-item overrides."""

    call_id: str
    phone_number: str
    override_environment: Optional[str] = None
    override_from_date: Optional[datetime] = None
    override_to_date: Optional[datetime] = None
    override_status: Optional[str] = None
    override_customer_type: Optional[str] = None
    override_invoiced: Optional[bool] = None


@dataclass
class PhoneMatch:
    call_id: str
    input_phone_number: str
    order: Order


@dataclass(frozen=True)
class Facility:
    name: str
    email: str
    phone: str


@dataclass
class SubscriberField:
    key: str
    value: Any
    type: str = "text"


@dataclass
class Subscriber:
    email: str
    phone_number: str
    language: str
    fields: List[SubscriberField] = field(default_factory=list)


@dataclass
class SubscriberRequest:
    subscribers: List[Subscriber]
    tags: List[str] = field(default_factory=list)
    update_on_duplicate: bool = True

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the JSON shape accepted by the subscriber API."""

        return {
            "update_on_duplicate": self.update_on_duplicate,
            "tags": list(self.tags),
            "subscribers": [
                {
                    "email": subscriber.email,
                    "phone_number": subscriber.phone_number,
                    "language": subscriber.language,
                    "fields": [
                        {"key": item.key, "value": item.value, "type": item.type}
                        for item in subscriber.fields
                    ],
                }
                for subscriber in self.subscribers
            ],
        }


@dataclass
class SubscriberResponse:
    success: bool
    message: Optional[str] = None
    results: List[Dict[str, Any]] = field(default_factory=list)
