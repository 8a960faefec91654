"""Order queries against a single facility database."""
from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import String, and_, cast, func, select
from sqlalchemy.engine import Connection
from sqlalchemy.sql import Select

from workshop_sync.core.config import Settings
from workshop_sync.core.errors import ConfigurationError, PerEnvironmentQueryError, ValidationError
from workshop_sync.core.models import (
    Invoice,
    LineItem,
    LogEntry,
    Order,
    OrderQuery,
    Party,
    StockReceipt,
    StockReceiptRow,
    Vehicle,
)
from workshop_sync.core.utils import chunked, unique
from workshop_sync.ingestion.environments import EnvironmentRegistry
from workshop_sync.ingestion.schema import (
    customers,
    invoice_logs,
    invoices,
    order_rows,
    orders,
    stock_receipt_rows,
    stock_receipts,
    vehicles,
)
from workshop_sync.processing.keywords import (
    DEFAULT_KEYWORD_TABLE,
    KeywordTable,
    apply_classification,
    load_keyword_table,
)
from workshop_sync.processing.normalizers import derive_party_fields

logger = logging.getLogger(__name__)

STOCK_RECEIPT_PAGE_SIZE = 100

PARTY_COLUMNS = {
    "number": "kun_kunr",
    "name": "kun_namn",
    "address1": "kun_adr1",
    "address2": "kun_adr2",
    "postal_address": "kun_padr",
    "org_number": "kun_orgn",
    "tel1": "kun_tel1",
    "tel2": "kun_tel2",
    "tel3": "kun_tel3",
    "email": "kun_epostadress",
}
PARTY_ROLES = (
    ("customer", orders.c.orh_kunr),
    ("payer", orders.c.orh_betkunr),
    ("driver", orders.c.orh_driver_no),
)


def normalize_plate(plate: Optional[str]) -> str:
    return (plate or "").replace(" ", "").upper()


def _text(value: Any) -> Optional[str]:
    # Firebird CHAR columns come back space padded.
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    return default if value is None else float(value)


def _int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def _log_key():
    return cast(invoices.c.invoice_no, String(50)) == invoice_logs.c.key_no


def has_invoice_log(from_date: Optional[datetime] = None, to_date: Optional[datetime] = None):
    """Correlated EXISTS: the order has an invoice with a log entry (optionally in a range)."""

    stmt = (
        select(invoice_logs.c.id)
        .select_from(invoices.join(invoice_logs, _log_key()))
        .where(invoices.c.invoice_no == orders.c.orh_dokn)
    )
    if from_date is not None:
        stmt = stmt.where(invoice_logs.c.time_stamp >= from_date)
    if to_date is not None:
        stmt = stmt.where(invoice_logs.c.time_stamp <= to_date)
    return stmt.exists()


class EnvironmentQueryExecutor:
    """Loads fully populated orders from one environment at a time.

    Every IN list is split into chunks of ``chunk_size`` values. Failures are
    logged and turn into an empty result unless ``strict`` is set.
    """

    def __init__(
        self,
        registry: EnvironmentRegistry,
        keyword_table: KeywordTable = DEFAULT_KEYWORD_TABLE,
        settings: Optional[Settings] = None,
        today: Optional[date] = None,
    ) -> None:
        self.registry = registry
        self.keyword_table = keyword_table
        self.settings = settings or Settings()
        self.today = today

    @classmethod
    def from_settings(
        cls, settings: Settings, registry: Optional[EnvironmentRegistry] = None
    ) -> "EnvironmentQueryExecutor":
        table = (
            load_keyword_table(settings.keyword_table_file)
            if settings.keyword_table_file
            else DEFAULT_KEYWORD_TABLE
        )
        return cls(registry or EnvironmentRegistry.from_settings(settings), table, settings)

    @property
    def chunk_size(self) -> int:
        return self.settings.chunk_size

    def fetch_orders(self, environment: str, query: OrderQuery) -> List[Order]:
        """Return every matching order of ``environment``, enriched and classified."""

        engine = self.registry.connection_for(environment)
        environment = environment.strip().upper()
        started = time.perf_counter()
        try:
            with engine.connect() as connection:
                result = self._load(connection, environment, query)
        except ConfigurationError:
            raise
        except Exception as exc:
            elapsed_ms = (time.perf_counter() - started) * 1000
            if self.settings.strict:
                raise PerEnvironmentQueryError(environment, str(exc)) from exc
            logger.exception(
                "Query against environment %s failed after %.0f ms; returning no orders",
                environment,
                elapsed_ms,
            )
            return []

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("Fetched %d orders from %s in %.0f ms", len(result), environment, elapsed_ms)
        return result

    # Query building -----------------------------------------------------

    def _header_select(self) -> Select:
        columns = list(orders.c)
        joined = orders
        for role, key_column in PARTY_ROLES:
            alias = customers.alias(role)
            columns.extend(
                alias.c[column].label(f"{role}_{column}") for column in PARTY_COLUMNS.values()
            )
            joined = joined.outerjoin(alias, key_column == alias.c.kun_kunr)
        return select(*columns).select_from(joined)

    def _filtered(self, stmt: Select, query: OrderQuery) -> Select:
        if query.status:
            stmt = stmt.where(func.upper(orders.c.orh_stat) == query.status.strip().upper())

        if query.by_plates:
            if query.from_date is not None:
                stmt = stmt.where(orders.c.orh_dokd >= query.from_date)
            if query.invoiced is True:
                stmt = stmt.where(has_invoice_log())
            elif query.invoiced is False:
                stmt = stmt.where(~has_invoice_log())
            return stmt

        if query.invoiced is True:
            return stmt.where(has_invoice_log(query.from_date, query.to_date))

        stmt = stmt.where(orders.c.orh_dokd.between(query.from_date, query.to_date))
        if query.invoiced is False:
            stmt = stmt.where(~has_invoice_log())
        return stmt

    def _header_rows(self, connection: Connection, query: OrderQuery) -> List[Any]:
        base = self._filtered(self._header_select(), query)
        if not query.by_plates:
            return list(connection.execute(base))

        plates = unique(normalize_plate(plate) for plate in query.license_plates if plate)
        rows: List[Any] = []
        for chunk in chunked(plates, self.chunk_size):
            stmt = base.where(func.upper(func.replace(orders.c.orh_renr, " ", "")).in_(chunk))
            rows.extend(connection.execute(stmt))
        return rows

    def _vehicles(self, connection: Connection, plates: Sequence[str]) -> Dict[str, Vehicle]:
        found: Dict[str, Vehicle] = {}
        for chunk in chunked(list(plates), self.chunk_size):
            stmt = select(vehicles).where(
                func.upper(func.replace(vehicles.c.bil_renr, " ", "")).in_(chunk)
            )
            for row in connection.execute(stmt):
                plate = _text(row.bil_renr) or ""
                found[normalize_plate(plate)] = Vehicle(
                    registration_plate=plate,
                    make=_text(row.fabrikat),
                    model=_text(row.bil_betekning),
                    model_year=_int(row.bil_arsm),
                    category=_text(row.bil_vehiclecat),
                    fuel_type=_text(row.bil_fuel),
                    vin=_text(row.bil_chas),
                )
        return found

    def _line_items(self, connection: Connection, numbers: Sequence[int]) -> Dict[int, List[LineItem]]:
        found: Dict[int, List[LineItem]] = {}
        for chunk in chunked(list(numbers), self.chunk_size):
            stmt = (
                select(order_rows)
                .where(order_rows.c.ord_dokn.in_(chunk))
                .order_by(order_rows.c.ord_dokn, order_rows.c.ord_radnr)
            )
            for row in connection.execute(stmt):
                found.setdefault(row.ord_dokn, []).append(
                    LineItem(
                        order_number=row.ord_dokn,
                        row_number=row.ord_radnr,
                        article_number=_text(row.ord_artn),
                        article_text=_text(row.ord_artb),
                        quantity=_float(row.ord_anta),
                        unit_price=_float(row.ord_inpris),
                        discount=_float(row.ord_raba),
                        vat=_float(row.ord_moms),
                        type_code=_text(row.ord_typ),
                        material_code=_text(row.ord_kod),
                        net_sum=_float(row.ord_summaexkl),
                    )
                )
        return found

    def _invoices(
        self, connection: Connection, numbers: Sequence[int], query: OrderQuery
    ) -> Dict[int, Invoice]:
        found: Dict[int, Invoice] = {}
        only_range = not query.by_plates and query.invoiced is True
        for chunk in chunked(list(numbers), self.chunk_size):
            stmt = (
                select(invoices, invoice_logs)
                .select_from(invoices.join(invoice_logs, _log_key()))
                .where(invoices.c.invoice_no.in_(chunk))
                .order_by(invoices.c.invoice_no, invoice_logs.c.id)
            )
            if only_range:
                stmt = stmt.where(
                    invoice_logs.c.time_stamp.between(query.from_date, query.to_date)
                )
            for row in connection.execute(stmt):
                invoice = found.get(row.invoice_no)
                if invoice is None:
                    invoice = found[row.invoice_no] = self._invoice_from_row(row)
                invoice.log_entries.append(
                    LogEntry(
                        id=row.id,
                        timestamp=row.time_stamp,
                        transaction_number=_int(row.transaction_no),
                        description=_text(row.description),
                        error_code=_text(row.error_code),
                        error_message=_text(row.error_message),
                        log_type=_int(row.log_type),
                        key_number=_text(row.key_no),
                    )
                )
        return found

    @staticmethod
    def _invoice_from_row(row: Any) -> Invoice:
        return Invoice(
            invoice_number=row.invoice_no,
            vehicle_number=_text(row.vehicle_no),
            manufacturer=_text(row.manufacturer),
            model=_text(row.model),
            vin=_text(row.vin),
            registration_date=row.registration_date,
            model_year=_int(row.model_year),
            owner_number=_int(row.owner_no),
            owner_name=_text(row.owner_name),
            owner_phone=_text(row.owner_phone),
            owner_mail=_text(row.owner_mail),
            payer_number=_int(row.payer_no),
            payer_name=_text(row.payer_name),
            payer_phone=_text(row.payer_phone),
            payer_mail=_text(row.payer_mail),
            payer_vat_number=_text(row.payer_vatno),
            driver_number=_int(row.driver_no),
            driver_name=_text(row.driver_name),
            driver_phone=_text(row.driver_phone),
            driver_mail=_text(row.driver_mail),
        )

    # Assembly -----------------------------------------------------------

    def _party(self, row: Any, role: str) -> Optional[Party]:
        mapping = row._mapping
        number = mapping[f"{role}_kun_kunr"]
        if number is None:
            return None
        raw = {field: _text(mapping[f"{role}_{column}"]) for field, column in PARTY_COLUMNS.items()}
        raw["number"] = int(number)
        return derive_party_fields(
            Party(**raw), phone_order=self.settings.phone_field_order, today=self.today
        )

    def _order_from_row(self, row: Any, environment: str) -> Order:
        return Order(
            order_number=row.orh_dokn,
            source_environment=environment,
            customer_number=_int(row.orh_kunr),
            order_date=row.orh_dokd,
            registration_plate=_text(row.orh_renr),
            status=_text(row.orh_stat),
            delivery_date=row.orh_lovdat,
            invoiced_flag=_text(row.orh_fakturerad),
            name=_text(row.orh_namn),
            total_incl_vat=_float(row.orh_summainkl, None),
            total_excl_vat=_float(row.orh_summaexkl, None),
            vat_amount=_float(row.orh_momsbel, None),
            odometer=_int(row.orh_mils),
            payer_number=_int(row.orh_betkunr),
            driver_number=_int(row.orh_driver_no),
            created_at=row.orh_created_at,
            updated_at=row.orh_updated_at,
            customer=self._party(row, "customer"),
            payer=self._party(row, "payer"),
            driver=self._party(row, "driver"),
        )

    def _load(self, connection: Connection, environment: str, query: OrderQuery) -> List[Order]:
        header_rows = self._header_rows(connection, query)
        result = [self._order_from_row(row, environment) for row in header_rows]
        result.sort(key=lambda order: (order.order_date or datetime.min, order.order_number))
        if not result:
            return result

        numbers = unique(order.order_number for order in result)
        plates = unique(
            normalize_plate(order.registration_plate) for order in result if order.registration_plate
        )
        logger.debug(
            "%s: %d order headers, %d plates, chunk size %d",
            environment,
            len(numbers),
            len(plates),
            self.chunk_size,
        )

        vehicle_by_plate = self._vehicles(connection, plates)
        items_by_order = self._line_items(connection, numbers)
        invoice_by_number = self._invoices(connection, numbers, query)

        for order in result:
            vehicle = vehicle_by_plate.get(normalize_plate(order.registration_plate))
            # Per-order copy: a back-filled category must not leak to other orders.
            order.vehicle = replace(vehicle) if vehicle else None
            order.line_items = items_by_order.get(order.order_number, [])
            invoice = invoice_by_number.get(order.order_number)
            order.invoices = [invoice] if invoice else []
            apply_classification(
                order,
                self.keyword_table,
                labor_codes=self.settings.labor_type_codes,
                material_code=self.settings.motorhome_material_code,
            )
        return result

    # Stock receipts -----------------------------------------------------

    def fetch_stock_receipts(
        self,
        environment: str,
        from_date: datetime,
        to_date: datetime,
        skip: int = 0,
        take: int = STOCK_RECEIPT_PAGE_SIZE,
    ) -> List[StockReceipt]:
        """Return one page of goods-in orders delivered between the two dates.

        Paging counts headers ordered by order number, so a page never splits
        a receipt's rows. Errors are raised, not swallowed: this call serves a
        single environment.
        """

        if from_date is None or to_date is None:
            raise ValidationError("Stock receipts need both from_date and to_date")
        if from_date > to_date:
            raise ValidationError("from_date must be less than or equal to to_date")
        if skip < 0 or take < 1:
            raise ValidationError("skip must be >= 0 and take must be >= 1")

        engine = self.registry.connection_for(environment)
        environment = environment.strip().upper()
        logger.info("Fetching stock receipts from %s with skip %d, take %d", environment, skip, take)
        started = time.perf_counter()
        try:
            with engine.connect() as connection:
                receipts = self._load_receipts(connection, environment, from_date, to_date, skip, take)
        except Exception as exc:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.exception("Stock receipt query against %s failed after %.0f ms", environment, elapsed_ms)
            raise PerEnvironmentQueryError(environment, str(exc)) from exc

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Fetched %d stock receipts from %s in %.0f ms", len(receipts), environment, elapsed_ms
        )
        return receipts

    def _load_receipts(
        self,
        connection: Connection,
        environment: str,
        from_date: datetime,
        to_date: datetime,
        skip: int,
        take: int,
    ) -> List[StockReceipt]:
        stmt = (
            select(stock_receipts)
            .where(stock_receipts.c.inlevdatum.between(from_date, to_date))
            .order_by(stock_receipts.c.ordernr)
            .offset(skip)
            .limit(take)
        )
        receipts = [self._receipt_from_row(row, environment) for row in connection.execute(stmt)]
        by_number = {receipt.order_number: receipt for receipt in receipts}

        for chunk in chunked(list(by_number), self.chunk_size):
            rows_stmt = (
                select(stock_receipt_rows)
                .where(stock_receipt_rows.c.ordernr.in_(chunk))
                .order_by(stock_receipt_rows.c.ordernr, stock_receipt_rows.c.radnr)
            )
            for row in connection.execute(rows_stmt):
                by_number[row.ordernr].rows.append(self._receipt_row(row))
        return receipts

    @staticmethod
    def _receipt_from_row(row: Any, environment: str) -> StockReceipt:
        return StockReceipt(
            order_number=row.ordernr,
            source_environment=environment,
            order_date=row.orderdatum,
            supplier=_text(row.lev),
            delivery_date=row.inlevdatum,
            total=_float(row.summa),
            order_type=_text(row.ordertyp),
            supplier_reference=_text(row.levref),
            customer_reference=_text(row.kundref),
            received_marker=_text(row.inlev),
            ordered_marker=_text(row.best),
            correlation_id=_text(row.correlationid),
            e_order_id=_int(row.eorderid) or 0,
            delivery_code=_int(row.deliverycode) or 0,
            created_by=_text(row.lagink_created_by),
            created_at=row.lagink_created_at,
            updated_by=_text(row.lagink_updated_by),
            updated_at=row.lagink_updated_at,
        )

    @staticmethod
    def _receipt_row(row: Any) -> StockReceiptRow:
        return StockReceiptRow(
            order_number=row.ordernr,
            row_number=row.radnr,
            article_number=_text(row.artnr),
            description=_text(row.ben),
            quantity=_int(row.antal) or 0,
            price=_float(row.pris),
            supplier=_text(row.lev),
            line_amount=_float(row.rad),
            backordered=_int(row.rest) or 0,
            row_reference=_text(row.radref),
            received_marker=_text(row.inlev),
            ordered_marker=_text(row.best),
            order_file=_text(row.bestfil),
            delivered=_int(row.levererat) or 0,
            stock_location=_text(row.lp),
            purchase_order_number=_text(row.bestnr),
            total=_float(row.summa),
            status=_float(row.status),
            order_row_number=_int(row.ordradnr) or 0,
            type_code=_text(row.typ),
            item_external_id=_int(row.item_external_id) or 0,
            origin=_float(row.origin),
            created_by=_text(row.laginkrd_created_by),
            created_at=row.laginkrd_created_at,
            updated_by=_text(row.laginkrd_updated_by),
            updated_at=row.laginkrd_updated_at,
        )
