"""Concurrent fan-out of order queries across facility databases."""
from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from workshop_sync.core.config import Settings
from workshop_sync.core.errors import ValidationError
from workshop_sync.core.models import Order, OrderQuery, PhoneLookupItem, PhoneMatch
from workshop_sync.ingestion.environments import EnvironmentRegistry
from workshop_sync.ingestion.executor import EnvironmentQueryExecutor, normalize_plate
from workshop_sync.processing.normalizers import clean_phone_number

logger = logging.getLogger(__name__)


def validate_query(query: OrderQuery) -> None:
    """Reject malformed queries before any database is touched."""

    if query.by_plates:
        if any(not (plate or "").strip() for plate in query.license_plates):
            raise ValidationError("License plates must not be blank")
        return

    if query.from_date is None or query.to_date is None:
        raise ValidationError("Provide a date range or at least one license plate")
    if query.from_date > query.to_date:
        raise ValidationError("from_date must be less than or equal to to_date")


def validate_phone_items(items: Sequence[PhoneLookupItem]) -> None:
    if not items:
        raise ValidationError("At least one phone number item is required")
    if any(not (item.phone_number or "").strip() for item in items):
        raise ValidationError("All phone numbers must have a value")


def filter_customer_type(orders: Iterable[Order], customer_type: Optional[str]) -> List[Order]:
    """Keep orders whose customer has ``customer_type``; no filter when it is empty."""

    if not customer_type:
        return list(orders)
    wanted = customer_type.strip().lower()
    return [
        order
        for order in orders
        if order.customer is not None and (order.customer.customer_type or "").lower() == wanted
    ]


def _group_key(order: Order) -> Tuple[str, ...]:
    plate = normalize_plate(order.registration_plate)
    if plate:
        return ("plate", plate)
    return ("order", order.source_environment, str(order.order_number))


def assign_weights(orders: Sequence[Order]) -> None:
    """Give every line item ``1 / n`` where ``n`` is the item count of its plate group."""

    counts: Dict[Tuple[str, ...], int] = {}
    for order in orders:
        key = _group_key(order)
        counts[key] = counts.get(key, 0) + len(order.line_items)

    for order in orders:
        count = counts[_group_key(order)]
        for item in order.line_items:
            item.weight = 1.0 / count


def phones_of(order: Order) -> List[str]:
    """Matching keys for every phone of the customer, payer and driver."""

    keys: List[str] = []
    for party in order.parties:
        for raw in (party.tel1, party.tel2, party.tel3, party.mobile_phone):
            key = clean_phone_number(raw)
            if key and key not in keys:
                keys.append(key)
    return keys


def _matches_item(
    order: Order,
    item: PhoneLookupItem,
    environment: Optional[str],
    status: Optional[str],
    customer_type: Optional[str],
) -> bool:
    database = item.override_environment or environment
    if database and order.source_environment.lower() != database.strip().lower():
        return False
    if item.override_from_date and order.order_date and order.order_date < item.override_from_date:
        return False
    if item.override_to_date and order.order_date and order.order_date > item.override_to_date:
        return False

    wanted_status = item.override_status or status
    if wanted_status and order.status and order.status.lower() != wanted_status.lower():
        return False

    wanted_type = item.override_customer_type or customer_type
    if (
        wanted_type
        and order.customer is not None
        and order.customer.customer_type
        and order.customer.customer_type.lower() != wanted_type.lower()
    ):
        return False

    if item.override_invoiced is not None and bool(order.invoices) != item.override_invoiced:
        return False
    return True


class OrderAggregator:
    """Runs the executor for every target environment and joins the results."""

    def __init__(
        self,
        registry: EnvironmentRegistry,
        executor: EnvironmentQueryExecutor,
        max_workers: Optional[int] = None,
    ) -> None:
        self.registry = registry
        self.executor = executor
        self.max_workers = max_workers

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "OrderAggregator":
        settings = settings or Settings.from_env()
        registry = EnvironmentRegistry.from_settings(settings)
        executor = EnvironmentQueryExecutor.from_settings(settings, registry)
        return cls(registry, executor, max_workers=settings.max_workers)

    def list_environments(self) -> List[str]:
        return list(self.registry.available_environments())

    def classify(self, text: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
        return self.executor.keyword_table.classify(text)

    def _worker_count(self, targets: Sequence[str]) -> int:
        bound = self.max_workers or os.cpu_count() or 1
        return max(1, min(len(targets), bound))

    def _fan_out(self, query: OrderQuery, targets: Sequence[str]) -> List[Order]:
        started = time.perf_counter()
        with ThreadPoolExecutor(
            max_workers=self._worker_count(targets), thread_name_prefix="fanout"
        ) as pool:
            futures = [pool.submit(self.executor.fetch_orders, env, query) for env in targets]
            per_environment = [future.result() for future in futures]

        combined = [order for orders in per_environment for order in orders]
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Fan-out over %d environment(s) returned %d orders in %.0f ms",
            len(targets),
            len(combined),
            elapsed_ms,
        )
        return combined

    def aggregate(
        self,
        query: OrderQuery,
        environment: Optional[str] = None,
        environments: Optional[Iterable[str]] = None,
        customer_type: Optional[str] = None,
    ) -> List[Order]:
        """Query all target environments concurrently and concatenate the orders.

        Orders from different environments are never merged, even when their
        order numbers collide. Weights are assigned after the customer type
        filter so they cover exactly the returned line items.
        """

        validate_query(query)
        targets = self.registry.resolve_targets(environment, environments)
        combined = filter_customer_type(self._fan_out(query, targets), customer_type)
        assign_weights(combined)
        return combined

    def match_phone_numbers(
        self,
        items: Sequence[PhoneLookupItem],
        query: OrderQuery,
        environment: Optional[str] = None,
        environments: Optional[Iterable[str]] = None,
        customer_type: Optional[str] = None,
    ) -> List[PhoneMatch]:
        """Match phone lookup items against one date range fetch.

        Orders are fetched once; each item is then filtered in memory using its
        overrides, falling back to the call-wide status, customer type and
        environment.
        """

        validate_phone_items(items)
        if query.by_plates:
            raise ValidationError("Phone lookups need a date range, not license plates")
        validate_query(query)

        orders = self.aggregate(query, environment, environments, customer_type)
        indexed = [(order, phones_of(order)) for order in orders]

        collected: List[Tuple[int, List[PhoneMatch]]] = []
        lock = threading.Lock()

        def process(position: int, item: PhoneLookupItem) -> None:
            if (
                item.override_from_date
                and item.override_to_date
                and item.override_from_date > item.override_to_date
            ):
                logger.warning(
                    "Invalid date range for call %s: %s > %s",
                    item.call_id,
                    item.override_from_date,
                    item.override_to_date,
                )
                return

            key = clean_phone_number(item.phone_number)
            found = [
                PhoneMatch(item.call_id, item.phone_number, order)
                for order, keys in indexed
                if key
                and key in keys
                and _matches_item(order, item, environment, query.status, customer_type)
            ]
            if found:
                with lock:
                    collected.append((position, found))

        started = time.perf_counter()
        with ThreadPoolExecutor(
            max_workers=self._worker_count(items), thread_name_prefix="phones"
        ) as pool:
            futures = {pool.submit(process, position, item): item for position, item in enumerate(items)}
            for future, item in futures.items():
                try:
                    future.result()
                except Exception:  # pragma: no cover - keeps other items running
                    logger.exception("Phone lookup failed for call %s", item.call_id)

        # Report matches in input order regardless of which worker finished first.
        matches = [match for _, found in sorted(collected, key=lambda pair: pair[0]) for match in found]
        logger.info(
            "Matched %d orders for %d phone item(s) in %.0f ms",
            len(matches),
            len(items),
            (time.perf_counter() - started) * 1000,
        )
        return matches
