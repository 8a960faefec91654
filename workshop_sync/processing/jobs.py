"""Subscriber sync flows: a date range run and the daily run built on it."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta
from typing import Optional, Tuple

from workshop_sync.core.config import Settings
from workshop_sync.core.models import OrderQuery, SubscriberRequest, SubscriberResponse
from workshop_sync.export.rule_io import RuleIoClient
from workshop_sync.export.subscribers import contactable_orders, orders_to_subscriber_request
from workshop_sync.processing.aggregator import OrderAggregator

logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    from_date: datetime
    to_date: datetime
    fetched: int = 0
    contactable: int = 0
    sent: bool = False
    request: Optional[SubscriberRequest] = None
    response: Optional[SubscriberResponse] = None

    @property
    def success(self) -> bool:
        return self.response is None or self.response.success


def day_range(day: date) -> Tuple[datetime, datetime]:
    """Start and end (inclusive, to the microsecond) of ``day``."""

    start = datetime.combine(day, dt_time.min)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)


def run_subscriber_flow(
    aggregator: OrderAggregator,
    client: Optional[RuleIoClient],
    settings: Settings,
    from_date: datetime,
    to_date: datetime,
    status: Optional[str] = None,
    customer_type: Optional[str] = None,
    dry_run: bool = False,
) -> JobResult:
    """Fetch invoiced orders, keep the contactable ones and send one subscriber request.

    With ``dry_run`` (or without a client) the request is built but not sent.
    """

    started = time.perf_counter()
    query = OrderQuery(from_date=from_date, to_date=to_date, status=status, invoiced=True)
    orders = aggregator.aggregate(query, customer_type=customer_type)
    reachable = contactable_orders(orders)
    result = JobResult(from_date, to_date, fetched=len(orders), contactable=len(reachable))
    logger.info(
        "Filtered to %d orders with email or phone (from %d total) for %s..%s",
        len(reachable),
        len(orders),
        from_date,
        to_date,
    )
    if not reachable:
        logger.info("No orders with email or phone found; nothing to send")
        return result

    result.request = orders_to_subscriber_request(
        reachable,
        registry=aggregator.registry,
        tag=settings.rule_io_tag,
        language=settings.subscriber_language,
    )
    if dry_run or client is None:
        logger.info("Dry run: built %d subscribers without sending", len(result.request.subscribers))
        return result

    result.response = client.create_subscribers(result.request)
    result.sent = True
    elapsed_ms = (time.perf_counter() - started) * 1000
    if result.response.success:
        logger.info("Sent %d subscribers in %.0f ms", len(reachable), elapsed_ms)
    else:
        logger.error("Sending subscribers failed: %s", result.response.message)
    return result


def process_daily_orders(
    aggregator: OrderAggregator,
    client: Optional[RuleIoClient],
    settings: Settings,
    day: Optional[date] = None,
    dry_run: bool = False,
) -> JobResult:
    """Sync the previous day's orders (or ``day``) with the daily status and customer type."""

    day = day or date.today() - timedelta(days=1)
    from_date, to_date = day_range(day)
    logger.info("Processing orders for %s", day.isoformat())
    return run_subscriber_flow(
        aggregator,
        client,
        settings,
        from_date,
        to_date,
        status=settings.daily_status or None,
        customer_type=settings.daily_customer_type or None,
        dry_run=dry_run,
    )
