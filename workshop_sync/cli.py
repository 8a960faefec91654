"""Command line entry point for querying facility databases and syncing subscribers."""
import argparse
import json
import logging
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from workshop_sync.core.config import Settings
from workshop_sync.core.errors import ConfigurationError, PerEnvironmentQueryError, ValidationError
from workshop_sync.core.logging import configure_logging
from workshop_sync.core.models import OrderQuery, PhoneLookupItem
from workshop_sync.core.utils import split_list
from workshop_sync.export.rule_io import RuleIoClient
from workshop_sync.export.sinks import push_to_google_sheets, write_csv, write_excel
from workshop_sync.export.templates import orders_to_rows
from workshop_sync.ingestion.executor import STOCK_RECEIPT_PAGE_SIZE
from workshop_sync.processing.aggregator import OrderAggregator
from workshop_sync.processing.jobs import process_daily_orders, run_subscriber_flow
from workshop_sync.processing.keywords import (
    DEFAULT_KEYWORD_TABLE,
    KeywordTable,
    load_keyword_table,
)

logger = logging.getLogger(__name__)

INVOICED_CHOICES = {"yes": True, "no": False, "any": None}


def _parse_moment(raw: str) -> datetime:
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date: {raw!r}") from exc


def _parse_day(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid day: {raw!r}") from exc


def _end_of(raw: Optional[str], parsed: Optional[datetime]) -> Optional[datetime]:
    """A bare ``YYYY-MM-DD`` upper bound covers the whole day."""

    if parsed is None or raw is None:
        return parsed
    if len(raw.strip()) == 10:
        return datetime.combine(parsed.date(), time.min) + timedelta(days=1) - timedelta(microseconds=1)
    return parsed


def _add_target_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--environment", help="Query a single environment (wins over --environments)")
    parser.add_argument(
        "--environments",
        type=split_list,
        help="Comma separated environments to query (default: all configured)",
    )
    parser.add_argument("--status", help="Only orders with this status code, e.g. KON")
    parser.add_argument("--customer-type", choices=["Private", "Company"], help="Customer type filter")


def _add_range_args(parser: argparse.ArgumentParser, required: bool) -> None:
    parser.add_argument("--from", dest="from_date", required=required, help="Start date or datetime (ISO)")
    parser.add_argument("--to", dest="to_date", required=required, help="End date or datetime (ISO)")


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with one subcommand per operation."""

    parser = argparse.ArgumentParser(description="Query workshop facility databases")
    parser.add_argument("--log-level", help="Override LOG_LEVEL for this run")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("environments", help="List configured environments")
    commands.add_parser("categories", help="Show the keyword table in evaluation order")

    classify = commands.add_parser("classify", help="Classify free text into a job category")
    classify.add_argument("text", help="Line item text to classify")

    orders = commands.add_parser("orders", help="Fetch orders by date range or license plates")
    _add_range_args(orders, required=False)
    orders.add_argument("--plate", action="append", default=[], help="License plate (repeatable)")
    orders.add_argument(
        "--invoiced",
        choices=sorted(INVOICED_CHOICES),
        help="Invoice filter (default: yes for date ranges, any for plates)",
    )
    _add_target_args(orders)
    orders.add_argument(
        "--output",
        type=Path,
        default=Path("output/orders.csv"),
        help="CSV file to write orders to",
    )
    orders.add_argument(
        "--sink",
        choices=["csv", "sheets", "excel"],
        default="csv",
        help="Where to forward order rows after writing the CSV",
    )
    orders.add_argument("--spreadsheet-id", help="Google Sheets spreadsheet ID for the sheets sink")
    orders.add_argument("--worksheet", default="Sheet1", help="Worksheet title for the sheets sink")
    orders.add_argument("--service-account", type=Path, help="Google service account JSON key")
    orders.add_argument(
        "--excel-output",
        type=Path,
        default=Path("output/orders.xlsx"),
        help="Excel file to write when --sink=excel",
    )

    phones = commands.add_parser("phones", help="Match phone lookup items against orders")
    phones.add_argument("items", type=Path, help="JSON file with a list of phone lookup items")
    _add_range_args(phones, required=True)
    phones.add_argument("--invoiced", choices=sorted(INVOICED_CHOICES), default="yes")
    _add_target_args(phones)
    phones.add_argument("--output", type=Path, help="Write matches as JSON here instead of stdout")

    flow = commands.add_parser("rule-flow", help="Send contactable orders in a range to Rule.io")
    _add_range_args(flow, required=True)
    flow.add_argument("--status", help="Only orders with this status code")
    flow.add_argument("--customer-type", choices=["Private", "Company"])
    flow.add_argument("--dry-run", action="store_true", help="Print the payload instead of sending it")

    daily = commands.add_parser("daily", help="Run the daily subscriber sync")
    daily.add_argument("--day", type=_parse_day, help="Day to sync (default: yesterday)")
    daily.add_argument("--dry-run", action="store_true", help="Build the payload without sending it")

    receipts = commands.add_parser("stock-receipts", help="Page through goods-in orders by delivery date")
    _add_range_args(receipts, required=True)
    receipts.add_argument("--environment", help="Environment to query (default: first configured)")
    receipts.add_argument("--skip", type=int, default=0, help="Receipts to skip (default: 0)")
    receipts.add_argument(
        "--take", type=int, default=STOCK_RECEIPT_PAGE_SIZE, help="Page size (default: %(default)s)"
    )
    receipts.add_argument("--output", type=Path, help="Write receipts as JSON here instead of stdout")

    return parser


def _range(args: argparse.Namespace) -> Dict[str, Optional[datetime]]:
    from_date = _parse_moment(args.from_date) if args.from_date else None
    to_date = _parse_moment(args.to_date) if args.to_date else None
    return {"from_date": from_date, "to_date": _end_of(args.to_date, to_date)}


def _invoiced(args: argparse.Namespace, by_plates: bool) -> Optional[bool]:
    if args.invoiced is None:
        return None if by_plates else True
    return INVOICED_CHOICES[args.invoiced]


def _optional_datetime(raw: Any) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(str(raw))
    except ValueError as exc:
        raise ValidationError(f"invalid date in phone items: {raw!r}") from exc


def load_phone_items(path: Path) -> List[PhoneLookupItem]:
    """Read lookup items; keys may be camelCase or snake_case."""

    try:
        with path.open(encoding="utf-8") as handle:
            raw = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise ValidationError(f"Could not read phone items from {path}: {exc}") from exc
    if not isinstance(raw, list) or not all(isinstance(entry, dict) for entry in raw):
        raise ValidationError(f"{path} must contain a JSON list of items")

    def pick(entry: Dict[str, Any], *names: str) -> Any:
        for name in names:
            if entry.get(name) is not None:
                return entry[name]
        return None

    items = []
    for entry in raw:
        items.append(
            PhoneLookupItem(
                call_id=str(pick(entry, "callId", "call_id") or ""),
                phone_number=str(pick(entry, "phoneNumber", "phone_number") or ""),
                override_environment=pick(entry, "overrideDatabase", "override_environment"),
                override_from_date=_optional_datetime(pick(entry, "overrideFromDate", "override_from_date")),
                override_to_date=_optional_datetime(pick(entry, "overrideToDate", "override_to_date")),
                override_status=pick(entry, "overrideOrhStat", "override_status"),
                override_customer_type=pick(entry, "overrideCustomerType", "override_customer_type"),
                override_invoiced=pick(entry, "overrideInvoiced", "override_invoiced"),
            )
        )
    return items


def _dump(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2, default=str)


def _run_orders(args: argparse.Namespace, settings: Settings) -> None:
    plates = tuple(args.plate)
    query = OrderQuery(
        license_plates=plates,
        status=args.status,
        invoiced=_invoiced(args, bool(plates)),
        **_range(args),
    )
    aggregator = OrderAggregator.from_settings(settings)
    orders = aggregator.aggregate(
        query,
        environment=args.environment,
        environments=args.environments,
        customer_type=args.customer_type,
    )
    rows = orders_to_rows(orders)
    write_csv(rows, args.output)

    if args.sink == "excel":
        write_excel(rows, args.excel_output)
    elif args.sink == "sheets":
        if not args.spreadsheet_id:
            raise ConfigurationError("--spreadsheet-id is required when --sink=sheets")
        push_to_google_sheets(
            rows,
            spreadsheet_id=args.spreadsheet_id,
            worksheet_title=args.worksheet,
            service_account_path=args.service_account,
        )
    print(f"Wrote {len(orders)} orders to {args.output}")


def _run_phones(args: argparse.Namespace, settings: Settings) -> None:
    items = load_phone_items(args.items)
    query = OrderQuery(status=args.status, invoiced=INVOICED_CHOICES[args.invoiced], **_range(args))
    aggregator = OrderAggregator.from_settings(settings)
    matches = aggregator.match_phone_numbers(
        items,
        query,
        environment=args.environment,
        environments=args.environments,
        customer_type=args.customer_type,
    )
    payload = [
        {"callId": match.call_id, "inputPhoneNumber": match.input_phone_number, "order": match.order.to_dict()}
        for match in matches
    ]
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(_dump(payload), encoding="utf-8")
        print(f"Wrote {len(matches)} matches to {args.output}")
    else:
        print(_dump(payload))


def _keyword_table(settings: Settings) -> KeywordTable:
    if settings.keyword_table_file:
        return load_keyword_table(settings.keyword_table_file)
    return DEFAULT_KEYWORD_TABLE


def _client(settings: Settings, dry_run: bool) -> Optional[RuleIoClient]:
    return None if dry_run else RuleIoClient.from_settings(settings)


def _report_flow(result: Any, dry_run: bool) -> None:
    if dry_run and result.request is not None:
        print(_dump(result.request.to_payload()))
    print(
        f"Fetched {result.fetched} orders, {result.contactable} contactable, "
        f"sent={result.sent}, success={result.success}"
    )
    if not result.success:
        raise SystemExit(1)


def _run_rule_flow(args: argparse.Namespace, settings: Settings) -> None:
    window = _range(args)
    result = run_subscriber_flow(
        OrderAggregator.from_settings(settings),
        _client(settings, args.dry_run),
        settings,
        window["from_date"],
        window["to_date"],
        status=args.status,
        customer_type=args.customer_type,
        dry_run=args.dry_run,
    )
    _report_flow(result, args.dry_run)


def _run_stock_receipts(args: argparse.Namespace, settings: Settings) -> None:
    aggregator = OrderAggregator.from_settings(settings)
    environment = aggregator.registry.resolve_targets(args.environment)[0]
    window = _range(args)
    receipts = aggregator.executor.fetch_stock_receipts(
        environment,
        window["from_date"],
        window["to_date"],
        skip=args.skip,
        take=args.take,
    )
    payload = [receipt.to_dict() for receipt in receipts]
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(_dump(payload), encoding="utf-8")
        print(f"Wrote {len(receipts)} stock receipts to {args.output}")
    else:
        print(_dump(payload))


def _run_daily(args: argparse.Namespace, settings: Settings) -> None:
    result = process_daily_orders(
        OrderAggregator.from_settings(settings),
        _client(settings, args.dry_run),
        settings,
        day=args.day,
        dry_run=args.dry_run,
    )
    _report_flow(result, args.dry_run)


def main() -> None:
    """Entrypoint for the ``workshop-sync`` command."""

    parser = build_parser()
    args = parser.parse_args()
    configure_logging(args.log_level)

    try:
        settings = Settings.from_env()
        if args.command == "environments":
            for environment in OrderAggregator.from_settings(settings).list_environments():
                print(environment)
        elif args.command == "categories":
            for category in _keyword_table(settings).categories:
                print(f"{category.name}: {', '.join(keyword.strip() for keyword in category.keywords)}")
        elif args.command == "classify":
            keyword, category = _keyword_table(settings).classify(args.text)
            print(f"{category or '-'}\t{keyword or '-'}")
        elif args.command == "orders":
            _run_orders(args, settings)
        elif args.command == "phones":
            _run_phones(args, settings)
        elif args.command == "rule-flow":
            _run_rule_flow(args, settings)
        elif args.command == "stock-receipts":
            _run_stock_receipts(args, settings)
        elif args.command == "daily":
            _run_daily(args, settings)
    except (
        ConfigurationError,
        ValidationError,
        PerEnvironmentQueryError,
        argparse.ArgumentTypeError,
    ) as exc:
        logger.error("%s", exc)
        parser.exit(2, f"error: {exc}\n")


if __name__ == "__main__":
    main()
