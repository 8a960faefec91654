"""Sinks for exporting order rows to CSV, Excel and Google Sheets."""
import csv
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from workshop_sync.export.templates import ORDER_EXPORT_HEADERS

logger = logging.getLogger(__name__)


def ensure_output_dir(output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)


def _headers(rows: List[Dict[str, Any]]) -> List[str]:
    if set(rows[0]) == set(ORDER_EXPORT_HEADERS):
        return list(ORDER_EXPORT_HEADERS)
    return list(rows[0].keys())


def write_csv(rows: Iterable[Dict[str, Any]], output_path: Path) -> Path:
    """Write rows to a CSV file; an empty input still produces the header line."""

    rows = list(rows)
    ensure_output_dir(output_path)
    headers = _headers(rows) if rows else list(ORDER_EXPORT_HEADERS)
    with output_path.open("w", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=headers)
        writer.writeheader()
        writer.writerows(rows)
    logger.info("Wrote %d rows to %s", len(rows), output_path)
    return output_path


def write_excel(
    rows: Iterable[Dict[str, Any]], output_path: Path, sheet_title: str = "orders"
) -> Optional[Path]:
    """Save rows as a single-sheet workbook with a frozen header row.

    Returns ``None`` without touching the filesystem when there are no rows.
    """

    rows = list(rows)
    if not rows:
        return None

    try:
        from openpyxl import Workbook
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise ImportError("openpyxl is required for Excel sinks") from exc

    ensure_output_dir(output_path)
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title
    headers = _headers(rows)
    sheet.append(headers)
    sheet.freeze_panes = "A2"
    for row in rows:
        sheet.append([row.get(header, "") for header in headers])
    workbook.save(output_path)
    logger.info("Wrote %d rows to %s", len(rows), output_path)
    return output_path


def push_to_google_sheets(
    rows: Iterable[Dict[str, Any]],
    spreadsheet_id: str,
    worksheet_title: str = "Sheet1",
    service_account_path: Optional[Path] = None,
) -> None:
    """Replace a worksheet's contents with rows, authenticating as a service account."""

    rows = list(rows)
    if not rows:
        return

    try:
        import gspread
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise ImportError("gspread is required for Google Sheets sinks") from exc

    client = (
        gspread.service_account(filename=str(service_account_path))
        if service_account_path
        else gspread.service_account()
    )
    worksheet = client.open_by_key(spreadsheet_id).worksheet(worksheet_title)
    worksheet.clear()
    headers = _headers(rows)
    worksheet.append_rows([headers] + [[row.get(h, "") for h in headers] for row in rows])
    logger.info("Pushed %d rows to spreadsheet %s/%s", len(rows), spreadsheet_id, worksheet_title)
