"""Pytest configuration to make the local package importable without installation."""
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Dict, List

import pytest

# Ensure repository root is on sys.path for module resolution
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import create_engine

from workshop_sync.core.config import Settings
from workshop_sync.ingestion.environments import EnvironmentRegistry
from workshop_sync.ingestion.executor import EnvironmentQueryExecutor
from workshop_sync.ingestion.schema import (
    customers,
    invoice_logs,
    invoices,
    metadata,
    order_rows,
    orders,
    stock_receipt_rows,
    stock_receipts,
    vehicles,
)
from workshop_sync.processing.aggregator import OrderAggregator

TODAY = date(2024, 6, 1)


def sample_rows() -> Dict[str, List[dict]]:
    """A small facility: three customers, two vehicles, four orders and four stock receipts."""

    return {
        "kunreg": [
            {
                "kun_kunr": 1,
                "kun_namn": "Andersson, Erik",
                "kun_adr1": "Storgatan 1",
                "kun_padr": "945 33 ROSVIK",
                "kun_orgn": "850101-1234",
                "kun_tel1": "0920-230088",
                "kun_tel2": "070-383 35 67",
                "kun_epostadress": "erik@example.com",
            },
            {
                "kun_kunr": 2,
                "kun_namn": "Bilfirma AB",
                "kun_padr": "972 38 LULEÅ",
                "kun_orgn": "556677-8899",
                "kun_tel1": "0920-12345",
            },
            {
                "kun_kunr": 3,
                "kun_namn": "Nilsson, Anna",
                "kun_padr": "903 25 UMEÅ",
                "kun_orgn": "920315-5678",
                "kun_tel1": "+46 73 111 22 33",
            },
        ],
        "bilreg": [
            {
                "bil_renr": "ABC123",
                "fabrikat": "Volvo",
                "bil_betekning": "V70",
                "bil_arsm": 2015,
                "bil_vehiclecat": "Personbil",
                "bil_fuel": "Diesel",
            },
            {"bil_renr": "XYZ789", "fabrikat": "Fiat", "bil_betekning": "Ducato", "bil_arsm": 2019},
        ],
        "ordhuv": [
            {
                "orh_dokn": 1001,
                "orh_kunr": 1,
                "orh_dokd": datetime(2024, 5, 2, 10, 0),
                "orh_renr": "ABC123",
                "orh_stat": "KON",
                "orh_summainkl": 1250.0,
                "orh_summaexkl": 1000.0,
                "orh_momsbel": 250.0,
                "orh_mils": 12345,
                "orh_betkunr": 1,
                "orh_created_at": datetime(2024, 5, 2, 9, 0),
            },
            {
                "orh_dokn": 1002,
                "orh_kunr": 2,
                "orh_dokd": datetime(2024, 5, 2, 14, 0),
                "orh_renr": "XYZ789",
                "orh_stat": "KON",
                "orh_summainkl": 3100.5,
                "orh_mils": 0,
                "orh_betkunr": 2,
                "orh_driver_no": 3,
            },
            {
                "orh_dokn": 1003,
                "orh_kunr": 3,
                "orh_dokd": datetime(2024, 5, 3, 8, 0),
                "orh_renr": "ABC123",
                "orh_stat": "PÅG",
            },
            {
                "orh_dokn": 1004,
                "orh_kunr": 1,
                "orh_dokd": datetime(2024, 4, 10, 9, 0),
                "orh_renr": "ABC123",
                "orh_stat": "KON",
            },
        ],
        "ordrad": [
            {"ord_dokn": 1001, "ord_radnr": 1, "ord_artb": "Byte bromsklossar fram", "ord_anta": 1.5, "ord_typ": "A"},
            {"ord_dokn": 1001, "ord_radnr": 2, "ord_artb": "AC kontroll", "ord_anta": 1.0, "ord_typ": "A"},
            {"ord_dokn": 1001, "ord_radnr": 3, "ord_artb": "Bromsklossar", "ord_anta": 1.0, "ord_typ": "D"},
            {"ord_dokn": 1002, "ord_radnr": 1, "ord_artb": "Felsökning motor", "ord_anta": 2.0, "ord_typ": "A"},
            {
                "ord_dokn": 1002,
                "ord_radnr": 2,
                "ord_artb": "Takluckepackning",
                "ord_anta": 1.0,
                "ord_typ": "D",
                "ord_kod": "Husbil",
            },
            {"ord_dokn": 1003, "ord_radnr": 1, "ord_artb": "Allmänt arbete", "ord_anta": 2.0, "ord_typ": "A"},
            {"ord_dokn": 1004, "ord_radnr": 1, "ord_artb": "Årlig service", "ord_anta": 1.0, "ord_typ": "A"},
        ],
        "invoiceindividual": [
            {"invoice_no": 1001, "vehicle_no": "ABC123", "owner_no": 1, "owner_name": "Andersson, Erik"},
            {"invoice_no": 1002, "vehicle_no": "XYZ789", "owner_no": 2, "owner_name": "Bilfirma AB"},
            {"invoice_no": 1004, "vehicle_no": "ABC123", "owner_no": 1},
        ],
        "fortnox_log": [
            {"id": 1, "time_stamp": datetime(2024, 5, 2, 16, 0), "transaction_no": 11, "key_no": "1001"},
            {"id": 2, "time_stamp": datetime(2024, 5, 2, 17, 0), "transaction_no": 12, "key_no": "1002"},
            {
                "id": 3,
                "time_stamp": datetime(2024, 5, 3, 9, 0),
                "transaction_no": 13,
                "key_no": "1002",
                "error_code": "2000",
                "error_message": "Retry",
            },
            {"id": 4, "time_stamp": datetime(2024, 4, 10, 12, 0), "transaction_no": 14, "key_no": "1004"},
        ],
        "laginkhd": [
            {
                "ordernr": 501,
                "orderdatum": datetime(2024, 4, 28, 9, 0),
                "lev": "BOSCH",
                "inlevdatum": datetime(2024, 5, 2, 8, 0),
                "summa": 1500.0,
                "ordertyp": "L",
                "levref": "B-9921",
            },
            {"ordernr": 502, "lev": "MECA", "inlevdatum": datetime(2024, 5, 2, 13, 0), "summa": 320.5},
            {"ordernr": 503, "lev": "BOSCH", "inlevdatum": datetime(2024, 5, 5, 10, 0), "summa": 99.0},
            {"ordernr": 504, "lev": "MECA", "inlevdatum": datetime(2024, 5, 3, 7, 30)},
        ],
        "laginkrd": [
            {"ordernr": 501, "radnr": 2, "artnr": "0986494", "ben": "Bromsklossar", "antal": 2, "pris": 450.0},
            {"ordernr": 501, "radnr": 1, "artnr": "0451103", "ben": "Oljefilter", "antal": 4, "pris": 150.0},
            {"ordernr": 502, "radnr": 1, "artnr": "M-77", "ben": "Torkarblad", "antal": 1, "rest": 1},
            {"ordernr": 503, "radnr": 1, "artnr": "0242236", "ben": "Tändstift", "antal": 4},
        ],
    }


TABLES = {
    "kunreg": customers,
    "bilreg": vehicles,
    "ordhuv": orders,
    "ordrad": order_rows,
    "invoiceindividual": invoices,
    "fortnox_log": invoice_logs,
    "laginkhd": stock_receipts,
    "laginkrd": stock_receipt_rows,
}


@pytest.fixture
def make_database(tmp_path: Path) -> Callable[..., str]:
    """Create a SQLite facility database and return its SQLAlchemy URL."""

    def _make(name: str, rows: Dict[str, List[dict]] = None) -> str:
        path = tmp_path / f"{name}.sqlite"
        url = f"sqlite:///{path}"
        engine = create_engine(url)
        metadata.create_all(engine)
        with engine.begin() as connection:
            for table_name, table_rows in (rows if rows is not None else sample_rows()).items():
                # Rows leave different columns empty, so insert one at a time.
                for row in table_rows:
                    connection.execute(TABLES[table_name].insert().values(**row))
        engine.dispose()
        return url

    return _make


@pytest.fixture
def broken_url(tmp_path: Path) -> str:
    """A SQLite URL whose directory does not exist, so connecting fails."""

    return f"sqlite:///{tmp_path / 'missing' / 'nowhere.sqlite'}"


@pytest.fixture
def make_aggregator():
    """Build an aggregator over the given environment URLs."""

    def _make(urls: Dict[str, str], **settings_overrides) -> OrderAggregator:
        settings = Settings(
            environments=tuple(urls),
            connection_strings=dict(urls),
            **settings_overrides,
        )
        registry = EnvironmentRegistry.from_settings(settings)
        executor = EnvironmentQueryExecutor(registry, settings=settings, today=TODAY)
        return OrderAggregator(registry, executor, max_workers=settings.max_workers)

    return _make


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep local secrets files and deployment env vars out of the tests."""

    monkeypatch.setenv("WORKSHOP_ENV_FILE", str(tmp_path / "absent.env"))
    for key in ("RULE_IO_BASE_URL", "RULE_IO_TOKEN", "STRICT_FANOUT", "KEYWORD_TABLE_FILE"):
        monkeypatch.delenv(key, raising=False)
