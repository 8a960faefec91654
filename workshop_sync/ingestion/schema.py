"""Table definitions for the facility databases.

Only the columns the pipeline reads are declared. Names are lowercase so the
same definitions work against Firebird (case-insensitive unquoted identifiers)
and the SQLite databases used in tests.
"""
from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    SmallInteger,
    String,
    Table,
)

metadata = MetaData()

orders = Table(
    "ordhuv",
    metadata,
    Column("orh_dokn", Integer, primary_key=True),
    Column("orh_kunr", Integer),
    Column("orh_dokd", DateTime),
    Column("orh_renr", String(20)),
    Column("orh_stat", String(10)),
    Column("orh_lovdat", DateTime),
    Column("orh_fakturerad", String(1)),
    Column("orh_namn", String(100)),
    Column("orh_summainkl", Float),
    Column("orh_summaexkl", Float),
    Column("orh_momsbel", Float),
    Column("orh_mils", Integer),
    Column("orh_betkunr", Integer),
    Column("orh_driver_no", Integer),
    Column("orh_created_at", DateTime),
    Column("orh_updated_at", DateTime),
)

customers = Table(
    "kunreg",
    metadata,
    Column("kun_kunr", Integer, primary_key=True),
    Column("kun_namn", String(100)),
    Column("kun_adr1", String(100)),
    Column("kun_adr2", String(100)),
    Column("kun_padr", String(100)),
    Column("kun_orgn", String(20)),
    Column("kun_tel1", String(30)),
    Column("kun_tel2", String(30)),
    Column("kun_tel3", String(30)),
    Column("kun_epostadress", String(100)),
)

vehicles = Table(
    "bilreg",
    metadata,
    Column("bil_renr", String(20), primary_key=True),
    Column("fabrikat", String(50)),
    Column("bil_betekning", String(100)),
    Column("bil_arsm", SmallInteger),
    Column("bil_vehiclecat", String(30)),
    Column("bil_fuel", String(30)),
    Column("bil_chas", String(30)),
)

order_rows = Table(
    "ordrad",
    metadata,
    Column("ord_dokn", Integer, primary_key=True),
    Column("ord_radnr", Integer, primary_key=True),
    Column("ord_artn", String(30)),
    Column("ord_artb", String(200)),
    Column("ord_anta", Float),
    Column("ord_inpris", Float),
    Column("ord_raba", Float),
    Column("ord_moms", Float),
    Column("ord_typ", String(5)),
    Column("ord_kod", String(30)),
    Column("ord_summaexkl", Float),
)

invoices = Table(
    "invoiceindividual",
    metadata,
    Column("invoice_no", Integer, primary_key=True),
    Column("vehicle_no", String(20)),
    Column("manufacturer", String(50)),
    Column("model", String(100)),
    Column("vin", String(30)),
    Column("registration_date", DateTime),
    Column("model_year", SmallInteger),
    Column("owner_no", Integer),
    Column("owner_name", String(100)),
    Column("owner_phone", String(30)),
    Column("owner_mail", String(100)),
    Column("payer_no", Integer),
    Column("payer_name", String(100)),
    Column("payer_phone", String(30)),
    Column("payer_mail", String(100)),
    Column("payer_vatno", String(30)),
    Column("driver_no", Integer),
    Column("driver_name", String(100)),
    Column("driver_phone", String(30)),
    Column("driver_mail", String(100)),
)

invoice_logs = Table(
    "fortnox_log",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("time_stamp", DateTime),
    Column("transaction_no", Integer),
    Column("description", String(200)),
    Column("error_code", String(30)),
    Column("error_message", String(500)),
    Column("log_type", Integer),
    Column("key_no", String(50)),
)

stock_receipts = Table(
    "laginkhd",
    metadata,
    Column("ordernr", Integer, primary_key=True),
    Column("orderdatum", DateTime),
    Column("lev", String(20)),
    Column("inlevdatum", DateTime),
    Column("summa", Float),
    Column("ordertyp", String(10)),
    Column("levref", String(50)),
    Column("kundref", String(50)),
    Column("inlev", String(10)),
    Column("best", String(10)),
    Column("correlationid", String(64)),
    Column("eorderid", Integer),
    Column("deliverycode", Integer),
    Column("lagink_created_by", String(30)),
    Column("lagink_created_at", DateTime),
    Column("lagink_updated_by", String(30)),
    Column("lagink_updated_at", DateTime),
)

stock_receipt_rows = Table(
    "laginkrd",
    metadata,
    Column("ordernr", Integer, primary_key=True),
    Column("radnr", Integer, primary_key=True),
    Column("artnr", String(30)),
    Column("ben", String(200)),
    Column("antal", Integer),
    Column("pris", Float),
    Column("lev", String(20)),
    Column("rad", Float),
    Column("rest", Integer),
    Column("radref", String(50)),
    Column("inlev", String(10)),
    Column("best", String(10)),
    Column("bestfil", String(50)),
    Column("levererat", Integer),
    Column("lp", String(20)),
    Column("bestnr", String(30)),
    Column("summa", Float),
    Column("status", Float),
    Column("ordradnr", Integer),
    Column("typ", String(5)),
    Column("item_external_id", Integer),
    Column("origin", Float),
    Column("laginkrd_created_by", String(30)),
    Column("laginkrd_created_at", DateTime),
    Column("laginkrd_updated_by", String(30)),
    Column("laginkrd_updated_at", DateTime),
)
