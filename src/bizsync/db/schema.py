"""
Schema manager: which tables exist, which are tracked, which are synced.

Tracked tables get a change-log entry for every insert/update made through
the LocalStore, written in the same transaction as the row itself. Each
tracked table declares the column subset that goes into the snapshot.

Syncable tables are the ones walked by pull() and initial_load(). The list
is ordered parents first so a referenced row is normally merged before
the rows that point at it. Ordering is per table only; rows inside one
table still arrive in updated_at order.

init_schema() is idempotent and runs at every startup.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Type

from sqlalchemy import Table
from sqlmodel import SQLModel

from bizsync.db.migrations import run_migrations
from bizsync.errors import LocalStoreError
from bizsync.models.accounting import AccountCategory, JournalEntry, JournalEntryLine, Voucher
from bizsync.models.company import AppSetting, Company, FiscalYear
from bizsync.models.payroll import Employee, PayrollRecord
from bizsync.models.sync import ChangeLogEntry, SyncRun  # noqa: F401
from bizsync.models.trading import (
    Car,
    Customer,
    Expense,
    Quotation,
    QuotationItem,
    Sale,
    Supplier,
)

RECORD_MODELS: Tuple[Type[SQLModel], ...] = (
    Company,
    FiscalYear,
    AppSetting,
    AccountCategory,
    Customer,
    Supplier,
    Employee,
    Car,
    Sale,
    Expense,
    JournalEntry,
    JournalEntryLine,
    Voucher,
    PayrollRecord,
    Quotation,
    QuotationItem,
)

MODELS_BY_TABLE: Dict[str, Type[SQLModel]] = {
    model.__tablename__: model for model in RECORD_MODELS
}

# table -> columns copied into the change-log snapshot
TRACKED_TABLES: Dict[str, Tuple[str, ...]] = {
    "customers": ("id", "company_id", "name", "phone", "address", "id_number"),
    "sales": (
        "id", "company_id", "invoice_number", "car_id", "customer_id",
        "sale_price", "sale_date", "profit",
    ),
    "cars": (
        "id", "company_id", "inventory_number", "name", "chassis_number",
        "purchase_price", "status",
    ),
    "expenses": ("id", "company_id", "description", "amount", "expense_date"),
}


@dataclass(frozen=True)
class SyncableTable:
    name: str
    scope_column: str = "company_id"


SYNC_TABLES: List[SyncableTable] = [
    SyncableTable("companies", scope_column="id"),
    SyncableTable("fiscal_years"),
    SyncableTable("account_categories"),
    SyncableTable("customers"),
    SyncableTable("suppliers"),
    SyncableTable("employees"),
    SyncableTable("cars"),
    SyncableTable("sales"),
    SyncableTable("expenses"),
    SyncableTable("journal_entries"),
    SyncableTable("journal_entry_lines"),
    SyncableTable("vouchers"),
    SyncableTable("payroll_records"),
    SyncableTable("quotations"),
    SyncableTable("quotation_items"),
]


def register_tracked_table(name: str, columns: Iterable[str]) -> None:
    """Start capturing changes for another table.

    Raises:
        LocalStoreError: if the table or one of the columns does not exist.
    """
    table = get_table(name)
    columns = tuple(columns)
    unknown = [c for c in columns if c not in table.c]
    if unknown:
        raise LocalStoreError(f"Unknown columns for {name}: {', '.join(unknown)}")
    if "id" not in columns:
        columns = ("id",) + columns
    TRACKED_TABLES[name] = columns


def snapshot_columns(name: str) -> Optional[Tuple[str, ...]]:
    """Snapshot column subset for a tracked table, None if untracked."""
    return TRACKED_TABLES.get(name)


def get_table(name: str) -> Table:
    """Look up a table by name in the shared metadata.

    The change log and audit tables are not reachable through this path.

    Raises:
        LocalStoreError: for unknown or internal tables.
    """
    if name not in MODELS_BY_TABLE:
        raise LocalStoreError(f"Unknown table: {name}")
    return SQLModel.metadata.tables[name]


def scope_column(name: str) -> str:
    """Column holding the tenant scope for a table."""
    if name == "companies":
        return "id"
    table = get_table(name)
    if "company_id" not in table.c:
        raise LocalStoreError(f"Table {name} has no company scope")
    return "company_id"


def init_schema(engine) -> None:
    """Create all tables, then apply migrations. Safe to call repeatedly."""
    SQLModel.metadata.create_all(engine)
    run_migrations(engine)
