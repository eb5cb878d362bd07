"""
LocalStore: generic CRUD over any table in the local store.

Rows go in and come out as plain dicts keyed by column name. There is no
per-table validation; anything SQLite rejects (unknown column, constraint
violation, malformed SQL) surfaces as LocalStoreError to the caller.

Every insert/update on a tracked table appends one ChangeLogEntry in the
same transaction as the write, so a row change and its log entry commit
or roll back together. Deletes are only logged when capture_deletes is on.

Typed access per entity goes through repository(Model). Sales, cars and
journal entries get repositories with the extra queries screens need.
Per-company settings live in app_settings (local only, never logged).
raw() is the escape hatch for ad-hoc SQL and bypasses change capture
entirely.

watermark(), merge_remote() and replace_scope() exist for the sync engine:
they apply remote rows without logging them, so pulled data is never
echoed back on the next push.
"""
import json
import logging
from typing import Any, Dict, Generic, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar, Union

from sqlalchemy import Table, func, select
from sqlmodel import SQLModel

from bizsync.db.defaults import new_id, now_iso
from bizsync.db.schema import MODELS_BY_TABLE, SyncableTable, get_table, scope_column
from bizsync.errors import LocalStoreError, store_errors
from bizsync.models.accounting import JournalEntry, JournalEntryLine
from bizsync.models.sync import ChangeOperation
from bizsync.models.trading import Car, Sale
from bizsync.store.app_settings import AppSettings
from bizsync.store.change_log import ChangeLog

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)

# Keeps IN (...) lists well under SQLite's bound-parameter limit
_DELETE_CHUNK = 500


def _defer_foreign_keys(conn) -> None:
    """Check foreign keys once at commit instead of per statement.

    Rows of a self-referencing table (account_categories.parent_id) arrive
    in updated_at order, so a child can precede its parent within one batch.
    """
    conn.exec_driver_sql("PRAGMA defer_foreign_keys = ON")


def _column_value(value: Any) -> Any:
    """JSON-encode nested values; SQLite has no column type for them."""
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


class LocalStore:
    """Generic table access with transparent change capture."""

    def __init__(self, engine, *, capture_deletes: bool = False):
        self.engine = engine
        self.capture_deletes = capture_deletes
        self.change_log = ChangeLog(engine)
        self.app_settings = AppSettings(engine)

    # ─── Reads ────────────────────────────────────────────────────────────────

    def get_all(self, table_name: str, company_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """All rows of a table, optionally restricted to one company."""
        table = get_table(table_name)
        stmt = select(table)
        if company_id is not None:
            stmt = stmt.where(table.c[scope_column(table_name)] == company_id)
        with store_errors(f"select from {table_name}"), self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(stmt)]

    def get_by_id(self, table_name: str, record_id: str) -> Optional[Dict[str, Any]]:
        table = get_table(table_name)
        with store_errors(f"select from {table_name}"), self.engine.connect() as conn:
            return self._fetch(conn, table, record_id)

    # ─── Writes ───────────────────────────────────────────────────────────────

    def insert(self, table_name: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it as stored (with id and timestamps)."""
        table = get_table(table_name)
        values = self._with_defaults(table_name, fields)

        with store_errors(f"insert into {table_name}"), self.engine.begin() as conn:
            conn.execute(table.insert().values(**values))
            row = self._fetch(conn, table, values["id"])
            self.change_log.record(conn, table_name, row, ChangeOperation.INSERT)
        return row

    def update(self, table_name: str, record_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update a row, always stamping updated_at. Returns None for an unknown id."""
        table = get_table(table_name)
        if "id" in fields and fields["id"] != record_id:
            raise LocalStoreError(f"Cannot change id of {table_name} row {record_id}")
        values = {k: _column_value(v) for k, v in fields.items() if k != "id"}
        values["updated_at"] = now_iso()

        with store_errors(f"update {table_name}"), self.engine.begin() as conn:
            result = conn.execute(
                table.update().where(table.c.id == record_id).values(**values)
            )
            if result.rowcount == 0:
                return None
            row = self._fetch(conn, table, record_id)
            self.change_log.record(conn, table_name, row, ChangeOperation.UPDATE)
        return row

    def delete(self, table_name: str, record_id: str) -> bool:
        """Delete a row. Returns False when nothing matched."""
        table = get_table(table_name)
        with store_errors(f"delete from {table_name}"), self.engine.begin() as conn:
            row = self._fetch(conn, table, record_id) if self.capture_deletes else None
            result = conn.execute(table.delete().where(table.c.id == record_id))
            if result.rowcount and row is not None:
                self.change_log.record(conn, table_name, row, ChangeOperation.DELETE)
        return result.rowcount > 0

    def raw(self, statement: str, params: Sequence[Any] = ()) -> Union[List[Dict[str, Any]], int]:
        """Run an ad-hoc statement with ? placeholders.

        Returns row dicts for statements that produce rows, otherwise the
        affected row count. Nothing run here is recorded in the change log.
        """
        with store_errors("raw statement"), self.engine.begin() as conn:
            if params:
                result = conn.exec_driver_sql(statement, tuple(params))
            else:
                result = conn.exec_driver_sql(statement)
            if result.returns_rows:
                return [dict(row._mapping) for row in result]
            return result.rowcount

    def repository(self, model: Type[ModelT]) -> "Repository[ModelT]":
        """Typed view of one table; some tables get extra queries."""
        return REPOSITORIES.get(model, Repository)(self, model)

    # ─── Remote merge (sync engine only) ──────────────────────────────────────

    def watermark(self, table_name: str, scope_col: str, scope: str) -> Optional[str]:
        """Most recent local updated_at for one company, None for no rows."""
        table = get_table(table_name)
        stmt = select(func.max(table.c.updated_at)).where(table.c[scope_col] == scope)
        with store_errors(f"watermark for {table_name}"), self.engine.connect() as conn:
            return conn.execute(stmt).scalar()

    def merge_remote(self, table_name: str, records: Iterable[Dict[str, Any]]) -> int:
        """Apply remote rows by id: overwrite existing rows, insert new ones.

        Runs in one transaction; a failure leaves the table untouched.
        """
        table = get_table(table_name)
        merged = 0
        with store_errors(f"merge into {table_name}"), self.engine.begin() as conn:
            _defer_foreign_keys(conn)
            for record in records:
                values = self._remote_values(table, record)
                record_id = values.get("id")
                if record_id is None:
                    raise LocalStoreError(f"Remote {table_name} row has no id")

                exists = conn.execute(
                    select(table.c.id).where(table.c.id == record_id)
                ).first()
                if exists:
                    changes = {k: v for k, v in values.items() if k != "id"}
                    if changes:
                        conn.execute(
                            table.update().where(table.c.id == record_id).values(**changes)
                        )
                else:
                    conn.execute(table.insert().values(**values))
                merged += 1
        return merged

    def replace_scope(
        self,
        scope: str,
        batches: Sequence[Tuple[SyncableTable, List[Dict[str, Any]]]],
    ) -> int:
        """Make the local rows of one company equal the given remote rows.

        batches must be in parent-before-child order. Stale rows are deleted
        children first, then every remote row is written parents first with
        INSERT OR REPLACE. All in one transaction.
        """
        loaded = 0
        with store_errors(f"replace rows of company {scope}"), self.engine.begin() as conn:
            _defer_foreign_keys(conn)
            for sync_table, records in reversed(batches):
                table = get_table(sync_table.name)
                remote_ids = {r.get("id") for r in records}
                local_ids = {
                    row[0]
                    for row in conn.execute(
                        select(table.c.id).where(table.c[sync_table.scope_column] == scope)
                    )
                }
                stale = sorted(local_ids - remote_ids)
                for start in range(0, len(stale), _DELETE_CHUNK):
                    chunk = stale[start:start + _DELETE_CHUNK]
                    conn.execute(table.delete().where(table.c.id.in_(chunk)))
                if stale:
                    logger.debug("Removed %d local-only %s rows", len(stale), sync_table.name)

            for sync_table, records in batches:
                table = get_table(sync_table.name)
                for record in records:
                    conn.execute(
                        table.insert()
                        .prefix_with("OR REPLACE")
                        .values(**self._remote_values(table, record))
                    )
                loaded += len(records)
        return loaded

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _fetch(self, conn, table: Table, record_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(select(table).where(table.c.id == record_id)).first()
        return dict(row._mapping) if row is not None else None

    def _with_defaults(self, table_name: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Model defaults, then caller fields, then store-maintained id/timestamps."""
        values: Dict[str, Any] = {}
        model = MODELS_BY_TABLE[table_name]
        for name, info in model.model_fields.items():
            if name in fields or info.is_required():
                continue
            default = info.get_default(call_default_factory=True)
            if default is not None:
                values[name] = default

        values.update({k: _column_value(v) for k, v in fields.items()})

        if values.get("id") is None:
            values["id"] = new_id()
        now = now_iso()
        if "created_at" not in fields:
            values["created_at"] = now
        if "updated_at" not in fields:
            values["updated_at"] = now
        return values

    def _remote_values(self, table: Table, record: Dict[str, Any]) -> Dict[str, Any]:
        """Keep only columns the local table has."""
        dropped = [k for k in record if k not in table.c]
        if dropped:
            logger.debug("Ignoring remote-only %s columns: %s", table.name, ", ".join(dropped))
        return {k: _column_value(v) for k, v in record.items() if k in table.c}


class Repository(Generic[ModelT]):
    """Typed view of one table, returning SQLModel instances.

    Usage:
        customers = store.repository(Customer)
        c = customers.create(Customer(company_id=cid, name="Ali", phone="0500"))
        customers.update(c.id, {"phone": "0501"})
    """

    def __init__(self, store: LocalStore, model: Type[ModelT]):
        self.store = store
        self.model = model
        self.table_name: str = model.__tablename__

    def get_all(self, company_id: Optional[str] = None) -> List[ModelT]:
        return [self.model.model_validate(row) for row in self.store.get_all(self.table_name, company_id)]

    def get(self, record_id: str) -> Optional[ModelT]:
        row = self.store.get_by_id(self.table_name, record_id)
        return self.model.model_validate(row) if row is not None else None

    def create(self, record: Union[ModelT, Dict[str, Any]]) -> ModelT:
        fields = record if isinstance(record, dict) else record.model_dump(exclude_none=True)
        return self.model.model_validate(self.store.insert(self.table_name, fields))

    def update(self, record_id: str, fields: Dict[str, Any]) -> Optional[ModelT]:
        row = self.store.update(self.table_name, record_id, fields)
        return self.model.model_validate(row) if row is not None else None

    def delete(self, record_id: str) -> bool:
        return self.store.delete(self.table_name, record_id)


class SaleRepository(Repository[Sale]):
    def next_invoice_number(self, company_id: str) -> int:
        """One past the highest invoice number of the company, 1 for the first sale."""
        table = get_table(self.table_name)
        stmt = select(func.max(table.c.invoice_number)).where(table.c.company_id == company_id)
        with store_errors("next invoice number"), self.store.engine.connect() as conn:
            current = conn.execute(stmt).scalar()
        return (current or 0) + 1


class CarRepository(Repository[Car]):
    def get_available(self, company_id: str) -> List[Car]:
        """Cars of the company still in stock."""
        table = get_table(self.table_name)
        stmt = select(table).where(table.c.company_id == company_id, table.c.status == "available")
        with store_errors("select available cars"), self.store.engine.connect() as conn:
            return [self.model.model_validate(dict(row._mapping)) for row in conn.execute(stmt)]


class JournalEntryRepository(Repository[JournalEntry]):
    def get_with_lines(self, entry_id: str) -> Optional[Tuple[JournalEntry, List[JournalEntryLine]]]:
        entry = self.get(entry_id)
        if entry is None:
            return None
        lines_table = get_table(JournalEntryLine.__tablename__)
        stmt = select(lines_table).where(lines_table.c.journal_entry_id == entry_id)
        with store_errors("select journal entry lines"), self.store.engine.connect() as conn:
            lines = [JournalEntryLine.model_validate(dict(row._mapping)) for row in conn.execute(stmt)]
        return entry, lines


REPOSITORIES: Dict[Type[SQLModel], Type[Repository]] = {
    Sale: SaleRepository,
    Car: CarRepository,
    JournalEntry: JournalEntryRepository,
}
