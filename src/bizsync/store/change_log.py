"""
Append-only log of local mutations waiting to be pushed.

Entries are written by LocalStore inside the transaction that changes the
row, consumed by SyncEngine.push(), and purged by cleanup() once they have
been synced for longer than the retention window. Unsynced entries are
never purged.
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, func, insert, update
from sqlmodel import Session, select

from bizsync.db.defaults import now_iso
from bizsync.db.schema import snapshot_columns
from bizsync.models.sync import ChangeLogEntry, ChangeOperation

logger = logging.getLogger(__name__)

RETENTION_DAYS_DEFAULT = 30


class ChangeLog:
    """Reads and maintains the sync_log table."""

    def __init__(self, engine):
        self.engine = engine

    def record(
        self,
        conn,
        table_name: str,
        row: Dict[str, Any],
        operation: ChangeOperation,
    ) -> bool:
        """Append one entry for a tracked table, on the caller's connection.

        Returns False (and writes nothing) when the table is not tracked.
        """
        columns = snapshot_columns(table_name)
        if columns is None:
            return False
        snapshot = {column: row.get(column) for column in columns}
        conn.execute(
            insert(ChangeLogEntry.__table__).values(
                table_name=table_name,
                record_id=row["id"],
                operation=operation.value,
                data=json.dumps(snapshot, default=str),
                synced=False,
                created_at=now_iso(),
            )
        )
        return True

    def pending(self) -> List[ChangeLogEntry]:
        """Unsynced entries, oldest first. id breaks created_at ties."""
        with Session(self.engine) as s:
            return list(
                s.exec(
                    select(ChangeLogEntry)
                    .where(ChangeLogEntry.synced == False)  # noqa: E712
                    .order_by(ChangeLogEntry.created_at, ChangeLogEntry.id)
                ).all()
            )

    def mark_synced(self, ids: Iterable[int], now: Optional[datetime] = None) -> int:
        """Flag entries as pushed in one statement. Already-synced rows are left alone."""
        ids = list(ids)
        if not ids:
            return 0
        with self.engine.begin() as conn:
            result = conn.execute(
                update(ChangeLogEntry.__table__)
                .where(ChangeLogEntry.__table__.c.id.in_(ids))
                .where(ChangeLogEntry.__table__.c.synced == False)  # noqa: E712
                .values(synced=True, synced_at=now_iso(now))
            )
        return result.rowcount

    def cleanup(
        self,
        retention_days: int = RETENTION_DAYS_DEFAULT,
        now: Optional[datetime] = None,
    ) -> int:
        """Delete synced entries whose synced_at is older than the retention window."""
        now = now or datetime.now(timezone.utc)
        cutoff = now_iso(now - timedelta(days=retention_days))
        table = ChangeLogEntry.__table__
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(table)
                .where(table.c.synced == True)  # noqa: E712
                .where(table.c.synced_at.is_not(None))
                .where(table.c.synced_at < cutoff)
            )
        if result.rowcount:
            logger.info("Purged %d synced change-log entries", result.rowcount)
        return result.rowcount

    def status(self) -> Dict[str, Any]:
        """Counts and the most recent push time."""
        with Session(self.engine) as s:
            unsynced = s.exec(
                select(func.count()).select_from(ChangeLogEntry).where(
                    ChangeLogEntry.synced == False  # noqa: E712
                )
            ).one()
            total = s.exec(select(func.count()).select_from(ChangeLogEntry)).one()
            last_sync = s.exec(
                select(func.max(ChangeLogEntry.synced_at)).where(
                    ChangeLogEntry.synced == True  # noqa: E712
                )
            ).one()
        return {"unsynced": unsynced, "total": total, "last_sync": last_sync}
