"""
SyncEngine: reconciles the local store with the remote table API.

Flow for a full sync:
  1. Take the session's sync guard (a concurrent caller gets "in_progress")
  2. Create SyncRun (status="running")
  3. Probe connectivity; offline ends the run with status="offline"
  4. push(): send unsynced change-log entries oldest first
  5. pull(): fetch rows changed remotely since each table's local watermark
  6. Purge synced change-log entries older than the retention window
  7. Update SyncRun (status="success") and release the guard

Conflict policy is whole-record last-writer-wins: push overwrites the
remote copy with the local snapshot, pull overwrites the local copy with
the remote row. Records are matched by id on both sides.

Partial failure: a failed push entry stays unsynced and is retried on the
next push; a failed pull table keeps its old watermark and is retried on
the next pull. Neither aborts the rest of the batch.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session, select

from bizsync.db.defaults import now_iso
from bizsync.db.schema import SYNC_TABLES, SyncableTable
from bizsync.errors import (
    AuthRequiredError,
    ConnectivityError,
    LocalStoreError,
    RemoteRequestError,
    SyncInProgressError,
)
from bizsync.models.sync import ChangeLogEntry, ChangeOperation, SyncRun
from bizsync.remote.connectivity import ConnectivityMonitor
from bizsync.store.change_log import RETENTION_DAYS_DEFAULT
from bizsync.store.local_store import LocalStore
from bizsync.sync.results import LoadResult, PullResult, PushResult, SyncResult, SyncStatus
from bizsync.sync.session import SyncSession

logger = logging.getLogger(__name__)

CONFLICT_STATUS = 409


class SyncEngine:
    """Push, pull, full sync and initial load for one local store."""

    def __init__(
        self,
        store: LocalStore,
        remote,
        session: SyncSession,
        *,
        sync_tables: Optional[Sequence[SyncableTable]] = None,
        retention_days: int = RETENTION_DAYS_DEFAULT,
    ):
        """
        Args:
            store: LocalStore over the local engine.
            remote: RemoteClient (or AsyncMock / fake in tests).
            session: SyncSession holding token, online flag and sync guard.
            sync_tables: Tables walked by pull/initial_load, parents first.
            retention_days: Age after which synced change-log entries are purged.
        """
        self.store = store
        self.remote = remote
        self.session = session
        self.sync_tables = list(sync_tables or SYNC_TABLES)
        self.retention_days = retention_days
        self.monitor = ConnectivityMonitor(remote, session)

    # ─── Session plumbing ─────────────────────────────────────────────────────

    def set_auth_token(self, token: Optional[str]) -> None:
        self.session.set_auth_token(token)

    async def check_online_status(self) -> bool:
        return await self.monitor.check_online()

    def get_sync_status(self) -> SyncStatus:
        counts = self.store.change_log.status()
        with Session(self.store.engine) as s:
            last_run = s.exec(
                select(SyncRun).order_by(SyncRun.started_at.desc(), SyncRun.id.desc())
            ).first()
        return SyncStatus(
            unsynced=counts["unsynced"],
            total=counts["total"],
            last_sync=counts["last_sync"],
            is_online=self.session.is_online,
            sync_in_progress=self.session.sync_in_progress,
            last_run_status=last_run.status if last_run else None,
        )

    # ─── Push ─────────────────────────────────────────────────────────────────

    async def push(self) -> PushResult:
        """Send every unsynced change-log entry to the remote, oldest first.

        Once an entry for a record fails, later entries for the same record
        are held back so the remote never sees them out of order.
        """
        try:
            self._require_connection("push")
        except (ConnectivityError, AuthRequiredError) as exc:
            logger.info("%s", exc)
            return PushResult(success=False, reason="offline")

        changes = self.store.change_log.pending()
        if not changes:
            logger.info("No changes to push")
            return PushResult(success=True)

        logger.info("Pushing %d changes", len(changes))
        synced_ids: List[int] = []
        blocked = set()

        for change in changes:
            key = (change.table_name, change.record_id)
            if key in blocked:
                continue
            try:
                await self._dispatch(change)
            except RemoteRequestError as exc:
                logger.warning(
                    "Failed to push change %s (%s %s/%s): %s",
                    change.id, change.operation, change.table_name, change.record_id, exc,
                )
                blocked.add(key)
                continue
            synced_ids.append(change.id)

        self.store.change_log.mark_synced(synced_ids)
        failed = len(changes) - len(synced_ids)
        if failed:
            logger.warning("Push finished with %d of %d changes pending", failed, len(changes))
        return PushResult(success=True, pushed=len(synced_ids), failed=failed)

    async def _dispatch(self, change: ChangeLogEntry) -> None:
        """One remote call per entry, chosen by operation.

        A create rejected with 409 is sent again as a patch by id.
        """
        operation = ChangeOperation(change.operation)
        if operation is ChangeOperation.INSERT:
            try:
                await self.remote.create(change.table_name, change.snapshot)
            except RemoteRequestError as exc:
                if exc.status_code != CONFLICT_STATUS:
                    raise
                # Row already exists remotely (an earlier create whose response
                # was lost); overwrite it with the snapshot instead
                logger.info(
                    "%s/%s already exists remotely, patching instead",
                    change.table_name, change.record_id,
                )
                await self.remote.patch(change.table_name, change.record_id, change.snapshot)
        elif operation is ChangeOperation.UPDATE:
            await self.remote.patch(change.table_name, change.record_id, change.snapshot)
        else:
            await self.remote.delete(change.table_name, change.record_id)

    # ─── Pull ─────────────────────────────────────────────────────────────────

    async def pull(self, company_id: str) -> PullResult:
        """Merge remote rows changed since each table's local watermark.

        Rows are matched by id: an existing local row is overwritten, a
        missing one is inserted. Pulled rows are not written to the change log.
        """
        try:
            self._require_connection("pull")
        except (ConnectivityError, AuthRequiredError) as exc:
            logger.info("%s", exc)
            return PullResult(success=False, reason="offline")

        total = 0
        for sync_table in self.sync_tables:
            try:
                since = self.store.watermark(sync_table.name, sync_table.scope_column, company_id)
                records = await self.remote.list(
                    sync_table.name, sync_table.scope_column, company_id, updated_after=since
                )
                merged = self.store.merge_remote(sync_table.name, records)
            except (RemoteRequestError, LocalStoreError) as exc:
                logger.warning("Failed to pull %s: %s", sync_table.name, exc)
                continue
            if merged:
                logger.info("Pulled %d records from %s", merged, sync_table.name)
            total += merged

        return PullResult(success=True, pulled=total)

    # ─── Full sync ────────────────────────────────────────────────────────────

    async def full_sync(self, company_id: str) -> SyncResult:
        """Probe, push, pull, clean up. Rejected outright if one is already running."""
        try:
            async with self.session.guard.hold():
                return await self._run_full_sync(company_id)
        except SyncInProgressError:
            logger.info("Sync already in progress")
            return SyncResult(success=False, reason="in_progress")

    async def _run_full_sync(self, company_id: str) -> SyncResult:
        run = self._create_sync_run(company_id)
        try:
            if not await self.monitor.check_online():
                self._finish_sync_run(run, status="offline")
                return SyncResult(success=False, reason="offline")

            push = await self.push()
            pull = await self.pull(company_id)
            self.store.change_log.cleanup(self.retention_days)

        except Exception as exc:
            logger.exception("Sync failed")
            self._finish_sync_run(run, status="error", error_message=str(exc))
            return SyncResult(success=False, reason="error", error=str(exc))

        self._finish_sync_run(
            run, status="success", pushed=push.pushed, failed=push.failed, pulled=pull.pulled
        )
        return SyncResult(success=True, pushed=push.pushed, pulled=pull.pulled)

    # ─── Initial load ─────────────────────────────────────────────────────────

    async def initial_load(self, company_id: str) -> LoadResult:
        """Replace every local row of a company with the remote copy.

        Destructive: local-only rows of that company are deleted, including
        ones never pushed. Meant for first-time setup of a tenant on a device.
        All tables are fetched before anything local is touched; a table
        whose fetch fails keeps its local rows and is reported in
        failed_tables.
        """
        try:
            self._require_connection("load")
        except (ConnectivityError, AuthRequiredError) as exc:
            logger.info("%s", exc)
            return LoadResult(success=False, reason="offline")

        logger.info("Loading initial data for company %s", company_id)
        batches: List[Tuple[SyncableTable, List[Dict[str, Any]]]] = []
        failed_tables: List[str] = []
        for sync_table in self.sync_tables:
            try:
                records = await self.remote.list(
                    sync_table.name, sync_table.scope_column, company_id, order="created_at.asc"
                )
            except RemoteRequestError as exc:
                logger.warning("Failed to load %s: %s", sync_table.name, exc)
                failed_tables.append(sync_table.name)
                continue
            batches.append((sync_table, records))

        loaded = self.store.replace_scope(company_id, batches)
        logger.info("Loaded %d records across %d tables", loaded, len(batches))
        return LoadResult(success=True, loaded=loaded, failed_tables=failed_tables)

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _require_connection(self, action: str) -> None:
        if not self.session.is_online:
            raise ConnectivityError(f"Cannot {action}: offline")
        if not self.session.auth_token:
            raise AuthRequiredError(f"Cannot {action}: not authenticated")

    def _create_sync_run(self, company_id: str) -> SyncRun:
        run = SyncRun(company_id=company_id, started_at=now_iso(), status="running")
        with Session(self.store.engine) as s:
            s.add(run)
            s.commit()
            s.refresh(run)
        return run

    def _finish_sync_run(
        self,
        run: SyncRun,
        *,
        status: str,
        pushed: int = 0,
        failed: int = 0,
        pulled: int = 0,
        error_message: Optional[str] = None,
    ) -> None:
        with Session(self.store.engine) as s:
            db_run = s.get(SyncRun, run.id)
            db_run.status = status
            db_run.finished_at = now_iso()
            db_run.pushed = pushed
            db_run.failed = failed
            db_run.pulled = pulled
            db_run.error_message = error_message
            s.add(db_run)
            s.commit()


def create_sync_engine(settings=None, engine=None, session: Optional[SyncSession] = None) -> SyncEngine:
    """Wire a SyncEngine from settings: local store, remote client, session."""
    from bizsync.config import get_settings
    from bizsync.db.engine import get_engine
    from bizsync.remote.client import RemoteClient
    from bizsync.remote.retry import RetryPolicy

    settings = settings or get_settings()
    engine = engine or get_engine()
    session = session or SyncSession()

    store = LocalStore(engine, capture_deletes=settings.capture_deletes)
    remote = RemoteClient(
        settings.remote_url,
        settings.remote_api_key,
        session,
        timeout=settings.request_timeout_seconds,
        retry=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            initial_delay_ms=settings.retry_initial_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
        ),
    )
    return SyncEngine(
        store,
        remote,
        session,
        retention_days=settings.change_log_retention_days,
    )
