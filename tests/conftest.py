"""Shared test fixtures."""
import asyncio
from collections import defaultdict
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.pool import StaticPool

from bizsync.db.defaults import now_iso
from bizsync.db.engine import create_store_engine
from bizsync.db.schema import init_schema
from bizsync.errors import ConnectivityError, RemoteRequestError
from bizsync.store.local_store import LocalStore
from bizsync.sync.engine import SyncEngine
from bizsync.sync.session import SyncSession


class FakeRemote:
    """In-memory stand-in for RemoteClient.

    Records every call in order. Rows created or patched without an
    updated_at get one stamped, the way the real service does.
    """

    def __init__(self):
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self.calls: List[tuple] = []
        self.online = True
        self.fail_all = False
        self.fail_tables: set = set()
        self.fail_records: set = set()
        self.probe_gate: Optional[asyncio.Event] = None
        self.closed = False

    def seed(self, table: str, *rows: Dict[str, Any]) -> None:
        for row in rows:
            self.tables[table][row["id"]] = dict(row)

    @property
    def network_calls(self) -> int:
        return len(self.calls)

    def _check(self, table: str, record_id: Optional[str] = None) -> None:
        if self.fail_all or table in self.fail_tables or record_id in self.fail_records:
            raise RemoteRequestError(f"{table} failed", status_code=500, body="boom")

    async def probe(self) -> None:
        self.calls.append(("probe",))
        if self.probe_gate is not None:
            await self.probe_gate.wait()
        if not self.online:
            raise ConnectivityError("Remote unreachable")

    async def create(self, table: str, record: Dict[str, Any]):
        self.calls.append(("create", table, record.get("id")))
        self._check(table, record.get("id"))
        row = dict(record)
        row.setdefault("updated_at", now_iso())
        self.tables[table][row["id"]] = row
        return [row]

    async def patch(self, table: str, record_id: str, fields: Dict[str, Any]):
        self.calls.append(("patch", table, record_id))
        self._check(table, record_id)
        row = self.tables[table].setdefault(record_id, {"id": record_id})
        row.update(fields)
        row["updated_at"] = fields.get("updated_at") or now_iso()
        return [row]

    async def delete(self, table: str, record_id: str):
        self.calls.append(("delete", table, record_id))
        self._check(table, record_id)
        self.tables[table].pop(record_id, None)
        return None

    async def list(self, table, scope_column, scope, *, updated_after=None, order="updated_at.asc"):
        self.calls.append(("list", table, scope))
        self._check(table)
        rows = [r for r in self.tables[table].values() if r.get(scope_column) == scope]
        if updated_after:
            rows = [r for r in rows if (r.get("updated_at") or "") > updated_after]
        key = order.split(".")[0]
        return [dict(r) for r in sorted(rows, key=lambda r: r.get(key) or "")]

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite store with the full schema and foreign keys on."""
    engine = create_store_engine("sqlite://", poolclass=StaticPool)
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="store")
def store_fixture(engine) -> LocalStore:
    return LocalStore(engine)


@pytest.fixture(name="company")
def company_fixture(store: LocalStore) -> Dict[str, Any]:
    """A persisted company; companies are not tracked, so the change log stays empty."""
    return store.insert("companies", {"name": "Al Noor Motors", "phone": "0500000000"})


@pytest.fixture(name="remote")
def remote_fixture() -> FakeRemote:
    return FakeRemote()


@pytest.fixture(name="session")
def session_fixture() -> SyncSession:
    return SyncSession()


@pytest.fixture(name="sync_engine")
def sync_engine_fixture(store, remote, session) -> SyncEngine:
    return SyncEngine(store, remote, session)


@pytest.fixture(name="connected")
def connected_fixture(session: SyncSession) -> SyncSession:
    """Session that passes the push/pull precondition."""
    session.is_online = True
    session.set_auth_token("test-token")
    return session
