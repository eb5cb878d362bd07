"""Change log and sync-run audit models."""
import json
from enum import Enum
from typing import Any, Dict, Optional

from sqlmodel import Field, SQLModel

from bizsync.db.defaults import now_iso


class ChangeOperation(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeLogEntry(SQLModel, table=True):
    """One pending (or already pushed) local mutation.

    data holds the JSON snapshot of the tracked column subset taken right
    after the write. synced only ever goes from False to True.
    """

    __tablename__ = "sync_log"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    table_name: str
    record_id: str
    operation: str  # ChangeOperation value
    data: Optional[str] = None
    synced: bool = False
    created_at: str = Field(default_factory=now_iso)
    synced_at: Optional[str] = None

    @property
    def snapshot(self) -> Dict[str, Any]:
        """Decoded post-mutation snapshot (empty for entries recorded without one)."""
        return json.loads(self.data) if self.data else {}


class SyncRun(SQLModel, table=True):
    """Records each full sync attempt for status reporting and debugging."""

    __tablename__ = "sync_runs"

    id: Optional[int] = Field(default=None, primary_key=True)
    company_id: Optional[str] = None
    started_at: str = Field(default_factory=now_iso)
    finished_at: Optional[str] = None
    status: str = "running"  # "running", "success", "offline", "error"
    pushed: int = 0
    failed: int = 0
    pulled: int = 0
    error_message: Optional[str] = None
