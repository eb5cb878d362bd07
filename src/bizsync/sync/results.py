"""Structured outcomes returned by SyncEngine operations.

reason is set only when an operation was not (fully) attempted:
"offline", "in_progress" or "error".
"""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class PushResult:
    success: bool
    reason: Optional[str] = None
    pushed: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PullResult:
    success: bool
    reason: Optional[str] = None
    pulled: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SyncResult:
    success: bool
    reason: Optional[str] = None
    pushed: int = 0
    pulled: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LoadResult:
    success: bool
    reason: Optional[str] = None
    loaded: int = 0
    failed_tables: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SyncStatus:
    unsynced: int
    total: int
    last_sync: Optional[str]
    is_online: bool
    sync_in_progress: bool
    last_run_status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
