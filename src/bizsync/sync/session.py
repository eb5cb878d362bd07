"""Process-scoped sync state, owned by the application root."""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Optional

from bizsync.errors import SyncInProgressError


class SyncGuard:
    """Non-reentrant lock around a full sync. A second caller is rejected, never queued."""

    def __init__(self):
        self._lock = asyncio.Lock()

    @property
    def held(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self):
        """Acquire for the duration of the block; released on every exit path.

        Raises:
            SyncInProgressError: if the guard is already held.
        """
        # No await between check and acquire
        if self._lock.locked():
            raise SyncInProgressError("Sync already in progress")
        async with self._lock:
            yield


@dataclass
class SyncSession:
    auth_token: Optional[str] = None
    is_online: bool = False
    guard: SyncGuard = field(default_factory=SyncGuard)

    @property
    def sync_in_progress(self) -> bool:
        return self.guard.held

    def set_auth_token(self, token: Optional[str]) -> None:
        """Set or clear (None/empty) the bearer token for remote calls."""
        self.auth_token = token or None
