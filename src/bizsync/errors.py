"""Error taxonomy for the local store and the sync engine.

Connectivity and auth gaps are normal "not attempted" outcomes and are
turned into structured results at the SyncEngine boundary. Remote request
failures are counted per item. LocalStoreError always reaches the caller.
"""
from contextlib import contextmanager
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError


class SyncError(RuntimeError):
    """Base class for failures raised while talking to the remote service."""


class ConnectivityError(SyncError):
    """Raised when the reachability probe fails or the session is offline."""


class AuthRequiredError(SyncError):
    """Raised when a sync step needs an auth token and none is set."""


class SyncInProgressError(SyncError):
    """Raised when the sync guard is already held."""


class RemoteRequestError(SyncError):
    """Raised for a non-success response or a transport failure.

    status_code is None when no response was received at all.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class LocalStoreError(RuntimeError):
    """Raised for constraint violations, unknown tables/columns or malformed SQL."""


@contextmanager
def store_errors(action: str):
    """Re-raise any SQLAlchemy failure inside the block as LocalStoreError."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise LocalStoreError(f"{action} failed: {exc}") from exc
