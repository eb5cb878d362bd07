"""Request-scoped accessors for objects owned by the app."""
from fastapi import Request

from bizsync.store.local_store import LocalStore


def get_sync_engine(request: Request):
    return request.app.state.sync_engine


def get_store(request: Request) -> LocalStore:
    return request.app.state.sync_engine.store
