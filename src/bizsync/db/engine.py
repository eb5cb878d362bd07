"""Local store lifecycle: engine singleton, SQLite pragmas and session dependency."""
import logging
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from bizsync.config import get_settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None


def create_store_engine(database_url: str, *, enforce_foreign_keys: bool = True, **kwargs) -> Engine:
    """Build an SQLite engine with the pragmas the store relies on.

    The driver's implicit transaction handling is switched off and BEGIN is
    emitted explicitly, so per-transaction pragmas (defer_foreign_keys)
    issued right after begin() apply to the whole transaction.

    Extra keyword arguments go straight to create_engine (tests pass
    poolclass=StaticPool for in-memory stores).
    """
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False},  # SQLite only; safe for FastAPI
        **kwargs,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        if enforce_foreign_keys:
            cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def init_store(database_url: Optional[str] = None) -> Engine:
    """Open the local store and (re-)apply the schema. Idempotent."""
    global _engine
    if _engine is not None:
        return _engine

    settings = get_settings()
    url = database_url or settings.resolved_database_url
    if url.startswith("sqlite:///") and ":memory:" not in url:
        Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

    logger.info("Initializing local store at %s", url)
    engine = create_store_engine(url, enforce_foreign_keys=settings.enforce_foreign_keys)

    from bizsync.db.schema import init_schema
    init_schema(engine)

    _engine = engine
    return _engine


def get_engine() -> Engine:
    """Return the module-level engine, initializing the store on first call."""
    if _engine is None:
        return init_store()
    return _engine


def close_store() -> None:
    """Dispose the engine. Safe to call when the store was never opened."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
        logger.info("Local store closed")


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a DB session."""
    with Session(get_engine()) as session:
        yield session
