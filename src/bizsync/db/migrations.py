"""
Database migrations for the local store.

create_all() only creates missing tables, so anything added to an existing
table later is applied here. Each migration is idempotent: an index is only
created if sqlite_master does not list it yet.

Called from init_schema() after create_all() so both fresh installs and
stores created by older releases are handled without manual steps.
"""
from sqlalchemy import text


def run_migrations(engine) -> None:
    """Apply all pending schema migrations.

    Safe to call multiple times. Supports SQLite only (reads sqlite_master).

    Args:
        engine: SQLAlchemy engine (SQLModel create_engine result).
    """
    with engine.connect() as conn:
        # Push only ever scans unsynced rows
        _create_index_if_missing(
            conn,
            "idx_sync_log_unsynced",
            "CREATE INDEX idx_sync_log_unsynced ON sync_log(synced) WHERE synced = 0",
        )

        conn.commit()


def _create_index_if_missing(conn, name: str, ddl: str) -> None:
    result = conn.execute(
        text("SELECT name FROM sqlite_master WHERE type = 'index' AND name = :name"),
        {"name": name},
    )
    if result.first() is None:
        conn.execute(text(ddl))
