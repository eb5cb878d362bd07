"""Per-company key/value settings kept only on this device.

app_settings is neither change-tracked nor synced, so writes go straight
to the table. set() is an upsert on (company_id, key).
"""
import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert

from bizsync.db.defaults import new_id, now_iso
from bizsync.errors import store_errors
from bizsync.models.company import AppSetting

logger = logging.getLogger(__name__)


class AppSettings:
    """get/set/get_all over the app_settings table."""

    def __init__(self, engine):
        self.engine = engine
        self.table = AppSetting.__table__

    def get(self, company_id: str, key: str) -> Optional[str]:
        """Stored value, or None when the key was never set."""
        stmt = select(self.table.c.value).where(
            self.table.c.company_id == company_id, self.table.c.key == key
        )
        with store_errors(f"read setting {key}"), self.engine.connect() as conn:
            return conn.execute(stmt).scalar()

    def set(self, company_id: str, key: str, value: Optional[str]) -> None:
        """Insert the key, or overwrite its value and stamp updated_at."""
        now = now_iso()
        stmt = insert(self.table).values(
            id=new_id(),
            company_id=company_id,
            key=key,
            value=value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["company_id", "key"],
            set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
        )
        with store_errors(f"write setting {key}"), self.engine.begin() as conn:
            conn.execute(stmt)
        logger.debug("Setting %s saved for company %s", key, company_id)

    def get_all(self, company_id: str) -> Dict[str, Optional[str]]:
        stmt = select(self.table.c.key, self.table.c.value).where(
            self.table.c.company_id == company_id
        )
        with store_errors("read settings"), self.engine.connect() as conn:
            return {row.key: row.value for row in conn.execute(stmt)}
