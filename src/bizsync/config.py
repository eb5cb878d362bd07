from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

DATABASE_FILE_NAME = "accounts-data.sqlite"


class Settings(BaseSettings):
    remote_url: str = ""
    remote_api_key: str = ""
    data_dir: Path = Path.home() / ".bizsync"
    database_url: str = ""  # empty: sqlite file inside data_dir
    request_timeout_seconds: float = 30.0
    retry_max_attempts: int = 3
    retry_initial_delay_ms: float = 250.0
    retry_max_delay_ms: float = 4000.0
    change_log_retention_days: int = 30
    capture_deletes: bool = False
    enforce_foreign_keys: bool = True
    sync_interval_minutes: int = 5
    company_id: Optional[str] = None  # default scope for the host scheduler
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.data_dir / DATABASE_FILE_NAME}"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
