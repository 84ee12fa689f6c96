# Pydantic settings

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    # App
    app_name: str = "eventlog"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///events.db"

    # Ingestion
    batch_size: int = Field(default=10000, ge=1)

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # SQLite tuning, applied to every new connection
    sqlite_pragmas: dict[str, str | int] = {
        "journal_mode": "WAL",
        "synchronous": "NORMAL",
        "cache_size": 10000,
        "temp_store": "MEMORY",
        "mmap_size": 268435456,
    }

    model_config = SettingsConfigDict(
        env_prefix="EVENTLOG_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
