from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings

DEFAULT_NUGGETS_PATH = "/var/nuggets"


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Event replication
    nuggets_path: str = DEFAULT_NUGGETS_PATH  # root container for event records
    store_path: str = "data/content.db"  # SQLite content store
    request_history: int = 100  # replication requests kept in memory for the API

    # Health checks
    checks_file: str = "checks.yaml"
    check_timeout_ms: int = 10_000
    check_workers: int = 4

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"

    @field_validator("nuggets_path")
    @classmethod
    def _default_nuggets_path(cls, value: str) -> str:
        return value.strip() or DEFAULT_NUGGETS_PATH


settings = Settings()
