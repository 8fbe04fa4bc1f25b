"""Configuration for the bill tracker.

Everything is read from ``APP_*`` environment variables with defaults that
work out of the box.  Routes and the refresh CLI receive an ``AppConfig``
instance instead of reading the environment themselves, so tests can hand in
their own.
"""

import os as _os
from pathlib import Path
from typing import Any, Dict


# Logical sort keys accepted on GET /bills.  The physical ORDER BY expression
# for each lives in utils/query.py.
ORDER_KEYS = ("date", "committee", "net")
ORDER_DIRECTIONS = ("asc", "desc")


class Config:
    """Base configuration class for organizing application settings."""

    def to_dict(self) -> Dict[str, Any]:
        """Public settings as a plain dict (paths rendered as strings)."""
        return {
            k: str(v) if isinstance(v, Path) else v
            for k, v in self.__dict__.items()
            if not k.startswith("_")
        }

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.to_dict().items())
        return f"{type(self).__name__}({fields})"


class AppConfig(Config):
    """Application-level configuration loaded from environment variables.

    All env vars have sensible defaults so the application works out of the
    box without any configuration.

    Environment variables:
        APP_DB_PATH: Path to the SQLite database file (default: bills.sqlite)
        APP_PORT: API server port (default: 8000)
        APP_HOST: API server bind address (default: 127.0.0.1)
        APP_LOG_FORMAT: Logging format — "text" or "json" (default: text)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
        APP_PAGE_SIZE: Bills per page on list endpoints (default: 10)
        APP_LOCK_FILE: Lock file guarding the update task (default: update.lock)
        APP_UPDATE_INTERVAL_HOURS: Hours before the pending queue is considered
            stale and a refresh is offered (default: 24)
        APP_UPDATE_FEED_URL: JSON feed the update task pulls pending bills
            from (default: unset, the update task inserts nothing)
    """

    def __init__(self) -> None:
        self.db_path = Path(_os.getenv("APP_DB_PATH", "bills.sqlite"))
        self.api_port = int(_os.getenv("APP_PORT", "8000"))
        self.api_host = _os.getenv("APP_HOST", "127.0.0.1")
        self.log_format = _os.getenv("APP_LOG_FORMAT", "text")
        raw_origins = _os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )
        self.page_size = int(_os.getenv("APP_PAGE_SIZE", "10"))
        if self.page_size < 1:
            raise ValueError(f"APP_PAGE_SIZE must be positive, got {self.page_size}")
        self.lock_file = Path(_os.getenv("APP_LOCK_FILE", "update.lock"))
        self.update_interval_hours = float(
            _os.getenv("APP_UPDATE_INTERVAL_HOURS", "24")
        )
        self.update_feed_url: str | None = _os.getenv("APP_UPDATE_FEED_URL") or None

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()
