"""
Database connection management for the API.

Provides a get_db() dependency that opens a per-request SQLite connection and
closes it after the response is sent.  The database path is resolved once at
startup from the APP_DB_PATH environment variable (default: bills.sqlite)
and can be overridden by create_app(db_path=...).

Each request gets its own read-write connection: list routes only read, but
POST /bills and POST /update write through the same dependency.
"""

import os
import sqlite3
from collections.abc import Generator
from pathlib import Path

from fastapi import HTTPException

from utils.database import get_connection

_DB_PATH: Path = Path(os.getenv("APP_DB_PATH", "bills.sqlite"))


def get_db_path() -> Path:
    """Return the configured database path."""
    return _DB_PATH


def set_db_path(db_path: Path) -> None:
    """Point the API at a different database file (used by create_app)."""
    global _DB_PATH
    _DB_PATH = Path(db_path)


def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a connection to the configured database for one request.

    The connection comes from utils.database.get_connection (WAL,
    busy_timeout, Row factory) and is closed once the response is sent.
    A missing file is reported as 503 rather than silently created; the
    lifespan hook or ``refresh_data.py --init-db`` creates it.
    """
    if not _DB_PATH.exists():
        raise HTTPException(
            status_code=503,
            detail=(
                f"Database not found at '{_DB_PATH}'. "
                "Run 'python refresh_data.py --init-db' to create it."
            ),
        )
    conn = get_connection(_DB_PATH)
    try:
        yield conn
    finally:
        conn.close()
