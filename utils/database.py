"""Database utilities for the bill tracker.

Provides reusable functions for:
- Database schema initialization and pragmas
- Connection lifecycle management
- Common database queries
"""

import sqlite3
from pathlib import Path


# ── Schema ────────────────────────────────────────────────────────────────────
# cbo_url is the de-duplication key between the two bill collections.  Each
# table enforces it locally; pipeline/update_task.py refuses to queue a
# pending bill whose cbo_url is already finalized.

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS Bills (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    title       TEXT NOT NULL,
    summary     TEXT NOT NULL,
    committee   TEXT NOT NULL,
    published   TEXT NOT NULL,          -- 'YYYY-MM-DD HH:MM:SS', UTC
    code        TEXT NOT NULL,
    cbo_url     TEXT NOT NULL UNIQUE,
    pdf_url     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS Finances (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    bill        INTEGER NOT NULL REFERENCES Bills(id),
    timespan    INTEGER NOT NULL,       -- years
    amount      REAL NOT NULL           -- dollars
);

CREATE TABLE IF NOT EXISTS PendingBills (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    title       TEXT NOT NULL,
    summary     TEXT NOT NULL,
    committee   TEXT NOT NULL,
    published   TEXT NOT NULL,
    code        TEXT NOT NULL,
    cbo_url     TEXT NOT NULL UNIQUE,
    pdf_url     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS UpdateRuns (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    started_at  TEXT NOT NULL,
    finished_at TEXT,
    status      TEXT NOT NULL,          -- started | completed | failed
    inserted    INTEGER NOT NULL DEFAULT 0,
    detail      TEXT
);

CREATE INDEX IF NOT EXISTS idx_bills_published ON Bills(published);
CREATE INDEX IF NOT EXISTS idx_bills_committee ON Bills(committee);
CREATE INDEX IF NOT EXISTS idx_finances_bill ON Finances(bill);
CREATE INDEX IF NOT EXISTS idx_pending_published ON PendingBills(published);
"""


def init_pragmas(conn: sqlite3.Connection) -> None:
    """Initialize SQLite reliability pragmas.

    - WAL mode so list requests don't block behind the update task's inserts
    - NORMAL synchronous mode for speed without data loss
    - busy_timeout so concurrent writers wait instead of failing outright

    Args:
        conn: SQLite connection to configure
    """
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA busy_timeout=5000")


def init_schema(conn: sqlite3.Connection) -> None:
    """Create the bill tables and indexes if they do not exist yet."""
    conn.executescript(SCHEMA_DDL)
    conn.commit()


def get_connection(db_path: Path) -> sqlite3.Connection:
    """Open a read-write SQLite connection with standard pragmas.

    Args:
        db_path: Path to the SQLite database file (created if absent).

    Returns:
        sqlite3.Connection with row_factory set to sqlite3.Row for dict-like access.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False, timeout=10)
    conn.row_factory = sqlite3.Row
    init_pragmas(conn)
    return conn


def create_database(db_path: Path) -> sqlite3.Connection:
    """Open (or create) the database file and make sure the schema exists."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    init_schema(conn)
    return conn


def get_table_count(conn: sqlite3.Connection, table: str) -> int:
    """Get row count for a table.

    Args:
        conn: SQLite connection
        table: Table name (trusted; never user input)

    Returns:
        Number of rows in table
    """
    result = conn.execute(f"SELECT COUNT(*) AS cnt FROM {table}").fetchone()
    return result[0] if result else 0
