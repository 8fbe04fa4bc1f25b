"""
Pytest fixtures for the bill tracker tests.

Provides in-memory and on-disk SQLite databases with the bill schema, a
small deterministic set of finalized and pending bills, and an in-process
fake of the update lock.
"""

import sqlite3
import sys
import threading
from datetime import datetime
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.bills import FinalizedBill, Finance, PendingBill, finalize, insert_pending  # noqa: E402
from utils.database import create_database, init_schema  # noqa: E402


# ── Sample data ───────────────────────────────────────────────────────────────
# (title, committee, published, code, cbo_url, finances)
# Two bills share a committee and two share a net amount so the id
# tie-breaker gets exercised.
SAMPLE_BILLS = [
    ("Act A", "Finance",     datetime(2024, 1, 1),  "HR-1", "http://x/1", [(10, 5000.0)]),
    ("Act B", "Agriculture", datetime(2024, 2, 15), "HR-2", "http://x/2", [(5, -200.0), (10, 300.0)]),
    ("Act C", "Finance",     datetime(2024, 3, 10), "S-3",  "http://x/3", []),
    ("Act D", "Judiciary",   datetime(2023, 12, 5), "S-4",  "http://x/4", [(10, 100.0)]),
    ("Act E", "Energy",      datetime(2024, 3, 10), "HR-5", "http://x/5", [(1, 100.0)]),
    ("Act F", "Agriculture", datetime(2024, 5, 20), "HR-6", "http://x/6", [(10, 1_000_000.0)]),
    ("Act G", "Budget",      datetime(2022, 7, 4),  "S-7",  "http://x/7", [(3, -50.0)]),
]

SAMPLE_PENDING = [
    ("Pending X", "Finance", datetime(2024, 6, 1), "HR-10", "http://p/10"),
    ("Pending Y", "Energy",  datetime(2024, 4, 1), "HR-11", "http://p/11"),
    ("Pending Z", "Budget",  datetime(2024, 8, 1), "S-12",  "http://p/12"),
]


def make_finalized(title, committee, published, code, cbo_url, finances=()):
    return FinalizedBill(
        title=title,
        summary=f"Summary of {title}",
        committee=committee,
        published=published,
        code=code,
        cbo_url=cbo_url,
        pdf_url=cbo_url + ".pdf",
        finances=[Finance(timespan=t, amount=a) for t, a in finances],
    )


def make_pending(title, committee, published, code, cbo_url):
    return PendingBill(
        title=title,
        summary=f"Summary of {title}",
        committee=committee,
        published=published,
        code=code,
        cbo_url=cbo_url,
        pdf_url=cbo_url + ".pdf",
    )


def populate(conn: sqlite3.Connection) -> None:
    for row in SAMPLE_BILLS:
        finalize(conn, make_finalized(*row))
    for row in SAMPLE_PENDING:
        insert_pending(conn, make_pending(*row))


# ── Fake lock ─────────────────────────────────────────────────────────────────

class FakeLock:
    """In-process stand-in for FileLock that records its usage."""

    def __init__(self):
        self._held = False
        self._guard = threading.Lock()
        self.acquisitions = 0
        self.releases = 0

    @property
    def held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        with self._guard:
            if self._held:
                return False
            self._held = True
            self.acquisitions += 1
            return True

    def release(self) -> None:
        with self._guard:
            if self._held:
                self.releases += 1
            self._held = False


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def empty_conn():
    """In-memory database with the schema and no rows."""
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    init_schema(conn)
    yield conn
    conn.close()


@pytest.fixture()
def db(empty_conn):
    """In-memory database populated with SAMPLE_BILLS and SAMPLE_PENDING."""
    populate(empty_conn)
    return empty_conn


@pytest.fixture()
def db_path(tmp_path):
    """On-disk database populated with the sample data."""
    path = tmp_path / "bills.sqlite"
    conn = create_database(path)
    populate(conn)
    conn.close()
    return path


@pytest.fixture()
def fake_lock():
    return FakeLock()
