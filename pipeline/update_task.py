"""
Update Task — refreshes the pending review queue from an external feed.

Two entry points:

  should_run_update_task(conn, interval_hours)
      True when no update run has completed within the last
      ``interval_hours``.  GET /api/v1/bills uses it to decide whether to
      offer the client an ``update`` link; the coordinator re-checks it once
      it holds the lock.

  run_update_task(conn, source)
      Records a run in UpdateRuns, pulls entries from ``source`` and queues
      every valid, not-yet-known bill in PendingBills.

The task itself does no locking; callers go through
pipeline.coordinator.UpdateCoordinator, which guarantees a single run at a
time.

Skip categories (for SkipRecord.category):
    malformed   — entry failed bill validation
    duplicate   — cbo_url already pending or finalized
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Iterable, Iterator, Protocol

from pipeline.coordinator import UpdateCoordinator
from pipeline.update_lock import UpdateLock
from utils.bills import BillPayloadError, PendingBill, bill_from_payload, insert_pending
from utils.common import format_datetime, utcnow
from utils.http import RetryStrategy, SessionManager

logger = logging.getLogger("bill_api.update")


class UpdateSource(Protocol):
    """Anything that yields raw bill payloads."""

    def __iter__(self) -> Iterator[Any]: ...


# ── Data structures ───────────────────────────────────────────────────────────


@dataclass
class SkipRecord:
    """One feed entry that was not queued, with a machine-readable category."""

    category: str
    detail: str
    item: str = ""

    def to_dict(self) -> dict[str, str]:
        d: dict[str, str] = {"category": self.category, "detail": self.detail}
        if self.item:
            d["item"] = self.item
        return d


@dataclass
class UpdateReport:
    """Structured summary of what one update run accomplished."""

    run_id: int
    status: str = "started"          # started | completed | failed
    items_seen: int = 0
    items_inserted: int = 0
    skips: list[SkipRecord] = field(default_factory=list)

    def add_skip(self, category: str, detail: str, item: str = "") -> None:
        self.skips.append(SkipRecord(category=category, detail=detail, item=item))

    def skip_counts_by_category(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for s in self.skips:
            counts[s.category] = counts.get(s.category, 0) + 1
        return counts

    def console_summary(self) -> str:
        """One-line summary suitable for the terminal."""
        parts = [f"{self.items_seen:,} seen", f"{self.items_inserted:,} queued"]
        cats = self.skip_counts_by_category()
        if cats:
            skip_parts = [f"{v} {k}" for k, v in sorted(cats.items())]
            parts.append(f"{len(self.skips):,} skipped ({', '.join(skip_parts)})")
        return " | ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "run_id": self.run_id,
            "status": self.status,
            "items_seen": self.items_seen,
            "items_inserted": self.items_inserted,
        }
        if self.skips:
            d["skips"] = [s.to_dict() for s in self.skips]
        return d


# ── Sources ───────────────────────────────────────────────────────────────────


class FeedSource:
    """Pulls a JSON array of bill payloads from ``url``.

    The response may be a bare list or an object with a ``bills`` list.
    """

    def __init__(self, url: str, timeout: float = 30.0,
                 session_manager: SessionManager | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._sessions = session_manager or SessionManager(
            retry_strategy=RetryStrategy(max_retries=3, backoff_factor=1.0)
        )

    def __iter__(self) -> Iterator[Any]:
        logger.info("Fetching update feed %s", self.url)
        with self._sessions:
            body = self._sessions.get_json(self.url, timeout=self.timeout)
        if isinstance(body, dict):
            body = body.get("bills", [])
        if not isinstance(body, list):
            raise ValueError(f"Update feed {self.url} did not return a list of bills")
        return iter(body)


class EmptySource:
    """Source used when no feed is configured; yields nothing."""

    def __iter__(self) -> Iterator[Any]:
        return iter(())


def make_source(feed_url: str | None) -> UpdateSource:
    """Return the source for a configured feed URL (or an empty one)."""
    return FeedSource(feed_url) if feed_url else EmptySource()


# ── Staleness ─────────────────────────────────────────────────────────────────


def should_run_update_task(conn: sqlite3.Connection, interval_hours: float = 24) -> bool:
    """Return True if no update run has completed in the last ``interval_hours``."""
    cutoff = format_datetime(utcnow() - timedelta(hours=interval_hours))
    row = conn.execute(
        "SELECT 1 FROM UpdateRuns WHERE status = 'completed' AND started_at >= ? LIMIT 1",
        (cutoff,),
    ).fetchone()
    return row is None


# ── Refresh ───────────────────────────────────────────────────────────────────


def _start_run(conn: sqlite3.Connection) -> int:
    cur = conn.execute(
        "INSERT INTO UpdateRuns(started_at, status) VALUES (?, 'started')",
        (format_datetime(utcnow()),),
    )
    conn.commit()
    return cur.lastrowid


def _finish_run(conn: sqlite3.Connection, report: UpdateReport, detail: str | None) -> None:
    conn.execute(
        "UPDATE UpdateRuns SET finished_at = ?, status = ?, inserted = ?, detail = ? "
        "WHERE id = ?",
        (format_datetime(utcnow()), report.status, report.items_inserted, detail,
         report.run_id),
    )
    conn.commit()


def run_update_task(conn: sqlite3.Connection, source: Iterable[Any]) -> UpdateReport:
    """Queue every new, valid bill from ``source`` for review.

    Raises:
        Whatever ``source`` raises while being read; the run is recorded as
        failed first.
    """
    report = UpdateReport(run_id=_start_run(conn))
    logger.info("Update run %d started", report.run_id)

    try:
        for payload in source:
            report.items_seen += 1
            try:
                bill = bill_from_payload(payload)
            except BillPayloadError as exc:
                logger.warning("Skipping malformed feed entry: %s", exc)
                report.add_skip("malformed", str(exc))
                continue

            if not isinstance(bill, PendingBill):
                bill = PendingBill(
                    title=bill.title,
                    summary=bill.summary,
                    committee=bill.committee,
                    published=bill.published,
                    code=bill.code,
                    cbo_url=bill.cbo_url,
                    pdf_url=bill.pdf_url,
                )

            if insert_pending(conn, bill) is None:
                report.add_skip("duplicate", "cbo_url already known", item=bill.cbo_url)
            else:
                report.items_inserted += 1
    except Exception as exc:
        report.status = "failed"
        _finish_run(conn, report, detail=str(exc))
        raise

    report.status = "completed"
    _finish_run(conn, report, detail=report.console_summary())
    logger.info("Update run %d completed: %s", report.run_id, report.console_summary())
    return report


def make_update_coordinator(
    conn: sqlite3.Connection,
    lock: UpdateLock,
    interval_hours: float = 24,
    feed_url: str | None = None,
) -> UpdateCoordinator:
    """Wire the staleness check and refresh routine for ``conn`` to ``lock``."""
    return UpdateCoordinator(
        lock=lock,
        should_run=lambda: should_run_update_task(conn, interval_hours),
        refresh=lambda: run_update_task(conn, make_source(feed_url)),
    )
