#!/usr/bin/env python3
"""
Pending-queue refresh script.

Runs the update task from the command line (typically from cron) through the
same coordinator and lock file the API uses, so a scheduled refresh and a
POST /api/v1/update can never run at the same time.

Usage:
    python refresh_data.py                          # Refresh if stale
    python refresh_data.py --force                  # Refresh even if fresh
    python refresh_data.py --init-db                # Create the database first
    python refresh_data.py --feed-url https://example.org/bills.json
    python refresh_data.py --help                   # Show full options

Exit codes:
    0  update ran, was not needed, or another update is in progress
    1  database missing or the update task failed
"""

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

from pipeline.coordinator import UpdateOutcome, UpdateTaskError
from pipeline.update_lock import FileLock, UpdateLock
from pipeline.update_task import make_update_coordinator
from utils.common import elapsed
from utils.config import AppConfig
from utils.database import create_database, get_connection

logger = logging.getLogger("bill_api.refresh")


class RefreshWorkflow:
    """Runs one coordinated update of the pending queue."""

    def __init__(self, verbose=False, db_path=None, init_db=False, force=False,
                 feed_url=None, lock: UpdateLock | None = None,
                 config: AppConfig | None = None):
        """Initialize workflow state.

        Args:
            verbose:  If True, emit detailed output.
            db_path:  Path to the SQLite database (default: APP_DB_PATH).
            init_db:  If True, create the database and schema when missing.
            force:    If True, run even when the last update is recent.
            feed_url: Feed to pull from (default: APP_UPDATE_FEED_URL).
            lock:     Update lock (default: a FileLock on APP_LOCK_FILE).
            config:   Configuration (default: read from the environment).
        """
        self.config = config or AppConfig.from_env()
        self.verbose = verbose
        self.db_path = Path(db_path) if db_path else self.config.db_path
        self.init_db = init_db
        self.force = force
        self.feed_url = feed_url or self.config.update_feed_url
        self.lock = lock if lock is not None else FileLock(self.config.lock_file)
        self.outcome: UpdateOutcome | None = None

    def log(self, msg: str, level="info"):
        """Print a timestamped log message."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        if level == "info":
            print(f"[{timestamp}] {msg}")
        elif level == "warn":
            print(f"[{timestamp}] WARNING: {msg}")
        elif level == "error":
            print(f"[{timestamp}] ERROR: {msg}")
        elif level == "ok":
            print(f"[{timestamp}] OK: {msg}")
        elif level == "detail" and self.verbose:
            print(f"  -> {msg}")

    def _open_db(self):
        if self.init_db:
            self.log(f"Initializing database at {self.db_path}", "detail")
            return create_database(self.db_path)
        if not self.db_path.exists():
            self.log(f"Database not found at {self.db_path}; "
                     "run with --init-db to create it.", "error")
            return None
        return get_connection(self.db_path)

    def run(self) -> int:
        """Trigger the update task and return a process exit code."""
        start_time = time.time()
        self.log(f"Database: {self.db_path}")
        self.log(f"Feed: {self.feed_url or '(none configured)'}")
        self.log(f"Force: {self.force}", "detail")
        for key, value in self.config.to_dict().items():
            self.log(f"{key} = {value}", "detail")

        conn = self._open_db()
        if conn is None:
            return 1

        try:
            coordinator = make_update_coordinator(
                conn, self.lock,
                interval_hours=self.config.update_interval_hours,
                feed_url=self.feed_url,
            )
            try:
                self.outcome = coordinator.trigger(force=self.force)
            except UpdateTaskError as e:
                self.log(f"Update failed: {e}", "error")
                return 1
        finally:
            conn.close()

        if self.outcome is UpdateOutcome.RAN:
            self.log(f"Update completed in {elapsed(start_time)}", "ok")
        elif self.outcome is UpdateOutcome.LOCKED:
            self.log("Another update is in progress; nothing to do.", "warn")
            holder = self.lock.holder() if isinstance(self.lock, FileLock) else None
            if holder is not None:
                self.log(f"Lock held by pid {holder.pid} since "
                         f"{holder.acquired_at:%Y-%m-%d %H:%M:%S}", "detail")
        else:
            self.log("Pending queue is fresh; nothing to do.")
        return 0


def main(argv=None) -> int:
    """Parse CLI arguments and run the refresh."""
    parser = argparse.ArgumentParser(
        description="Refresh the pending bill queue from the update feed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python refresh_data.py
  python refresh_data.py --force --verbose
  python refresh_data.py --db /data/bills.sqlite --init-db
        """,
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to SQLite database (default: APP_DB_PATH or bills.sqlite)",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create the database and schema if they do not exist",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run even if the last update completed recently",
    )
    parser.add_argument(
        "--feed-url",
        default=None,
        help="JSON feed of bills (default: APP_UPDATE_FEED_URL)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output with detailed progress",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    workflow = RefreshWorkflow(
        verbose=args.verbose,
        db_path=args.db,
        init_db=args.init_db,
        force=args.force,
        feed_url=args.feed_url,
    )
    return workflow.run()


if __name__ == "__main__":
    sys.exit(main())
