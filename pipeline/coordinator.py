"""
Update Coordinator — at most one update task at a time, across all requests.

    FREE --try_acquire ok--> HELD --release--> FREE
    HELD --try_acquire-----> HELD  (caller gets LOCKED and returns at once)

Redundant concurrent triggers are dropped, not queued: whoever wins the lock
does the refresh, everyone else returns immediately.  The lock is released in
a ``finally`` block, so a failed refresh never leaves it held; application
shutdown releases it once more as a safety net.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Callable

from pipeline.update_lock import UpdateLock

logger = logging.getLogger("bill_api.update")


class UpdateOutcome(str, enum.Enum):
    """What a trigger did."""

    RAN = "ran"
    LOCKED = "locked"
    NOT_NEEDED = "not_needed"


class UpdateTaskError(RuntimeError):
    """The refresh routine failed.  The lock has already been released."""


class UpdateCoordinator:
    """Single-flight wrapper around the update task.

    Args:
        lock: Non-blocking lock handle (``try_acquire`` / ``release``).
        should_run: Staleness predicate.
        refresh: The refresh routine; invoked at most once per held window.
    """

    def __init__(
        self,
        lock: UpdateLock,
        should_run: Callable[[], bool],
        refresh: Callable[[], Any],
    ) -> None:
        self.lock = lock
        self._should_run = should_run
        self._refresh = refresh

    def should_run(self) -> bool:
        return bool(self._should_run())

    def try_run(self, recheck: bool = True) -> UpdateOutcome:
        """Run the refresh if the lock is free and the data is still stale.

        Args:
            recheck: Re-evaluate ``should_run`` once the lock is held.

        Raises:
            UpdateTaskError: If the refresh routine raised.
        """
        if not self.lock.try_acquire():
            logger.info("Locking failed, update in progress")
            return UpdateOutcome.LOCKED

        try:
            # Another run may have finished between the caller's check and
            # our acquisition
            if recheck and not self.should_run():
                logger.info("Update no longer needed")
                return UpdateOutcome.NOT_NEEDED

            logger.info("Running update task")
            try:
                self._refresh()
            except Exception as exc:
                logger.exception("Update task failed")
                raise UpdateTaskError(str(exc) or exc.__class__.__name__) from exc
            return UpdateOutcome.RAN
        finally:
            self.lock.release()

    def trigger(self, force: bool = False) -> UpdateOutcome:
        """Fire-and-forget entry point for POST /update and the refresh CLI.

        Args:
            force: Skip the staleness checks (the lock is still honoured).
        """
        if not force and not self.should_run():
            logger.debug("Update not needed")
            return UpdateOutcome.NOT_NEEDED
        return self.try_run(recheck=not force)
