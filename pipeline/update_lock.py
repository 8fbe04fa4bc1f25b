"""
Update Lock — non-blocking, file-backed mutual exclusion for the update task.

Only one update task may run at a time, whether it was triggered by
POST /api/v1/update in any worker or by ``refresh_data.py`` from cron.  The
lock is an advisory ``flock`` on a lock file, so:

  - acquisition never waits: a held lock makes ``try_acquire()`` return False
  - the kernel drops it if the holding process dies, so a crashed run can't
    leave the system locked

While held, the file contains a small JSON record of the holder (pid and
acquisition time), which ``holder()`` reads back for log messages.

Usage::

    lock = FileLock(Path("update.lock"))
    if lock.try_acquire():
        try:
            ...
        finally:
            lock.release()
"""

from __future__ import annotations

import fcntl
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger("bill_api.update")


class UpdateLock(Protocol):
    """What the coordinator needs from a lock."""

    def try_acquire(self) -> bool: ...

    def release(self) -> None: ...


class LockHolder(BaseModel):
    """Holder record written into the lock file while the lock is held."""

    pid: int = Field(description="Process ID holding the lock")
    acquired_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FileLock:
    """Advisory ``flock``-based lock on ``path``.

    Safe to share between threads: each acquisition opens its own file
    description, so a second thread in the same process is refused just like
    another process would be.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._fd: int | None = None
        self._guard = threading.Lock()

    @property
    def held(self) -> bool:
        """True if this instance currently holds the lock."""
        return self._fd is not None

    def try_acquire(self) -> bool:
        """Take the lock if it is free; never blocks."""
        with self._guard:
            if self._fd is not None:
                return False
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                os.close(fd)
                return False
            except OSError:
                os.close(fd)
                raise

            record = LockHolder(pid=os.getpid()).model_dump_json().encode()
            os.ftruncate(fd, 0)
            os.write(fd, record)
            self._fd = fd
            logger.debug("Acquired update lock %s", self.path)
            return True

    def release(self) -> None:
        """Release the lock.  Releasing a lock that isn't held is a no-op."""
        with self._guard:
            fd = self._fd
            if fd is None:
                return
            self._fd = None
            try:
                os.ftruncate(fd, 0)
                fcntl.flock(fd, fcntl.LOCK_UN)
            finally:
                os.close(fd)
            logger.debug("Released update lock %s", self.path)

    def holder(self) -> LockHolder | None:
        """Return the recorded holder, or None if unknown / not held."""
        try:
            raw = self.path.read_text()
        except OSError:
            return None
        if not raw.strip():
            return None
        try:
            return LockHolder.model_validate_json(raw)
        except ValidationError:
            return None
