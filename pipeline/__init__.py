"""
Pipeline package -- update task and its single-flight coordination.

Re-exports key entry points so callers can do::

    from pipeline import FileLock, UpdateCoordinator, make_update_coordinator
"""

from pipeline.coordinator import UpdateCoordinator, UpdateOutcome, UpdateTaskError
from pipeline.update_lock import FileLock, LockHolder, UpdateLock
from pipeline.update_task import (
    UpdateReport,
    make_update_coordinator,
    run_update_task,
    should_run_update_task,
)

__all__ = [
    "FileLock",
    "LockHolder",
    "UpdateLock",
    "UpdateCoordinator",
    "UpdateOutcome",
    "UpdateTaskError",
    "UpdateReport",
    "make_update_coordinator",
    "run_update_task",
    "should_run_update_task",
]
