"""
Shared FastAPI dependencies besides the database connection.

The configuration and the update lock are process-wide singletons, set up by
create_app() and handed to routes through Depends() so tests can call route
functions directly with their own values.
"""

import threading

from pipeline.update_lock import FileLock, UpdateLock
from utils.config import AppConfig

API_PREFIX = "/api/v1"

_config: AppConfig | None = None
_lock: UpdateLock | None = None
_init_lock = threading.Lock()


def get_config() -> AppConfig:
    """FastAPI dependency: the application configuration."""
    global _config
    if _config is None:
        with _init_lock:
            if _config is None:
                _config = AppConfig.from_env()
    return _config


def set_config(cfg: AppConfig) -> None:
    global _config
    _config = cfg


def get_update_lock() -> UpdateLock:
    """FastAPI dependency: the lock guarding the update task.

    Every request shares one handle; the file lock behind it also excludes
    other worker processes and the refresh CLI.
    """
    global _lock
    if _lock is None:
        lock_file = get_config().lock_file
        with _init_lock:
            if _lock is None:
                _lock = FileLock(lock_file)
    return _lock


def set_update_lock(lock: UpdateLock | None) -> None:
    global _lock
    _lock = lock
