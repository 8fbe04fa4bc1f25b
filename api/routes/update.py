"""
Update trigger endpoint.

POST /api/v1/update → run the update task unless it is fresh or already running

Clients are pointed here by the ``update`` link of GET /api/v1/bills.  The
request returns once the task has run, or immediately when another request
(or the refresh CLI) already holds the update lock.
"""

import logging
import sqlite3

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from api.database import get_db
from api.deps import get_config, get_update_lock
from api.models import ErrorResponse, UpdateResponse
from pipeline.coordinator import UpdateTaskError
from pipeline.update_lock import UpdateLock
from pipeline.update_task import make_update_coordinator
from utils.config import AppConfig

logger = logging.getLogger("bill_api.update")

router = APIRouter(prefix="/update", tags=["update"])


@router.post(
    "",
    response_model=UpdateResponse,
    responses={502: {"model": ErrorResponse, "description": "Update task failed"}},
    summary="Trigger the update task",
)
def trigger_update(
    force: bool = Query(False, description="Run even if the last update is recent"),
    conn: sqlite3.Connection = Depends(get_db),
    cfg: AppConfig = Depends(get_config),
    lock: UpdateLock = Depends(get_update_lock),
):
    """Refresh the pending queue from the configured feed.

    Returns ``locked`` without waiting when an update is already in
    progress, and ``not_needed`` when one completed within the configured
    interval.
    """
    coordinator = make_update_coordinator(
        conn, lock,
        interval_hours=cfg.update_interval_hours,
        feed_url=cfg.update_feed_url,
    )
    try:
        outcome = coordinator.trigger(force=force)
    except UpdateTaskError as exc:
        return JSONResponse(
            status_code=502,
            content={"error": "Update failed", "detail": str(exc), "status_code": 502},
        )
    logger.info("Update trigger finished: %s", outcome.value)
    return UpdateResponse(status=outcome.value)
