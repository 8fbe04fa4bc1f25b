"""
Bill endpoints.

GET  /api/v1/bills                 → paginated, filtered, sorted finalized bills
GET  /api/v1/bills/pending         → paginated review queue, oldest first
GET  /api/v1/bills/pending/{id}    → one pending bill
GET  /api/v1/bills/{id}            → one finalized bill
POST /api/v1/bills                 → finalize a bill from a JSON payload

List pages are fetched with one extra row; if it comes back, the response
carries a ``next`` URL that repeats every filter and the order with an
advanced ``start``.
"""

import logging
import sqlite3
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from api.database import get_db
from api.deps import API_PREFIX, get_config
from api.models import (
    BillListResponse,
    BillOut,
    ErrorResponse,
    PendingBillListResponse,
    PendingBillOut,
    SubmitResponse,
)
from pipeline.update_task import should_run_update_task
from utils.bills import FinalizedBill, PendingBill, bill_from_payload, finalize, load_bill, load_bills
from utils.config import AppConfig
from utils.pager import fetch_size, next_cursor, page
from utils.query import MAX_OFFSET, parse_order_param, plan_bill_ids, plan_pending_ids

logger = logging.getLogger("bill_api.bills")

router = APIRouter(prefix="/bills", tags=["bills"])

_LIST_PATH = f"{API_PREFIX}/bills"
_PENDING_PATH = f"{API_PREFIX}/bills/pending"
_UPDATE_PATH = f"{API_PREFIX}/update"


@router.get(
    "",
    response_model=BillListResponse,
    responses={400: {"model": ErrorResponse}},
    summary="List finalized bills",
)
def list_bills(
    order: str = Query(..., description="'<key> <dir>': key is date, committee or net; dir is asc or desc",
                       examples=["date desc"]),
    start: int | None = Query(None, ge=0, le=MAX_OFFSET, description="Row offset of this page"),
    before: int | None = Query(None, description="Only bills published at or before this Unix timestamp"),
    after: int | None = Query(None, description="Only bills published at or after this Unix timestamp"),
    committee: str | None = Query(None, description="Only bills from this committee (exact match)"),
    conn: sqlite3.Connection = Depends(get_db),
    cfg: AppConfig = Depends(get_config),
) -> BillListResponse:
    """Return one page of finalized bills, plus next-page and update hints."""
    try:
        order_key, order_dir = parse_order_param(order)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    logger.debug("order = %s start = %s before = %s after = %s committee = %s",
                 order, start, before, after, committee)

    offset = start or 0
    filters = {"before": before, "after": after, "committee": committee, "start": offset}
    sql, params = plan_bill_ids(order_key, order_dir, filters, fetch_size(cfg.page_size))
    ids = [row[0] for row in conn.execute(sql, params).fetchall()]

    items, has_more = page(ids, cfg.page_size)
    bills = load_bills(conn, items)

    next_url = None
    if has_more:
        next_url = next_cursor(
            _LIST_PATH,
            {"order": f"{order_key} {order_dir}", "before": before,
             "after": after, "committee": committee},
            offset,
            len(items),
        )
    logger.debug("Next page URL: %s", next_url)

    update_url = (
        _UPDATE_PATH
        if should_run_update_task(conn, cfg.update_interval_hours)
        else None
    )

    return BillListResponse(
        bills=[BillOut(**b.to_dict()) for b in bills],
        next=next_url,
        update=update_url,
    )


@router.get(
    "/pending",
    response_model=PendingBillListResponse,
    summary="List bills awaiting review",
)
def list_pending_bills(
    start: int | None = Query(None, ge=0, le=MAX_OFFSET, description="Row offset of this page"),
    conn: sqlite3.Connection = Depends(get_db),
    cfg: AppConfig = Depends(get_config),
) -> PendingBillListResponse:
    """Return one page of the review queue.

    Pending bills are implicitly ordered by ascending age so outstanding
    bills come first; no filtering is offered.
    """
    offset = start or 0
    logger.debug("Pulling pending bills from %d", offset)

    sql, params = plan_pending_ids(offset, fetch_size(cfg.page_size))
    ids = [row[0] for row in conn.execute(sql, params).fetchall()]

    items, has_more = page(ids, cfg.page_size)
    bills = load_bills(conn, items, pending=True)

    next_url = next_cursor(_PENDING_PATH, {}, offset, len(items)) if has_more else None
    return PendingBillListResponse(
        bills=[PendingBillOut(**b.to_dict()) for b in bills],
        next=next_url,
    )


@router.get(
    "/pending/{bill_id}",
    response_model=PendingBillOut,
    responses={404: {"model": ErrorResponse}},
    summary="Get one pending bill",
)
def get_pending_bill(
    bill_id: int,
    conn: sqlite3.Connection = Depends(get_db),
) -> PendingBillOut:
    bill = load_bill(conn, bill_id, pending=True)
    if bill is None:
        raise HTTPException(status_code=404, detail=f"Pending bill {bill_id} not found")
    return PendingBillOut(**bill.to_dict())


@router.get(
    "/{bill_id}",
    response_model=BillOut,
    responses={404: {"model": ErrorResponse}},
    summary="Get one bill",
)
def get_bill(
    bill_id: int,
    conn: sqlite3.Connection = Depends(get_db),
) -> BillOut:
    """Return a single finalized bill with its finances."""
    bill = load_bill(conn, bill_id)
    if bill is None:
        raise HTTPException(status_code=404, detail=f"Bill {bill_id} not found")
    return BillOut(**bill.to_dict())


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=SubmitResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Malformed bill"},
        409: {"model": ErrorResponse, "description": "A bill with this cbo_url is already finalized"},
    },
    summary="Finalize a bill",
)
def submit_bill(
    payload: Any = Body(..., examples=[{
        "kind": "finalized",
        "title": "Act A", "summary": "s", "committee": "Finance",
        "cbo_url": "http://x/1", "pdf_url": "http://x/1.pdf",
        "published": "2024-01-01", "code": "HR-1",
        "finances": [{"timespan": 10, "amount": 5000}],
    }]),
    conn: sqlite3.Connection = Depends(get_db),
) -> SubmitResponse:
    """Turn a reviewed bill into a finalized one.

    The payload's ``kind`` picks the variant; without it, a ``finances`` key
    marks the bill finalized.  A pending-kind payload is finalized with no
    finances.  Any matching entry in the review queue is removed.
    """
    logger.debug("Parsing bill from request")
    bill = bill_from_payload(payload)
    if isinstance(bill, PendingBill):
        bill = FinalizedBill.from_pending(bill)

    logger.debug("Writing bill to database")
    try:
        bill_id = finalize(conn, bill)
    except sqlite3.IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail=f"Bill with cbo_url '{bill.cbo_url}' already exists",
        ) from exc
    return SubmitResponse(id=bill_id)
