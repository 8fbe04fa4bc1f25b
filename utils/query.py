"""Shared SQL query builder utilities for the bill list routes.

Turns the loosely-typed ``order`` / filter parameters of GET /bills into a
row-id query.  Rows are hydrated separately by utils/bills.py, so the query
only ever selects ``id``.
"""

import logging
from typing import Any, Mapping

from utils.common import sqldatetime
from utils.config import ORDER_DIRECTIONS

logger = logging.getLogger("bill_api.query")

# Closed translation from logical sort key to ORDER BY expression.  Nothing
# supplied by a client is ever interpolated into the SQL text.
ORDER_EXPRESSIONS = {
    "date": "published",
    "committee": "committee",
    "net": "(SELECT COALESCE(SUM(amount), 0) FROM Finances WHERE Finances.bill = Bills.id)",
}

BILLS_TABLE = "Bills"
PENDING_TABLE = "PendingBills"

# Largest OFFSET SQLite accepts (signed 64-bit).
MAX_OFFSET = 2**63 - 1


def validate_order(order_key: str, order_dir: str) -> tuple[str, str]:
    """Validate a logical (key, direction) pair.

    Raises:
        ValueError: If either part is outside its whitelist.
    """
    if order_key not in ORDER_EXPRESSIONS:
        raise ValueError(
            f"Invalid order key: '{order_key}'. "
            f"Must be one of: {', '.join(ORDER_EXPRESSIONS)}"
        )
    if order_dir not in ORDER_DIRECTIONS:
        raise ValueError(
            f"Invalid order direction: '{order_dir}'. Must be asc or desc"
        )
    return order_key, order_dir


def parse_order_param(order: str) -> tuple[str, str]:
    """Split the ``order`` query parameter (``'<key> <dir>'``) and validate it.

    Raises:
        ValueError: If the value is not exactly two space-separated words or
            either word is not whitelisted.
    """
    parts = order.split(" ")
    if len(parts) != 2:
        raise ValueError("order parameter is malformed; expected '<key> <dir>'")
    return validate_order(parts[0], parts[1])


def build_where_clause(
    before: int | None = None,
    after: int | None = None,
    committee: str | None = None,
) -> tuple[str, list[Any]]:
    """Build a SQL WHERE clause from the bill filter parameters.

    Args:
        before: Inclusive upper bound on ``published`` (Unix timestamp).
        after: Inclusive lower bound on ``published`` (Unix timestamp).
        committee: Exact committee name.

    Returns:
        Tuple of (where_clause_string, params_list). The where_clause_string
        starts with "WHERE " if any conditions exist, or is "" if none.
    """
    conditions: list[str] = []
    params: list[Any] = []

    if before is not None:
        conditions.append("published <= ?")
        params.append(sqldatetime(before))

    if after is not None:
        conditions.append("published >= ?")
        params.append(sqldatetime(after))

    if committee is not None:
        conditions.append("committee = ?")
        params.append(committee)

    where = "WHERE " + " AND ".join(conditions) if conditions else ""
    return where, params


def build_order_clause(order_key: str, order_dir: str) -> str:
    """Build a safe SQL ORDER BY clause.

    ``id`` is appended as a tie-breaker so the ordering is total, which keeps
    offset pagination free of duplicates and gaps while the data is unchanged.

    Returns:
        ORDER BY clause string, e.g. "ORDER BY published DESC, id ASC".

    Raises:
        ValueError: If the key or direction is not whitelisted.
    """
    validate_order(order_key, order_dir)
    direction = "DESC" if order_dir == "desc" else "ASC"
    return f"ORDER BY {ORDER_EXPRESSIONS[order_key]} {direction}, id ASC"


def _check_offset(start: int) -> int:
    if start < 0:
        raise ValueError("start must not be negative")
    if start > MAX_OFFSET:
        raise ValueError(f"start must not exceed {MAX_OFFSET}")
    return start


def plan_bill_ids(
    order_key: str,
    order_dir: str,
    filters: Mapping[str, Any] | None,
    page_size: int,
) -> tuple[str, list[Any]]:
    """Plan the row-id query for finalized bills.

    Args:
        order_key: One of ``date``, ``committee``, ``net``.
        order_dir: ``asc`` or ``desc``.
        filters: Optional mapping with any of ``before``, ``after``,
            ``committee`` and ``start`` (row offset, default 0).  Unknown keys
            are ignored.
        page_size: LIMIT for the query (callers pass page size + 1).

    Returns:
        (sql, params) selecting ``id`` only.
    """
    filters = filters or {}
    order_clause = build_order_clause(order_key, order_dir)
    where, params = build_where_clause(
        before=filters.get("before"),
        after=filters.get("after"),
        committee=filters.get("committee"),
    )
    offset = _check_offset(int(filters.get("start") or 0))

    sql = " ".join(
        part for part in (
            f"SELECT id FROM {BILLS_TABLE}",
            where,
            order_clause,
            "LIMIT ? OFFSET ?",
        ) if part
    )
    params = params + [page_size, offset]
    logger.debug("Planned bill query: %s params=%s", sql, params)
    return sql, params


def plan_pending_ids(start: int, page_size: int) -> tuple[str, list[Any]]:
    """Plan the row-id query for the pending review queue.

    Filtering is deliberately unavailable here; the queue is always served
    oldest-first so outstanding bills get reviewed first.
    """
    start = _check_offset(start)
    sql = (
        f"SELECT id FROM {PENDING_TABLE} "
        "ORDER BY published ASC, id ASC LIMIT ? OFFSET ?"
    )
    return sql, [page_size, start]
