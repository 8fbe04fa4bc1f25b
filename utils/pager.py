"""Sentinel over-fetch pagination for the bill list routes.

Callers ask the planner for ``page_size + 1`` rows.  When the extra row comes
back there is another page; it is dropped and a URL for the next page is
built from the current offset plus the number of items actually returned.
Offsets are only stable while the ordering-key values don't change between
fetches; a bill edited mid-browse can shift by a row.
"""

from typing import Any, Mapping, Sequence, TypeVar
from urllib.parse import urlencode

T = TypeVar("T")


def fetch_size(page_size: int) -> int:
    """Number of rows to request for a page of ``page_size`` items."""
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    return page_size + 1


def page(results: Sequence[T], page_size: int) -> tuple[list[T], bool]:
    """Trim an over-fetched result list to one page.

    Returns:
        (items, has_more) where ``items`` keeps the planner's order.
    """
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    items = list(results)
    if len(items) > page_size:
        return items[:page_size], True
    return items, False


def next_cursor(
    path: str,
    params: Mapping[str, Any],
    offset: int,
    returned: int,
) -> str:
    """Build the URL of the next page.

    Every active parameter in ``params`` is carried over unchanged (``None``
    values are dropped) and ``start`` is advanced past the returned items.

    Example:
        >>> next_cursor("/api/v1/bills", {"order": "date desc"}, 0, 10)
        '/api/v1/bills?order=date+desc&start=10'
    """
    carried = [(k, v) for k, v in params.items() if v is not None and k != "start"]
    carried.append(("start", offset + returned))
    return f"{path}?{urlencode(carried)}"
