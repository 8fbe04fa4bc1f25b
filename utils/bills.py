"""Bill and Finance records and their mapping to the database.

A bill lives in exactly one of two collections:

    PendingBills  — scraped by the update task, waiting for human review.
                    No finance rows.
    Bills         — finalized; owns zero or more Finances rows.

``finalize()`` promotes a bill into ``Bills`` and removes the pending row that
shares its ``cbo_url``.  Its three statements (bill insert, finance inserts,
pending delete) each commit on their own: a crash part-way through can leave
a bill without finances or a leftover pending row.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Annotated, Any, ClassVar, Iterable, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    StrictStr,
    Tag,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from utils.common import format_datetime, parse_datetime

logger = logging.getLogger("bill_api.bills")

_BILL_COLUMNS = "title, summary, committee, published, code, cbo_url, pdf_url"


class BillPayloadError(ValueError):
    """Raised when an untrusted payload cannot be turned into a Bill."""


# ── Domain records ────────────────────────────────────────────────────────────


@dataclass
class Finance:
    """One projected cost line item of a bill."""

    timespan: int          # years
    amount: float          # dollars
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"timespan": self.timespan, "amount": self.amount}


@dataclass
class Bill:
    """Fields shared by pending and finalized bills."""

    title: str
    summary: str
    committee: str
    published: datetime
    code: str
    cbo_url: str
    pdf_url: str
    id: int | None = None

    pending: ClassVar[bool] = False

    def to_dict(self) -> dict[str, Any]:
        """Convert this bill into a dict suitable for emission as JSON."""
        data: dict[str, Any] = {
            "title": self.title,
            "code": self.code,
            "summary": self.summary,
            "committee": self.committee,
            "published": format_datetime(self.published),
            "cbo_url": self.cbo_url,
            "pdf_url": self.pdf_url,
        }
        return data


@dataclass
class PendingBill(Bill):
    """A bill waiting in the review queue.

    ``id`` stays None (the bill is not persisted as a real bill yet);
    ``pending_id`` is its row id in the PendingBills table, if it came from
    there.
    """

    pending_id: int | None = None

    pending: ClassVar[bool] = True

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.pending_id is not None:
            data["id"] = self.pending_id
        return data


@dataclass
class FinalizedBill(Bill):
    """A reviewed bill with its cost projections."""

    finances: list[Finance] = field(default_factory=list)

    @classmethod
    def from_pending(cls, bill: PendingBill,
                     finances: Iterable[Finance] = ()) -> FinalizedBill:
        """Build the finalized form of a pending bill (not yet persisted)."""
        return cls(
            title=bill.title,
            summary=bill.summary,
            committee=bill.committee,
            published=bill.published,
            code=bill.code,
            cbo_url=bill.cbo_url,
            pdf_url=bill.pdf_url,
            finances=list(finances),
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.id is not None:
            data = {"id": self.id, **data}
        data["finances"] = [f.to_dict() for f in self.finances]
        return data


# ── Untrusted payload validation ──────────────────────────────────────────────

NonEmptyStr = Annotated[StrictStr, Field(min_length=1)]


class FinancePayload(BaseModel):
    """A finance entry as submitted by a client or the update feed."""

    model_config = ConfigDict(extra="ignore")

    timespan: int = Field(..., ge=0, description="Projection span in years", examples=[10])
    amount: float = Field(..., allow_inf_nan=False, description="Projected cost in dollars", examples=[5000.0])


class _BillPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: NonEmptyStr
    summary: NonEmptyStr
    committee: NonEmptyStr
    published: datetime
    code: NonEmptyStr
    cbo_url: NonEmptyStr
    pdf_url: NonEmptyStr

    @field_validator("published", mode="before")
    @classmethod
    def _parse_published(cls, value: Any) -> datetime:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("published must be a non-empty date-time string")
        parsed = parse_datetime(value)
        if parsed.microsecond:
            # Stored with one-second resolution
            raise ValueError("published must not carry fractional seconds")
        return parsed


class PendingBillPayload(_BillPayload):
    kind: Literal["pending"] = "pending"


class FinalizedBillPayload(_BillPayload):
    kind: Literal["finalized"] = "finalized"
    finances: list[FinancePayload]


def _payload_kind(value: Any) -> str | None:
    """Pick the payload variant.

    An explicit ``kind`` wins.  Payloads without one are classified the old
    way: a ``finances`` key (even an empty list) means finalized.
    """
    if isinstance(value, dict):
        kind = value.get("kind")
        if kind is None:
            return "finalized" if "finances" in value else "pending"
        return kind
    return getattr(value, "kind", None)


BillPayload = Annotated[
    Union[
        Annotated[PendingBillPayload, Tag("pending")],
        Annotated[FinalizedBillPayload, Tag("finalized")],
    ],
    Discriminator(_payload_kind),
]

_PAYLOAD_ADAPTER: TypeAdapter = TypeAdapter(BillPayload)


def _describe_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "payload"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def bill_from_payload(payload: Any) -> PendingBill | FinalizedBill:
    """Construct an unpersisted bill from an untrusted payload.

    Raises:
        BillPayloadError: If any field fails validation.  Nothing partial is
            ever returned.
    """
    try:
        parsed = _PAYLOAD_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise BillPayloadError(f"Malformed bill: {_describe_errors(exc)}") from exc

    common = dict(
        title=parsed.title,
        summary=parsed.summary,
        committee=parsed.committee,
        published=parsed.published,
        code=parsed.code,
        cbo_url=parsed.cbo_url,
        pdf_url=parsed.pdf_url,
    )
    if isinstance(parsed, FinalizedBillPayload):
        return FinalizedBill(
            **common,
            finances=[Finance(timespan=f.timespan, amount=f.amount) for f in parsed.finances],
        )
    return PendingBill(**common)


# ── Loading ───────────────────────────────────────────────────────────────────


def _load_finances(conn: sqlite3.Connection, bill_id: int) -> list[Finance]:
    rows = conn.execute(
        "SELECT id, timespan, amount FROM Finances WHERE bill = ?",
        (bill_id,),
    ).fetchall()
    return [Finance(timespan=r[1], amount=r[2], id=r[0]) for r in rows]


def load_bill(conn: sqlite3.Connection, bill_id: int,
              pending: bool = False) -> PendingBill | FinalizedBill | None:
    """Return the bill stored under ``bill_id``, or None if there is none.

    Args:
        conn: Open database connection.
        bill_id: Primary key in PendingBills (``pending=True``) or Bills.
        pending: Which collection to read from.
    """
    table = "PendingBills" if pending else "Bills"
    row = conn.execute(
        f"SELECT {_BILL_COLUMNS} FROM {table} WHERE id = ?",
        (bill_id,),
    ).fetchone()
    if row is None:
        logger.warning("No such %s with id %s", "pending bill" if pending else "bill", bill_id)
        return None

    title, summary, committee, published, code, cbo_url, pdf_url = tuple(row)
    common = dict(
        title=title,
        summary=summary,
        committee=committee,
        published=parse_datetime(published),
        code=code,
        cbo_url=cbo_url,
        pdf_url=pdf_url,
    )
    logger.debug("Bill(%s) => (%s, %s, %s, %s)", bill_id, title, committee, published, code)

    if pending:
        return PendingBill(**common, pending_id=bill_id)

    finances = _load_finances(conn, bill_id)
    logger.debug("Bill[%s] had %d finance entries", bill_id, len(finances))
    return FinalizedBill(**common, id=bill_id, finances=finances)


def load_bills(conn: sqlite3.Connection, ids: Iterable[int],
               pending: bool = False) -> list[PendingBill | FinalizedBill]:
    """Hydrate a list of ids, preserving their order.

    Ids that vanished between planning and hydration are skipped.
    """
    bills = []
    for bill_id in ids:
        bill = load_bill(conn, bill_id, pending=pending)
        if bill is not None:
            bills.append(bill)
    return bills


# ── Persisting ────────────────────────────────────────────────────────────────


def insert_finance(conn: sqlite3.Connection, finance: Finance, bill_id: int) -> int:
    """Insert one finance row for an already-persisted bill."""
    cur = conn.execute(
        "INSERT INTO Finances(bill, timespan, amount) VALUES (?, ?, ?)",
        (bill_id, finance.timespan, finance.amount),
    )
    conn.commit()
    finance.id = cur.lastrowid
    return finance.id


def finalize(conn: sqlite3.Connection, bill: FinalizedBill) -> int:
    """Persist ``bill`` into Bills (if it isn't there already) and return its id.

    Also removes the PendingBills row sharing its ``cbo_url``, if there is
    one.  Calling this again on the same object is a no-op returning the
    same id.

    Raises:
        TypeError: If handed a PendingBill; promote it with
            ``FinalizedBill.from_pending`` first.
    """
    if not isinstance(bill, FinalizedBill):
        raise TypeError("finalize() needs a FinalizedBill")
    if bill.id is not None:
        return bill.id

    # The bill row has to exist before its finances, which reference its id
    logger.debug("Adding bill to Bills table")
    cur = conn.execute(
        f"INSERT INTO Bills({_BILL_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
        (
            bill.title,
            bill.summary,
            bill.committee,
            format_datetime(bill.published),
            bill.code,
            bill.cbo_url,
            bill.pdf_url,
        ),
    )
    conn.commit()
    bill_id = cur.lastrowid

    logger.debug("Loading bill finance info")
    for finance in bill.finances:
        insert_finance(conn, finance, bill_id)

    bill.id = bill_id

    # cbo_url is unique across both collections, so it identifies the
    # pending counterpart.  Bills submitted directly have none.
    logger.debug("Removing bill from PendingBills table")
    conn.execute("DELETE FROM PendingBills WHERE cbo_url = ?", (bill.cbo_url,))
    conn.commit()

    return bill_id


def insert_pending(conn: sqlite3.Connection, bill: PendingBill) -> int | None:
    """Queue a bill for review.

    Returns the new PendingBills id, or None if a bill with the same
    ``cbo_url`` is already pending or finalized.
    """
    cur = conn.execute(
        f"""
        INSERT INTO PendingBills({_BILL_COLUMNS})
        SELECT ?, ?, ?, ?, ?, ?, ?
        WHERE NOT EXISTS (SELECT 1 FROM Bills WHERE cbo_url = ?)
          AND NOT EXISTS (SELECT 1 FROM PendingBills WHERE cbo_url = ?)
        """,
        (
            bill.title,
            bill.summary,
            bill.committee,
            format_datetime(bill.published),
            bill.code,
            bill.cbo_url,
            bill.pdf_url,
            bill.cbo_url,
            bill.cbo_url,
        ),
    )
    conn.commit()
    if cur.rowcount == 0:
        return None
    bill.pending_id = cur.lastrowid
    return bill.pending_id
