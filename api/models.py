"""
Pydantic request/response models for the API.

Request bodies for POST /bills are validated by utils.bills.bill_from_payload
(the same validation the update task applies to feed entries); the models
here describe what the API sends back.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# ── Bill models ───────────────────────────────────────────────────────────────

class FinanceOut(BaseModel):
    """One cost projection line of a bill."""
    timespan: int = Field(..., description="Projection span in years", examples=[10])
    amount: float = Field(..., description="Projected cost in dollars", examples=[5000.0])


class PendingBillOut(BaseModel):
    """A bill waiting for review.  ``id`` is its pending-queue id."""
    id: int | None = Field(None, description="Pending queue row ID", examples=[7])
    title: str = Field(..., description="Bill title", examples=["Act A"])
    code: str = Field(..., description="Bill code", examples=["HR-1"])
    summary: str = Field(..., description="Short summary of the bill")
    committee: str = Field(..., description="Committee the bill was referred to", examples=["Finance"])
    published: str = Field(..., description="Publication time, 'YYYY-MM-DD HH:MM:SS' UTC",
                           examples=["2024-01-01 00:00:00"])
    cbo_url: str = Field(..., description="Cost estimate page", examples=["http://x/1"])
    pdf_url: str = Field(..., description="Cost estimate document", examples=["http://x/1.pdf"])


class BillOut(PendingBillOut):
    """A finalized bill with its cost projections."""
    id: int | None = Field(None, description="Bill ID", examples=[42])
    finances: list[FinanceOut] = Field(default_factory=list, description="Cost projections")


class BillListResponse(BaseModel):
    """Response body for GET /api/v1/bills."""
    bills: list[BillOut] = Field(..., description="Bills on this page, in requested order")
    next: str | None = Field(None, description="URL of the next page, or null on the last page",
                             examples=["/api/v1/bills?order=date+desc&start=10"])
    update: str | None = Field(None, description="URL to POST to when the pending queue is stale",
                               examples=["/api/v1/update"])


class PendingBillListResponse(BaseModel):
    """Response body for GET /api/v1/bills/pending."""
    bills: list[PendingBillOut] = Field(..., description="Pending bills, oldest first")
    next: str | None = Field(None, description="URL of the next page, or null on the last page")


class SubmitResponse(BaseModel):
    """Response body for POST /api/v1/bills."""
    id: int = Field(..., description="ID of the finalized bill", examples=[42])


class UpdateResponse(BaseModel):
    """Response body for POST /api/v1/update."""
    status: str = Field(..., description="ran | locked | not_needed", examples=["ran"])


# ── Error model ───────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    """Standard error response body."""
    error: str = Field(..., description="Short error category", examples=["Bad Request"])
    detail: str | None = Field(None, description="Extended error detail")
    status_code: int = Field(..., ge=400, le=599, description="HTTP status code", examples=[400])
