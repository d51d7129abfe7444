"""Order endpoints for the Flip Flow API.

- POST /api/orders/extract: stateless; runs the pipeline and returns records
- POST /api/orders/sync: pipeline + upsert into the order store
- GET  /api/orders, GET /api/orders/{order_number}: read stored records
- POST /api/orders/dedupe: keep-oldest duplicate cleanup
- POST /api/orders/{order_number}/status: administrative status reset
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from flipflow.config import API_BATCH_SIZE_MAX, API_LIST_LIMIT_DEFAULT, API_LIST_LIMIT_MAX
from flipflow.observability.logging import get_logger
from flipflow.orders.models import OrderRecord, OrderStatus, RawEmail

router = APIRouter(prefix="/api/orders", tags=["orders"])
logger = get_logger(__name__)


# ============================================================================
# Request/Response Models
# ============================================================================


class EmailPayload(BaseModel):
    """A single decoded email in a request."""

    source_id: str = Field(..., min_length=1, max_length=200)
    subject: str = Field(default="", max_length=2000)
    body_html: str | None = None
    body_plain_text: str | None = None
    internal_date: datetime

    @field_validator("source_id")
    @classmethod
    def source_id_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("source_id cannot be blank")
        return v.strip()

    def to_raw_email(self) -> RawEmail:
        return RawEmail(
            source_id=self.source_id,
            subject=self.subject,
            body_html=self.body_html,
            body_plain_text=self.body_plain_text,
            internal_date=self.internal_date,
        )


class ExtractRequest(BaseModel):
    """Request to extract order records from emails (stateless)."""

    emails: list[EmailPayload] = Field(..., max_length=API_BATCH_SIZE_MAX)
    include_diagnostics: bool = False


class EmailExtraction(BaseModel):
    """Per-email extraction summary."""

    source_email_id: str | None
    order_number: str | None = None
    status: str | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    size: str | None = None
    failure_reason: str | None = None
    diagnostics: dict[str, Any] | None = None


class ExtractStats(BaseModel):
    """Statistics from batch extraction."""

    total: int
    orders: int
    uncategorized: int
    no_order_number: int
    errors: int


class ExtractResponse(BaseModel):
    """Response from stateless batch extraction."""

    records: list[OrderRecord]
    extractions: list[EmailExtraction]
    stats: ExtractStats


class SyncRequest(BaseModel):
    """Request to extract and persist order records."""

    emails: list[EmailPayload] = Field(..., max_length=API_BATCH_SIZE_MAX)
    batch_size: int | None = Field(default=None, ge=1, le=API_BATCH_SIZE_MAX)


class SyncStats(BaseModel):
    total: int
    batches: int
    created: int
    updated: int
    unchanged: int
    uncategorized: int
    no_order_number: int
    errors: int


class SyncResponse(BaseModel):
    records: list[OrderRecord]
    stats: SyncStats


class OrderListResponse(BaseModel):
    orders: list[OrderRecord]
    total: int


class DedupeGroup(BaseModel):
    order_number: str
    kept_id: int | None
    removed_ids: list[int | None]


class DedupeResponse(BaseModel):
    groups: list[DedupeGroup]
    removed: int


class StatusResetRequest(BaseModel):
    status: OrderStatus


# ============================================================================
# Endpoints
# ============================================================================


def _diagnostics(extraction) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name, result in extraction.diagnostics.items():
        out[name.value] = {
            "value": result.value,
            "matched_rule": result.matched_rule_name,
            "candidates": [c.to_dict() for c in result.all_candidates],
        }
    return out


@router.post("/extract", response_model=ExtractResponse)
def extract_orders(request: ExtractRequest) -> ExtractResponse:
    """
    Extract order records from a batch of emails (stateless).

    Nothing is persisted; the merged records reflect this batch only.
    """
    from flipflow.orders import OrderEmailPipeline

    emails = [email.to_raw_email() for email in request.emails]
    logger.info("Extracting batch of %d emails", len(emails))

    run = OrderEmailPipeline().run_detailed(emails)

    extractions = [
        EmailExtraction(
            source_email_id=e.source_email_id,
            order_number=e.order_number,
            status=e.status.value if e.status else None,
            tracking_number=e.tracking_number,
            carrier=e.carrier.value if e.carrier else None,
            size=e.size,
            failure_reason=e.failure_reason,
            diagnostics=_diagnostics(e) if request.include_diagnostics else None,
        )
        for e in run.extractions
    ]

    return ExtractResponse(
        records=run.records,
        extractions=extractions,
        stats=ExtractStats(
            total=run.total,
            orders=len(run.records),
            uncategorized=run.skipped_uncategorized,
            no_order_number=run.skipped_no_order_number,
            errors=run.errors,
        ),
    )


@router.post("/sync", response_model=SyncResponse)
def sync_orders(request: SyncRequest) -> SyncResponse:
    """Extract order records from emails and upsert them into the store."""
    from flipflow.orders import OrderSyncService

    emails = [email.to_raw_email() for email in request.emails]

    try:
        result = OrderSyncService().sync(emails, batch_size=request.batch_size)
    except sqlite3.Error as e:
        logger.error("Order sync failed: %s", e)
        raise HTTPException(status_code=503, detail="Order store unavailable, retry the sync") from None

    return SyncResponse(
        records=result.records,
        stats=SyncStats(
            total=result.emails_processed,
            batches=result.batches,
            created=result.created,
            updated=result.updated,
            unchanged=result.unchanged,
            uncategorized=result.skipped_uncategorized,
            no_order_number=result.skipped_no_order_number,
            errors=result.errors,
        ),
    )


@router.get("", response_model=OrderListResponse)
def list_orders(
    status: OrderStatus | None = None,
    limit: int = Query(default=API_LIST_LIMIT_DEFAULT, ge=1, le=API_LIST_LIMIT_MAX),
    offset: int = Query(default=0, ge=0),
) -> OrderListResponse:
    """List stored order records, most recently updated first."""
    from flipflow.orders import OrderSyncService

    orders, total = OrderSyncService.list_orders(status=status, limit=limit, offset=offset)
    return OrderListResponse(orders=orders, total=total)


@router.post("/dedupe", response_model=DedupeResponse)
def dedupe_orders() -> DedupeResponse:
    """Remove duplicate rows per order number, keeping the oldest."""
    from flipflow.orders import OrderSyncService

    result = OrderSyncService.remove_duplicates()
    return DedupeResponse(
        groups=[
            DedupeGroup(
                order_number=group.order_number,
                kept_id=group.keep.id,
                removed_ids=[r.id for r in group.remove],
            )
            for group in result.groups
        ],
        removed=result.removed_count,
    )


@router.get("/{order_number}", response_model=OrderRecord)
def get_order(order_number: str) -> OrderRecord:
    from flipflow.orders import OrderSyncService

    record = OrderSyncService.get_order(order_number)
    if record is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return record


@router.post("/{order_number}/status", response_model=OrderRecord)
def reset_order_status(order_number: str, request: StatusResetRequest) -> OrderRecord:
    """Administrative status reset (may move status down)."""
    from flipflow.orders import OrderSyncService

    record = OrderSyncService.reset_status(order_number, request.status)
    if record is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return record
