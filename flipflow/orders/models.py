"""
Order domain models for Flip Flow.

RawEmail is what the mail source hands the pipeline; OrderRecord is the merged,
normalized state of one marketplace order derived from its emails.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from hashlib import sha256
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so aware and naive values compare."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class OrderStatus(str, Enum):
    """Lifecycle status of an order as seen through its emails."""

    NEEDS_REVIEW = "NeedsReview"  # Default; nothing definitive extracted yet
    ORDERED = "Ordered"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELED = "Canceled"  # Refunds and failed verifications

    @property
    def priority(self) -> int:
        return STATUS_PRIORITY[self]


# Higher = more final. Canceled outranks Delivered (refund after delivery).
STATUS_PRIORITY: dict[OrderStatus, int] = {
    OrderStatus.NEEDS_REVIEW: 0,
    OrderStatus.ORDERED: 2,
    OrderStatus.SHIPPED: 4,
    OrderStatus.DELIVERED: 5,
    OrderStatus.CANCELED: 6,
}


class Carrier(str, Enum):
    """Shipping carrier (or marketplace-internal scheme) of a tracking number."""

    UPS = "UPS"
    FEDEX = "FEDEX"
    USPS = "USPS"
    STOCKX_INTERNAL = "STOCKX_INTERNAL"
    UNKNOWN = "UNKNOWN"

    @property
    def priority(self) -> int:
        return CARRIER_PRIORITY[self]


# Lower = more trustworthy format
CARRIER_PRIORITY: dict[Carrier, int] = {
    Carrier.UPS: 1,
    Carrier.FEDEX: 2,
    Carrier.USPS: 3,
    Carrier.STOCKX_INTERNAL: 4,
    Carrier.UNKNOWN: 5,
}


_REDACTED_EMAIL_FIELDS = ("subject", "body_html", "body_plain_text")


class RawEmail(BaseModel):
    """
    A decoded email as delivered by the mail source.

    Immutable once received. Subject and bodies are hashed in repr so the
    model can be logged safely.
    """

    model_config = ConfigDict(frozen=True)

    source_id: str = Field(..., description="Provider message id (e.g. Gmail message id)")
    subject: str = Field(default="")
    body_html: str | None = Field(default=None)
    body_plain_text: str | None = Field(default=None)
    internal_date: datetime = Field(..., description="Provider receive timestamp")

    @field_validator("source_id")
    @classmethod
    def source_id_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("source_id cannot be empty")
        return v.strip()

    def __repr__(self) -> str:
        data = self.model_dump(exclude_none=True)
        for name in _REDACTED_EMAIL_FIELDS:
            value = data.get(name)
            if isinstance(value, str) and value:
                data[name] = f"hash:{sha256(value.encode('utf-8')).hexdigest()[:12]}"
        return f"{self.__class__.__name__}({data})"


class OrderRecord(BaseModel):
    """
    Normalized state of one order, keyed by order number.

    Created from the first email an order number could be extracted from,
    then folded forward by flipflow.orders.merger. Persisted rows also carry
    their row id and creation time.
    """

    model_config = ConfigDict(frozen=False)

    order_number: str = Field(..., description="Seller-side order id (unique key)")
    tracking_number: str | None = Field(default=None)
    carrier: Carrier = Field(default=Carrier.UNKNOWN)
    size: str | None = Field(default=None, description="Normalized 'US x' size")
    status: OrderStatus = Field(default=OrderStatus.NEEDS_REVIEW)
    status_priority: int = Field(default=0)
    failure_reason: str | None = Field(default=None)
    source_email_ids: set[str] = Field(default_factory=set)
    last_updated: datetime | None = Field(default=None, description="Latest email timestamp seen")
    email_date: datetime | None = Field(default=None, description="Earliest email timestamp seen")

    # Persistence
    id: int | None = Field(default=None, description="Row id once stored")
    created_at: datetime | None = Field(default=None)

    @field_validator("order_number")
    @classmethod
    def order_number_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("order_number cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def default_status_priority(self) -> OrderRecord:
        if self.status_priority == 0 and self.status is not OrderStatus.NEEDS_REVIEW:
            self.status_priority = self.status.priority
        return self

    @field_serializer("source_email_ids")
    def serialize_source_email_ids(self, value: set[str]) -> list[str]:
        return sorted(value)

    def same_state(self, other: OrderRecord) -> bool:
        """Compare merged fields only, ignoring persistence bookkeeping."""
        return self.model_dump(exclude={"id", "created_at"}) == other.model_dump(
            exclude={"id", "created_at"}
        )

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "order_number": self.order_number,
            "tracking_number": self.tracking_number,
            "carrier": self.carrier.value,
            "size": self.size,
            "status": self.status.value,
            "status_priority": self.status_priority,
            "failure_reason": self.failure_reason,
            "source_email_ids": json.dumps(sorted(self.source_email_ids)),
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "email_date": self.email_date.isoformat() if self.email_date else None,
            "created_at": (self.created_at or utc_now()).isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> OrderRecord:
        """Create OrderRecord from database row."""

        def parse_dt(val: str | None) -> datetime | None:
            if val is None:
                return None
            return datetime.fromisoformat(val)

        return cls(
            id=row.get("id"),
            order_number=row["order_number"],
            tracking_number=row.get("tracking_number"),
            carrier=Carrier(row.get("carrier") or Carrier.UNKNOWN.value),
            size=row.get("size"),
            status=OrderStatus(row["status"]),
            status_priority=row.get("status_priority") or 0,
            failure_reason=row.get("failure_reason"),
            source_email_ids=set(json.loads(row["source_email_ids"]))
            if row.get("source_email_ids")
            else set(),
            last_updated=parse_dt(row.get("last_updated")),
            email_date=parse_dt(row.get("email_date")),
            created_at=parse_dt(row.get("created_at")),
        )
