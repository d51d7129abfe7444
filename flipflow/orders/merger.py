"""
Order record merger: folds per-email extractions into one record per order.

Merge rules, in order:
1. No existing record: create one, but only if an order number was extracted.
2. Status moves only to a strictly higher status priority.
3. Tracking is replaced only by an equal-or-better carrier priority.
4. Size and failure reason: first known value wins.
5. Source email ids are unioned; last_updated is the max timestamp seen.

Re-merging an email id already recorded is a no-op. Duplicate cleanup over
persisted rows (keep oldest) is a separate operation: plan_duplicate_cleanup.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from flipflow.observability.logging import get_logger
from flipflow.observability.telemetry import counter
from flipflow.orders.models import Carrier, OrderRecord, OrderStatus, as_utc
from flipflow.orders.types import OrderExtraction

logger = get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=UTC)


def _latest(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b, key=as_utc)


def _earliest(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b, key=as_utc)


def _new_record(extraction: OrderExtraction, source_email_id: str | None) -> OrderRecord:
    tracking = extraction.tracking_number
    status = extraction.status or OrderStatus.NEEDS_REVIEW
    return OrderRecord(
        order_number=extraction.order_number,
        tracking_number=tracking,
        carrier=(extraction.carrier or Carrier.UNKNOWN) if tracking else Carrier.UNKNOWN,
        size=extraction.size,
        status=status,
        status_priority=extraction.status_priority if extraction.status else 0,
        failure_reason=extraction.failure_reason,
        source_email_ids={source_email_id} if source_email_id else set(),
        last_updated=extraction.email_date,
        email_date=extraction.email_date,
    )


def merge(
    existing: OrderRecord | None,
    extraction: OrderExtraction,
    source_email_id: str | None = None,
) -> OrderRecord | None:
    """
    Merge one email's extraction into the current record for its order.

    Args:
        existing: Current record, or None for the first email of an order
        extraction: Fields extracted from one email
        source_email_id: Email id (defaults to extraction.source_email_id)

    Returns:
        New OrderRecord (existing is never mutated), ``existing`` itself when
        the email was already merged, or None when there is nothing to create.

    Raises:
        ValueError: If extraction belongs to a different order number
    """
    source_id = source_email_id or extraction.source_email_id

    if existing is None:
        if not extraction.order_number:
            counter("orders.merge.skipped_no_order_number")
            return None
        return _new_record(extraction, source_id)

    if extraction.order_number and extraction.order_number != existing.order_number:
        raise ValueError(
            f"Cannot merge order {extraction.order_number!r} into {existing.order_number!r}"
        )

    if source_id and source_id in existing.source_email_ids:
        counter("orders.merge.duplicate_email")
        return existing

    updates: dict = {}

    if extraction.status is not None and extraction.status_priority > existing.status_priority:
        updates["status"] = extraction.status
        updates["status_priority"] = extraction.status_priority

    if extraction.tracking_number:
        new_carrier = extraction.carrier or Carrier.UNKNOWN
        if existing.tracking_number is None or new_carrier.priority <= existing.carrier.priority:
            updates["tracking_number"] = extraction.tracking_number
            updates["carrier"] = new_carrier

    if existing.size is None and extraction.size:
        updates["size"] = extraction.size

    if existing.failure_reason is None and extraction.failure_reason:
        updates["failure_reason"] = extraction.failure_reason

    source_ids = set(existing.source_email_ids)
    if source_id:
        source_ids.add(source_id)
    updates["source_email_ids"] = source_ids
    updates["last_updated"] = _latest(existing.last_updated, extraction.email_date)
    updates["email_date"] = _earliest(existing.email_date, extraction.email_date)

    return existing.model_copy(update=updates)


def merge_records(existing: OrderRecord, incoming: OrderRecord) -> OrderRecord:
    """
    Fold an already-merged record into another for the same order.

    Used on the persistence write path: the stored row is ``existing``.
    Applies the same monotonic rules as merge(); source ids are unioned even
    when they overlap. An incoming record built only from emails already
    folded into ``existing`` is a no-op and returns ``existing``.

    Raises:
        ValueError: If the order numbers differ
    """
    if incoming.order_number != existing.order_number:
        raise ValueError(
            f"Cannot merge order {incoming.order_number!r} into {existing.order_number!r}"
        )

    if incoming.source_email_ids and incoming.source_email_ids <= existing.source_email_ids:
        counter("orders.merge.duplicate_email")
        return existing

    extraction = OrderExtraction(
        source_email_id=None,
        order_number=incoming.order_number,
        tracking_number=incoming.tracking_number,
        carrier=incoming.carrier,
        size=incoming.size,
        status=incoming.status,
        status_priority=incoming.status_priority,
        failure_reason=incoming.failure_reason,
        email_date=incoming.email_date,
    )
    merged = merge(existing, extraction)
    merged = merged.model_copy(
        update={
            "source_email_ids": merged.source_email_ids | incoming.source_email_ids,
            "last_updated": _latest(merged.last_updated, incoming.last_updated),
        }
    )
    return merged


def override_status(record: OrderRecord, status: OrderStatus, priority: int | None = None) -> OrderRecord:
    """
    Administrative reset: set status regardless of priority.

    The only way a status can move down (e.g. a Delivered order restored to
    Shipped after a mis-parse).
    """
    new_priority = status.priority if priority is None else priority
    logger.info(
        "Status override for order %s: %s -> %s",
        record.order_number,
        record.status.value,
        status.value,
    )
    counter("orders.status_override")
    return record.model_copy(update={"status": status, "status_priority": new_priority})


class OrderRecordMerger:
    """Accumulates extractions by order number within one run."""

    def __init__(self) -> None:
        self._records: dict[str, OrderRecord] = {}

    def add(self, extraction: OrderExtraction) -> OrderRecord | None:
        """Merge an extraction into its order's record. None if no order number."""
        if not extraction.order_number:
            counter("orders.merge.skipped_no_order_number")
            return None

        current = self._records.get(extraction.order_number)
        merged = merge(current, extraction)
        if merged is not None:
            self._records[merged.order_number] = merged
        return merged

    def add_all(self, extractions: Iterable[OrderExtraction]) -> None:
        for extraction in extractions:
            self.add(extraction)

    def records(self) -> list[OrderRecord]:
        """All records touched so far, in first-seen order."""
        return list(self._records.values())


# ============================================================================
# Duplicate cleanup (persisted records)
# ============================================================================


@dataclass
class DuplicateGroup:
    """Persisted rows sharing one order number: which to keep, which to drop."""

    order_number: str
    keep: OrderRecord
    remove: list[OrderRecord]


def record_age(record: OrderRecord) -> tuple[datetime, int]:
    """Sort key: created_at, else email_date, else epoch; row id breaks ties."""
    stamp = record.created_at or record.email_date
    return (as_utc(stamp) if stamp else _EPOCH, record.id or 0)


def plan_duplicate_cleanup(records: Sequence[OrderRecord]) -> list[DuplicateGroup]:
    """
    Group persisted records by order number and pick the oldest of each group.

    Oldest is by created_at, else email_date, else epoch; row id breaks ties.
    Only groups with more than one record are returned.
    """
    by_order: dict[str, list[OrderRecord]] = {}
    for record in records:
        by_order.setdefault(record.order_number, []).append(record)

    groups = []
    for order_number, group in by_order.items():
        if len(group) < 2:
            continue
        ordered = sorted(group, key=record_age)
        groups.append(DuplicateGroup(order_number=order_number, keep=ordered[0], remove=ordered[1:]))
    return groups
