"""Order sync service - facade between API routes, the pipeline and the repository.

One sync = run the extraction pipeline over a window of emails, then upsert
the merged records. Persistence failures propagate to the caller; since the
upsert is transactional per batch and re-applies the merge rules, re-running
the same window afterwards is always safe.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass, field

from flipflow.config import PIPELINE_BATCH_SIZE
from flipflow.observability.logging import get_logger
from flipflow.observability.telemetry import log_event
from flipflow.orders.extractor import OrderEmailPipeline, iter_batches
from flipflow.orders.models import OrderRecord, OrderStatus, RawEmail, as_utc
from flipflow.orders.repository import DuplicateCleanupResult, OrderRecordRepository

logger = get_logger(__name__)


@dataclass
class SyncResult:
    """Result of a sync run."""

    records: list[OrderRecord] = field(default_factory=list)
    emails_processed: int = 0
    batches: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped_uncategorized: int = 0
    skipped_no_order_number: int = 0
    errors: int = 0


class OrderSyncService:
    """Service layer for order sync and maintenance operations."""

    def __init__(self, pipeline: OrderEmailPipeline | None = None) -> None:
        self.pipeline = pipeline or OrderEmailPipeline()

    def sync(self, emails: Sequence[RawEmail], batch_size: int | None = None) -> SyncResult:
        """
        Extract, merge and persist order records from emails.

        Args:
            emails: Decoded emails for the sync window
            batch_size: Emails per batch (default PIPELINE_BATCH_SIZE); each
                        batch is run and persisted in its own transaction

        Returns:
            SyncResult with the stored state of every order touched

        Raises:
            sqlite3.Error: Persistence failed; the failing batch was rolled back

        Side Effects:
            - Upserts rows in order_records
            - Emits orders.sync.complete event
        """
        result = SyncResult(emails_processed=len(emails))
        # Oldest first across batches too, so batch boundaries cannot reorder merges
        ordered = sorted(emails, key=lambda e: (as_utc(e.internal_date), e.source_id))
        batches = iter_batches(ordered, batch_size or PIPELINE_BATCH_SIZE)
        stored: dict[str, OrderRecord] = {}

        for batch in batches:
            run = self.pipeline.run_detailed(batch)
            result.batches += 1
            result.skipped_uncategorized += run.skipped_uncategorized
            result.skipped_no_order_number += run.skipped_no_order_number
            result.errors += run.errors

            if not run.records:
                continue

            try:
                upserted = OrderRecordRepository.upsert_many(run.records)
            except sqlite3.Error as e:
                logger.error(
                    "Persisting %d order records failed after %d batches: %s",
                    len(run.records),
                    result.batches - 1,
                    e,
                )
                raise

            result.created += upserted.created
            result.updated += upserted.updated
            result.unchanged += upserted.unchanged
            for record in upserted.records:
                stored[record.order_number] = record

        result.records = list(stored.values())

        log_event(
            "orders.sync.complete",
            emails=result.emails_processed,
            batches=result.batches,
            orders=len(result.records),
            created=result.created,
            updated=result.updated,
        )
        return result

    @staticmethod
    def list_orders(
        status: OrderStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[OrderRecord], int]:
        """List stored orders.

        Returns:
            (records, total_count)
        """
        records = OrderRecordRepository.list_all(status=status, limit=limit, offset=offset)
        return records, OrderRecordRepository.count(status)

    @staticmethod
    def get_order(order_number: str) -> OrderRecord | None:
        return OrderRecordRepository.get_by_order_number(order_number)

    @staticmethod
    def reset_status(order_number: str, status: OrderStatus) -> OrderRecord | None:
        """Administrative status reset. None if the order is unknown."""
        return OrderRecordRepository.set_status(order_number, status)

    @staticmethod
    def remove_duplicates() -> DuplicateCleanupResult:
        return OrderRecordRepository.remove_duplicates()
