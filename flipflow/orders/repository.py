"""
Order Record Repository - persistence for order_records.

Writes are upserts keyed by order number that re-apply the merge rules from
flipflow.orders.merger against the stored row, so a re-run or an out-of-order
run can never downgrade a status or a tracking number.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass, field

from flipflow.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from flipflow.observability.logging import get_logger
from flipflow.observability.telemetry import counter, log_event
from flipflow.orders.merger import DuplicateGroup, merge_records, override_status, plan_duplicate_cleanup, record_age
from flipflow.orders.models import OrderRecord, OrderStatus, utc_now

logger = get_logger(__name__)

_COLUMNS = (
    "order_number",
    "tracking_number",
    "carrier",
    "size",
    "status",
    "status_priority",
    "failure_reason",
    "source_email_ids",
    "last_updated",
    "email_date",
    "created_at",
)

_INSERT_SQL = f"""
    INSERT INTO order_records ({", ".join(_COLUMNS)})
    VALUES ({", ".join(":" + c for c in _COLUMNS)})
"""

_UPDATE_SQL = """
    UPDATE order_records SET
        tracking_number = :tracking_number,
        carrier = :carrier,
        size = :size,
        status = :status,
        status_priority = :status_priority,
        failure_reason = :failure_reason,
        source_email_ids = :source_email_ids,
        last_updated = :last_updated,
        email_date = :email_date
    WHERE id = :id
"""


@dataclass
class UpsertResult:
    """Outcome of persisting one batch of records."""

    records: list[OrderRecord] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    unchanged: int = 0


@dataclass
class DuplicateCleanupResult:
    """Outcome of a keep-oldest duplicate cleanup pass."""

    groups: list[DuplicateGroup] = field(default_factory=list)

    @property
    def removed_count(self) -> int:
        return sum(len(group.remove) for group in self.groups)


def _rows_for(conn: sqlite3.Connection, order_number: str) -> list[OrderRecord]:
    cursor = conn.execute(
        "SELECT * FROM order_records WHERE order_number = :order_number",
        {"order_number": order_number},
    )
    return [OrderRecord.from_db_row(dict(row)) for row in cursor.fetchall()]


def _insert(conn: sqlite3.Connection, record: OrderRecord) -> OrderRecord:
    if record.created_at is None:
        record = record.model_copy(update={"created_at": utc_now()})
    cursor = conn.execute(_INSERT_SQL, record.to_db_dict())
    return record.model_copy(update={"id": cursor.lastrowid})


def _update(conn: sqlite3.Connection, record: OrderRecord) -> None:
    params = record.to_db_dict()
    params["id"] = record.id
    conn.execute(_UPDATE_SQL, params)


class OrderRecordRepository:
    """
    Repository for OrderRecord persistence.

    All methods use connection pooling and proper transaction handling.
    When duplicates exist for an order number the oldest row is canonical.
    """

    @staticmethod
    @retry_on_db_lock()
    def upsert_many(records: Sequence[OrderRecord]) -> UpsertResult:
        """
        Upsert records by order number in a single transaction.

        Either every record is written or none is: a failure rolls the whole
        batch back and propagates to the caller.

        Side Effects:
            - Inserts/updates rows in order_records
            - Commits transaction
        """
        result = UpsertResult()

        with db_transaction() as conn:
            for record in records:
                stored = _rows_for(conn, record.order_number)
                if not stored:
                    result.records.append(_insert(conn, record))
                    result.created += 1
                    continue

                canonical = min(stored, key=record_age)
                merged = merge_records(canonical, record)
                if merged.same_state(canonical):
                    result.records.append(canonical)
                    result.unchanged += 1
                    continue

                _update(conn, merged)
                result.records.append(merged)
                result.updated += 1

        counter("orders.repository.created", result.created)
        counter("orders.repository.updated", result.updated)
        logger.info(
            "Upserted %d order records (created=%d updated=%d unchanged=%d)",
            len(records),
            result.created,
            result.updated,
            result.unchanged,
        )
        return result

    @staticmethod
    def upsert(record: OrderRecord) -> OrderRecord:
        """Upsert one record; returns the stored, merged state."""
        return OrderRecordRepository.upsert_many([record]).records[0]

    @staticmethod
    @retry_on_db_lock()
    def insert(record: OrderRecord) -> OrderRecord:
        """
        Insert a row without merging (imports, fixtures).

        Side Effects:
            - Inserts row into order_records
        """
        with db_transaction() as conn:
            return _insert(conn, record)

    @staticmethod
    def get_by_order_number(order_number: str) -> OrderRecord | None:
        """Canonical (oldest) record for an order number."""
        rows = OrderRecordRepository.list_by_order_number(order_number)
        if not rows:
            return None
        return min(rows, key=record_age)

    @staticmethod
    def list_by_order_number(order_number: str) -> list[OrderRecord]:
        """Every stored row for an order number, duplicates included."""
        with get_db_connection() as conn:
            return _rows_for(conn, order_number)

    @staticmethod
    def list_all(
        status: OrderStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[OrderRecord]:
        """List records, most recently updated first."""
        query = "SELECT * FROM order_records"
        params: dict = {"limit": limit, "offset": offset}
        if status is not None:
            query += " WHERE status = :status"
            params["status"] = status.value
        query += " ORDER BY last_updated DESC, id DESC LIMIT :limit OFFSET :offset"

        with get_db_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [OrderRecord.from_db_row(dict(row)) for row in rows]

    @staticmethod
    def count(status: OrderStatus | None = None) -> int:
        query = "SELECT COUNT(*) FROM order_records"
        params: dict = {}
        if status is not None:
            query += " WHERE status = :status"
            params["status"] = status.value

        with get_db_connection() as conn:
            return conn.execute(query, params).fetchone()[0]

    @staticmethod
    @retry_on_db_lock()
    def set_status(order_number: str, status: OrderStatus) -> OrderRecord | None:
        """
        Administrative status reset on the canonical row (bypasses priority rules).

        Returns:
            Updated record, or None if the order is unknown

        Side Effects:
            - Updates status/status_priority of one row
        """
        with db_transaction() as conn:
            rows = _rows_for(conn, order_number)
            if not rows:
                return None
            updated = override_status(min(rows, key=record_age), status)
            _update(conn, updated)

        log_event("orders.status_reset", order_number=order_number, status=status.value)
        return updated

    @staticmethod
    @retry_on_db_lock()
    def remove_duplicates() -> DuplicateCleanupResult:
        """
        Keep the oldest row per order number and delete the rest.

        Idempotent: a second pass finds no duplicates and deletes nothing.

        Side Effects:
            - Deletes rows from order_records
            - Commits transaction
        """
        with db_transaction() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM order_records
                WHERE order_number IN (
                    SELECT order_number FROM order_records
                    GROUP BY order_number HAVING COUNT(*) > 1
                )
                """
            )
            records = [OrderRecord.from_db_row(dict(row)) for row in cursor.fetchall()]
            groups = plan_duplicate_cleanup(records)

            for group in groups:
                conn.executemany(
                    "DELETE FROM order_records WHERE id = :id",
                    [{"id": record.id} for record in group.remove],
                )

        result = DuplicateCleanupResult(groups=groups)
        log_event(
            "orders.duplicates_removed",
            groups=len(groups),
            removed=result.removed_count,
        )
        return result
