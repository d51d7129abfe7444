"""
Integration tests for OrderRecordRepository and OrderSyncService against SQLite.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime, timedelta

import pytest

from flipflow.orders.models import Carrier, OrderRecord, OrderStatus
from flipflow.orders.repository import OrderRecordRepository
from flipflow.orders.service import OrderSyncService

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def _record(order_number: str = "75473725", **fields) -> OrderRecord:
    defaults = {
        "status": OrderStatus.SHIPPED,
        "source_email_ids": {"e1"},
        "last_updated": T0,
        "email_date": T0,
    }
    defaults.update(fields)
    return OrderRecord(order_number=order_number, **defaults)


def test_upsert_creates_then_merges(temp_db):
    created = OrderRecordRepository.upsert(_record(tracking_number="812345678901", carrier=Carrier.STOCKX_INTERNAL))
    assert created.id is not None
    assert created.created_at is not None

    merged = OrderRecordRepository.upsert(
        _record(
            status=OrderStatus.DELIVERED,
            tracking_number="1Z999AA10123456784",
            carrier=Carrier.UPS,
            source_email_ids={"e2"},
            last_updated=T0 + timedelta(hours=1),
        )
    )
    assert merged.id == created.id
    assert merged.status is OrderStatus.DELIVERED
    assert merged.carrier is Carrier.UPS
    assert merged.source_email_ids == {"e1", "e2"}

    stored = OrderRecordRepository.list_by_order_number("75473725")
    assert len(stored) == 1
    assert stored[0].same_state(merged)


def test_upsert_never_downgrades_status(temp_db):
    OrderRecordRepository.upsert(_record(status=OrderStatus.DELIVERED))
    result = OrderRecordRepository.upsert(_record(status=OrderStatus.SHIPPED, source_email_ids={"e0"}))
    assert result.status is OrderStatus.DELIVERED


def test_upsert_same_state_is_unchanged(temp_db):
    OrderRecordRepository.upsert_many([_record()])
    result = OrderRecordRepository.upsert_many([_record()])
    assert (result.created, result.updated, result.unchanged) == (0, 0, 1)


def test_list_and_count_filter_by_status(temp_db):
    OrderRecordRepository.upsert_many(
        [
            _record("11111111", status=OrderStatus.SHIPPED),
            _record("22222222", status=OrderStatus.DELIVERED, last_updated=T0 + timedelta(hours=2)),
            _record("33333333", status=OrderStatus.DELIVERED, last_updated=T0 + timedelta(hours=1)),
        ]
    )
    delivered = OrderRecordRepository.list_all(status=OrderStatus.DELIVERED)
    assert [r.order_number for r in delivered] == ["22222222", "33333333"]
    assert OrderRecordRepository.count() == 3
    assert OrderRecordRepository.count(OrderStatus.SHIPPED) == 1
    assert len(OrderRecordRepository.list_all(limit=1, offset=1)) == 1


def test_set_status_overrides_priority(temp_db):
    OrderRecordRepository.upsert(_record(status=OrderStatus.DELIVERED))
    updated = OrderRecordRepository.set_status("75473725", OrderStatus.SHIPPED)
    assert updated.status is OrderStatus.SHIPPED
    assert OrderRecordRepository.get_by_order_number("75473725").status_priority == 4
    assert OrderRecordRepository.set_status("00000001", OrderStatus.SHIPPED) is None


def test_remove_duplicates_keeps_oldest_and_is_idempotent(temp_db):
    for hours in (2, 0, 1):
        OrderRecordRepository.insert(_record(created_at=T0 + timedelta(hours=hours)))
    OrderRecordRepository.insert(_record("11111111", created_at=T0))

    result = OrderRecordRepository.remove_duplicates()
    assert result.removed_count == 2
    remaining = OrderRecordRepository.list_by_order_number("75473725")
    assert len(remaining) == 1
    assert remaining[0].created_at == T0

    assert OrderRecordRepository.remove_duplicates().removed_count == 0
    assert OrderRecordRepository.count() == 2


def test_upsert_merges_into_oldest_duplicate(temp_db):
    newer = OrderRecordRepository.insert(_record(created_at=T0 + timedelta(days=1)))
    older = OrderRecordRepository.insert(_record(created_at=T0))

    merged = OrderRecordRepository.upsert(_record(status=OrderStatus.DELIVERED, source_email_ids={"e5"}))
    assert merged.id == older.id
    assert OrderRecordRepository.get_by_order_number("75473725").status is OrderStatus.DELIVERED
    untouched = [r for r in OrderRecordRepository.list_by_order_number("75473725") if r.id == newer.id]
    assert untouched[0].status is OrderStatus.SHIPPED


def test_missing_database_raises(tmp_path, monkeypatch):
    from flipflow.infrastructure.database import reset_pools

    monkeypatch.setenv("FLIPFLOW_DB_PATH", str(tmp_path / "absent.db"))
    reset_pools()
    with pytest.raises(FileNotFoundError):
        OrderRecordRepository.count()


def test_sync_is_safe_to_rerun(temp_db, email_factory):
    emails = [
        email_factory(
            "email-1",
            "Order Shipped: Nike Air Jordan 1",
            body_plain_text="Order number: 01-95H9NC36ST\nTracking number: 1Z24WA430206362750",
        ),
        email_factory(
            "email-2",
            "Xpress Ship Order Delivered: Nike Air Jordan 1",
            body_plain_text="Order number: 01-95H9NC36ST",
            minutes=30,
        ),
    ]
    service = OrderSyncService()

    first = service.sync(emails, batch_size=1)
    assert first.batches == 2
    assert first.created == 1
    assert first.updated == 1

    second = service.sync(emails)
    assert second.created == 0
    assert second.updated == 0
    assert second.unchanged == 1

    records, total = OrderSyncService.list_orders()
    assert total == 1
    assert records[0].status is OrderStatus.DELIVERED
    assert records[0].tracking_number == "1Z24WA430206362750"
    assert records[0].source_email_ids == {"email-1", "email-2"}


def test_sync_propagates_persistence_failure(temp_db, email_factory, monkeypatch):
    def broken(records):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(OrderRecordRepository, "upsert_many", staticmethod(broken))
    email = email_factory("email-1", "Order Shipped: X", body_plain_text="Order number: 12345678")

    with pytest.raises(sqlite3.OperationalError):
        OrderSyncService().sync([email])


def test_redelivered_email_does_not_change_stored_record(temp_db, email_factory):
    """An email already folded into the stored row must not re-apply its fields."""
    first = email_factory(
        "email-1",
        "Order Shipped: Jordan 4",
        body_plain_text="Order number: 12345678\nTracking number: 123456789012",
    )
    second = email_factory(
        "email-2",
        "Order Shipped: Jordan 4",
        body_plain_text="Order number: 12345678\nTracking number: 223456789012",
        minutes=10,
    )
    service = OrderSyncService()

    service.sync([first, second])
    assert OrderSyncService.get_order("12345678").tracking_number == "223456789012"

    again = service.sync([first])
    assert (again.created, again.updated, again.unchanged) == (0, 0, 1)

    stored = OrderSyncService.get_order("12345678")
    assert stored.tracking_number == "223456789012"
    assert stored.carrier is Carrier.FEDEX
    assert stored.source_email_ids == {"email-1", "email-2"}
