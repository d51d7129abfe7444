from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from flipflow.orders.models import Carrier, OrderRecord, OrderStatus, RawEmail

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def test_status_priorities_are_ordered():
    ordered = [
        OrderStatus.NEEDS_REVIEW,
        OrderStatus.ORDERED,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELED,
    ]
    priorities = [status.priority for status in ordered]
    assert priorities == sorted(priorities)
    assert len(set(priorities)) == len(priorities)


def test_carrier_priorities_rank_ups_first():
    assert Carrier.UPS.priority < Carrier.FEDEX.priority < Carrier.USPS.priority
    assert Carrier.USPS.priority < Carrier.STOCKX_INTERNAL.priority < Carrier.UNKNOWN.priority


def test_raw_email_requires_source_id():
    with pytest.raises(ValidationError):
        RawEmail(source_id="", internal_date=NOW)


def test_raw_email_is_immutable():
    email = RawEmail(source_id="m1", subject="Order Shipped:", internal_date=NOW)
    with pytest.raises(ValidationError):
        email.subject = "changed"


def test_raw_email_repr_hides_content():
    email = RawEmail(source_id="m1", subject="Order Shipped: secret", body_plain_text="body", internal_date=NOW)
    text = repr(email)
    assert "secret" not in text
    assert "body" not in text.replace("body_plain_text", "")
    assert "m1" in text


def test_order_record_defaults():
    record = OrderRecord(order_number="75473725")
    assert record.status is OrderStatus.NEEDS_REVIEW
    assert record.status_priority == 0
    assert record.carrier is Carrier.UNKNOWN
    assert record.source_email_ids == set()


def test_order_record_fills_status_priority_from_status():
    assert OrderRecord(order_number="1", status=OrderStatus.SHIPPED).status_priority == 4


def test_order_record_rejects_blank_order_number():
    with pytest.raises(ValidationError):
        OrderRecord(order_number="  ")


def test_source_email_ids_serialize_sorted():
    record = OrderRecord(order_number="75473725", source_email_ids={"b", "a", "c"})
    assert record.model_dump()["source_email_ids"] == ["a", "b", "c"]
    assert json.loads(record.model_dump_json())["source_email_ids"] == ["a", "b", "c"]


def test_db_round_trip():
    record = OrderRecord(
        order_number="75473725",
        tracking_number="1Z999AA10123456784",
        carrier=Carrier.UPS,
        size="US 10",
        status=OrderStatus.DELIVERED,
        source_email_ids={"e1", "e2"},
        last_updated=NOW,
        email_date=NOW,
        created_at=NOW,
    )
    row = record.to_db_dict()
    assert row["source_email_ids"] == '["e1", "e2"]'

    restored = OrderRecord.from_db_row({"id": 1, **row})
    assert restored.id == 1
    assert restored.same_state(record)


def test_same_state_ignores_persistence_fields():
    a = OrderRecord(order_number="1", id=1, created_at=NOW)
    b = OrderRecord(order_number="1", id=2)
    assert a.same_state(b)
    assert not a.same_state(b.model_copy(update={"size": "US 9"}))
