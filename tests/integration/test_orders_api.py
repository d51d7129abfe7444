"""
API tests for the order endpoints (FastAPI TestClient, temp database).
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from flipflow.orders.models import OrderRecord, OrderStatus
from flipflow.orders.repository import OrderRecordRepository

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

SHIPPED = {
    "source_id": "email-1",
    "subject": "Order Shipped: Nike Air Jordan 1",
    "body_plain_text": "Order number: 01-95H9NC36ST\nTracking number: 1Z24WA430206362750",
    "internal_date": "2024-03-01T12:00:00+00:00",
}
DELIVERED = {
    "source_id": "email-2",
    "subject": "\U0001F389 Xpress Ship Order Delivered: Nike Air Jordan 1",
    "body_html": "<p>Order number: 01-95H9NC36ST</p>",
    "internal_date": "2024-03-02T12:00:00+00:00",
}
PROMO = {
    "source_id": "email-3",
    "subject": "Weekly deals",
    "body_plain_text": "Save 20%",
    "internal_date": "2024-03-02T13:00:00+00:00",
}


@pytest.fixture
def client(temp_db):
    from flipflow.api.app import app

    with TestClient(app) as test_client:
        yield test_client


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["service"] == "Flip Flow API"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == {"ok": True}


def test_extract_is_stateless(client):
    response = client.post("/api/orders/extract", json={"emails": [DELIVERED, SHIPPED, PROMO]})
    assert response.status_code == 200
    body = response.json()

    assert body["stats"] == {
        "total": 3,
        "orders": 1,
        "uncategorized": 1,
        "no_order_number": 0,
        "errors": 0,
    }
    [record] = body["records"]
    assert record["order_number"] == "01-95H9NC36ST"
    assert record["status"] == "Delivered"
    assert record["tracking_number"] == "1Z24WA430206362750"
    assert record["carrier"] == "UPS"
    assert record["source_email_ids"] == ["email-1", "email-2"]
    assert all(e["diagnostics"] is None for e in body["extractions"])

    assert client.get("/api/orders").json()["total"] == 0


def test_extract_with_diagnostics(client):
    response = client.post(
        "/api/orders/extract", json={"emails": [SHIPPED], "include_diagnostics": True}
    )
    [extraction] = response.json()["extractions"]
    tracking = extraction["diagnostics"]["tracking_number"]
    assert tracking["value"] == "1Z24WA430206362750"
    assert tracking["matched_rule"] == "ups"
    assert tracking["candidates"][0]["pattern"] == "ups"


def test_validation_errors_are_sanitized(client):
    bad = {k: v for k, v in SHIPPED.items() if k != "source_id"}
    response = client.post("/api/orders/extract", json={"emails": [bad]})
    assert response.status_code == 422
    body = response.json()
    assert body["invalid_fields"] == ["source_id"]
    assert "Nike" not in response.text


def test_sync_then_read(client):
    response = client.post("/api/orders/sync", json={"emails": [SHIPPED, DELIVERED], "batch_size": 1})
    assert response.status_code == 200
    stats = response.json()["stats"]
    assert stats["batches"] == 2
    assert stats["created"] == 1
    assert stats["updated"] == 1

    listing = client.get("/api/orders", params={"status": "Delivered"}).json()
    assert listing["total"] == 1
    assert listing["orders"][0]["order_number"] == "01-95H9NC36ST"

    order = client.get("/api/orders/01-95H9NC36ST").json()
    assert order["status"] == "Delivered"
    assert order["carrier"] == "UPS"


def test_get_unknown_order_is_404(client):
    assert client.get("/api/orders/99999999").status_code == 404


def test_status_reset(client):
    client.post("/api/orders/sync", json={"emails": [SHIPPED, DELIVERED]})

    response = client.post("/api/orders/01-95H9NC36ST/status", json={"status": "Shipped"})
    assert response.status_code == 200
    assert response.json()["status"] == "Shipped"
    assert response.json()["status_priority"] == 4

    missing = client.post("/api/orders/99999999/status", json={"status": "Shipped"})
    assert missing.status_code == 404


def test_dedupe(client):
    for days in (1, 0):
        OrderRecordRepository.insert(
            OrderRecord(
                order_number="75473725",
                status=OrderStatus.SHIPPED,
                created_at=T0 + timedelta(days=days),
            )
        )

    response = client.post("/api/orders/dedupe")
    assert response.status_code == 200
    body = response.json()
    assert body["removed"] == 1
    [group] = body["groups"]
    assert group["order_number"] == "75473725"
    assert len(group["removed_ids"]) == 1

    assert client.post("/api/orders/dedupe").json() == {"groups": [], "removed": 0}


def test_list_limit_is_bounded(client):
    assert client.get("/api/orders", params={"limit": 10_000}).status_code == 422
