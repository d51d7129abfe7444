"""
Pytest configuration for Flip Flow tests

Provides email builders and an isolated SQLite database per test.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from flipflow.orders.models import RawEmail

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def make_email(
    source_id: str,
    subject: str,
    body_plain_text: str | None = None,
    body_html: str | None = None,
    minutes: int = 0,
) -> RawEmail:
    """Build a RawEmail received ``minutes`` after BASE_TIME."""
    return RawEmail(
        source_id=source_id,
        subject=subject,
        body_plain_text=body_plain_text,
        body_html=body_html,
        internal_date=BASE_TIME + timedelta(minutes=minutes),
    )


@pytest.fixture
def email_factory():
    return make_email


@pytest.fixture(autouse=True)
def _reset_telemetry():
    from flipflow.observability.telemetry import reset_counters, reset_latencies

    reset_counters()
    reset_latencies()
    yield
    reset_counters()
    reset_latencies()


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """
    Point FLIPFLOW_DB_PATH at a fresh database with the schema applied.

    Pools are reset before and after so no connection outlives the test.
    """
    from flipflow.infrastructure.database import init_database, reset_pools

    db_path = tmp_path / "flipflow-test.db"
    monkeypatch.setenv("FLIPFLOW_DB_PATH", str(db_path))
    reset_pools()
    init_database()
    yield db_path
    reset_pools()
