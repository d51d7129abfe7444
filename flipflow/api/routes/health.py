"""Health check endpoint for Flip Flow API.

Liveness plus a schema check of the order store.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from flipflow.config import APP_VERSION
from flipflow.infrastructure.database import validate_schema
from flipflow.observability.logging import get_logger

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint.

    Returns service status, version, and whether the order store schema is valid.
    """
    try:
        database_ok = validate_schema()
    except (FileNotFoundError, ValueError, sqlite3.Error) as e:
        logger.warning("Health check database problem: %s", e)
        database_ok = False

    return {
        "status": "healthy" if database_ok else "degraded",
        "service": "Flip Flow API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "database": {"ok": database_ok},
    }
