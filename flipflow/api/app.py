"""FastAPI server for Flip Flow"""

from __future__ import annotations

import sqlite3
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flipflow.api.routes.health import router as health_router
from flipflow.api.routes.orders import router as orders_router
from flipflow.config import APP_VERSION, is_development, is_production
from flipflow.infrastructure.database import init_database
from flipflow.observability.logging import get_logger
from flipflow.observability.telemetry import log_event

# Load environment variables from .env file
load_dotenv()

# Interactive docs are a development aid; production serves the API only
app = FastAPI(
    title="Flip Flow API",
    version=APP_VERSION,
    docs_url=None if is_production() else "/docs",
    redoc_url=None,
)

logger = get_logger(__name__)


# Sanitized validation errors: request bodies carry email content
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Custom validation error handler that never echoes request content back.
    """
    from flipflow.observability.telemetry import counter
    from flipflow.utils.redaction import redact

    invalid_fields = [str(err["loc"][-1]) for err in exc.errors() if err.get("loc")]
    logger.warning(
        "Validation error on %s: %d errors in fields %s",
        redact(str(request.url)),
        len(exc.errors()),
        invalid_fields,
    )
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            "invalid_fields": invalid_fields,
        },
    )


ALLOWED_ORIGINS: list[str] = []

# Allow localhost in development only
if is_development():
    ALLOWED_ORIGINS.extend(
        [
            "http://localhost:3000",
            "http://localhost:8000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:8000",
        ]
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)

# Initialize database schema
try:
    logger.info("Initializing database schema...")
    init_database()
    logger.info("Database initialization complete")
except sqlite3.OperationalError as e:
    logger.critical("Database schema error: %s", e)
    raise RuntimeError(f"Database initialization failed: {e}") from e
except OSError as e:
    logger.critical("Database file error: %s", e)
    raise RuntimeError(f"Database initialization failed: {e}") from e

app.include_router(health_router)
app.include_router(orders_router)

log_event("api.startup", service="flipflow", version=APP_VERSION)


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "Flip Flow API",
        "version": APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "orders": "/api/orders",
            "extract": "/api/orders/extract",
            "sync": "/api/orders/sync",
            "dedupe": "/api/orders/dedupe",
        },
    }
