"""Centralized configuration for the Flip Flow backend.

Re-exports everything from flipflow.infrastructure.settings, then adds typed
constants for database, extraction pipeline and API settings. Environment
variable overrides use safe defaults so the app starts without extra env
configuration.
"""

from __future__ import annotations

import os

from flipflow.infrastructure.settings import *  # noqa: F401, F403 - re-export existing

# --- App ---
APP_VERSION: str = "1.0.0"

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("FLIPFLOW_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("FLIPFLOW_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("FLIPFLOW_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(os.getenv("FLIPFLOW_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(os.getenv("FLIPFLOW_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("FLIPFLOW_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("FLIPFLOW_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("FLIPFLOW_DB_RETRY_JITTER", "0.1"))

# --- Extraction Pipeline ---
PIPELINE_BATCH_SIZE: int = int(os.getenv("FLIPFLOW_BATCH_SIZE", "15"))
PIPELINE_ORDER_NUM_MIN_LEN: int = 3
PIPELINE_ORDER_NUM_MAX_LEN: int = 40
PIPELINE_BODY_TRUNCATION: int = int(os.getenv("FLIPFLOW_BODY_TRUNCATION", "200000"))

# Size values that historically came out of bad parses (e.g. "15" from a
# price or quantity fragment). Compared against both raw and "US x" forms.
SIZE_POISON_VALUES: tuple[str, ...] = tuple(
    value.strip()
    for value in os.getenv("FLIPFLOW_SIZE_POISON_VALUES", "15").split(",")
    if value.strip()
)

# --- API ---
API_LIST_LIMIT_DEFAULT: int = 100
API_LIST_LIMIT_MAX: int = 500
API_BATCH_SIZE_MAX: int = 500
