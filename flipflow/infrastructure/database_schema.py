"""
Database schema initialization for Flip Flow.

order_records deliberately has no UNIQUE constraint on order_number: rows
written by older, buggy sync runs can duplicate an order, and the repository's
remove_duplicates() maintenance pass cleans them up.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from flipflow.observability.logging import get_logger

logger = get_logger(__name__)

REQUIRED_TABLES: dict[str, list[str]] = {
    "order_records": ["id", "order_number", "status", "status_priority", "source_email_ids"],
}


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Args:
        db_path: Path to the database file

    Side Effects:
    - Creates the parent directory and database file if missing
    - Creates order_records table and indexes if they don't exist
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS order_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                order_number TEXT NOT NULL,
                tracking_number TEXT,
                carrier TEXT NOT NULL DEFAULT 'UNKNOWN',
                size TEXT,
                status TEXT NOT NULL DEFAULT 'NeedsReview',
                status_priority INTEGER NOT NULL DEFAULT 0,
                failure_reason TEXT,
                source_email_ids TEXT NOT NULL DEFAULT '[]',
                last_updated TEXT,
                email_date TEXT,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_order_records_order_number
                ON order_records(order_number);
            CREATE INDEX IF NOT EXISTS idx_order_records_status
                ON order_records(status);
        """)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database schema initialized at %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Validate database has expected schema

    Raises:
        ValueError: If tables or columns are missing
    """
    existing_tables = {
        row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }

    missing_tables = set(REQUIRED_TABLES) - existing_tables
    if missing_tables:
        raise ValueError(f"Database missing tables: {missing_tables}")

    for table, columns in REQUIRED_TABLES.items():
        existing_columns = {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}
        missing_columns = set(columns) - existing_columns
        if missing_columns:
            raise ValueError(f"Table {table} missing columns: {missing_columns}")

    return True
