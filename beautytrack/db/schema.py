"""Database schema definitions and migration helpers."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1

MEMORY_PATH = ":memory:"

_DDL = """
CREATE TABLE IF NOT EXISTS products (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    sku TEXT,
    category TEXT NOT NULL,
    supplier TEXT NOT NULL DEFAULT '',
    current_stock INTEGER NOT NULL DEFAULT 0,
    min_stock INTEGER NOT NULL DEFAULT 0,
    max_stock INTEGER NOT NULL DEFAULT 0,
    usage_rate REAL NOT NULL DEFAULT 0.5,
    last_updated TEXT NOT NULL,
    cost_per_unit REAL NOT NULL DEFAULT 0.0,
    reorder_days INTEGER NOT NULL DEFAULT 6,
    location TEXT NOT NULL DEFAULT ''
);

CREATE INDEX IF NOT EXISTS idx_products_name ON products(name COLLATE NOCASE);

CREATE TABLE IF NOT EXISTS expenses (
    id TEXT PRIMARY KEY,
    date TEXT NOT NULL,
    amount REAL NOT NULL,
    category TEXT NOT NULL,
    product_name TEXT,
    quantity INTEGER NOT NULL DEFAULT 0,
    location TEXT NOT NULL DEFAULT '',
    notes TEXT
);

CREATE INDEX IF NOT EXISTS idx_expenses_date ON expenses(date);

CREATE TABLE IF NOT EXISTS receipts (
    id TEXT PRIMARY KEY,
    supplier TEXT NOT NULL,
    date TEXT NOT NULL,
    total REAL NOT NULL,
    items INTEGER NOT NULL DEFAULT 0,
    image_data BLOB,
    location TEXT NOT NULL DEFAULT '',
    ocr_text TEXT
);

CREATE TABLE IF NOT EXISTS receipt_items (
    id TEXT PRIMARY KEY,
    product_name TEXT NOT NULL,
    quantity INTEGER NOT NULL,
    unit_price REAL NOT NULL,
    total_price REAL NOT NULL,
    confidence REAL NOT NULL,
    status TEXT NOT NULL DEFAULT 'new'
);

CREATE TABLE IF NOT EXISTS preferences (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);
"""


def ensure_schema(db_path: str | Path) -> sqlite3.Connection:
    """Open (or create) the database and ensure the schema is up to date.

    Args:
        db_path: Path to the SQLite database file, or ":memory:".

    Returns:
        An open sqlite3.Connection with the schema applied.
    """
    if str(db_path) == MEMORY_PATH:
        conn = sqlite3.connect(MEMORY_PATH)
    else:
        db_path = Path(db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(db_path))
        conn.execute("PRAGMA journal_mode=WAL")

    conn.row_factory = sqlite3.Row

    try:
        row = conn.execute("SELECT version FROM schema_version").fetchone()
        current_version = row["version"] if row else 0
    except sqlite3.OperationalError:
        current_version = 0

    if current_version < _SCHEMA_VERSION:
        conn.executescript(_DDL)
        conn.execute("DELETE FROM schema_version")
        conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (_SCHEMA_VERSION,),
        )
        conn.commit()

    return conn


def open_database(db_path: str | Path) -> tuple[sqlite3.Connection, bool]:
    """Open the database, degrading to an in-memory store on failure.

    Returns:
        The connection and whether it is backed by the file at db_path.
    """
    if str(db_path) == MEMORY_PATH:
        return ensure_schema(MEMORY_PATH), False
    try:
        return ensure_schema(db_path), True
    except (sqlite3.Error, OSError):
        logger.warning(
            "Could not open database at %s; falling back to an in-memory store",
            db_path,
            exc_info=True,
        )
        return ensure_schema(MEMORY_PATH), False
