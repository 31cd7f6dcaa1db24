"""SQLite database module for the ledger and user preferences."""

from .preferences import PreferencesDB
from .schema import ensure_schema, open_database
from .store import DEFAULT_DB_PATH, LedgerStore

__all__ = [
    "DEFAULT_DB_PATH",
    "LedgerStore",
    "PreferencesDB",
    "ensure_schema",
    "open_database",
]
