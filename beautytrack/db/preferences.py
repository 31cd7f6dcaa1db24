"""Key-value preference storage backed by SQLite."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

from .schema import open_database
from .store import DEFAULT_DB_PATH


class PreferencesDB:
    """Stores JSON-encoded values in the preferences table."""

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn, _ = open_database(self._db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def get(self, key: str, default: Any = None) -> Any:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT value FROM preferences WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return default

    def set(self, key: str, value: Any) -> None:
        conn = self._get_conn()
        conn.execute(
            """INSERT INTO preferences (key, value) VALUES (?, ?)
               ON CONFLICT(key) DO UPDATE SET value = excluded.value""",
            (key, json.dumps(value, ensure_ascii=False)),
        )
        conn.commit()

    def delete(self, key: str) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM preferences WHERE key = ?", (key,))
        conn.commit()
