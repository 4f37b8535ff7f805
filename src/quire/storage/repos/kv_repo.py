"""Key-value repository - pure data access for JSON records."""

import json
import sqlite3
from datetime import datetime
from typing import Any


class KeyValueRepo:
    """Repository for ``(store, key) -> JSON`` records."""

    def __init__(self, conn: sqlite3.Connection):
        """
        Initialize key-value repository.

        Args:
            conn: SQLite connection with row_factory set
        """
        self.conn = conn

    def get(self, store: str, key: str) -> dict[str, Any] | None:
        """Get a record, or None if not exists."""
        row = self.conn.execute(
            "SELECT value FROM kv_store WHERE store = ? AND key = ?",
            (store, key),
        ).fetchone()
        if row is None:
            return None
        return json.loads(row["value"])

    def put(self, store: str, key: str, record: dict[str, Any]) -> None:
        """Insert or replace a record."""
        self.conn.execute(
            """
            INSERT INTO kv_store (store, key, value, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(store, key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (store, key, json.dumps(record), datetime.now().isoformat()),
        )
