"""SQLite-backed persistence gateway for vaults, tabs and settings."""

import asyncio
import logging
from pathlib import Path
from typing import Any

from quire.storage.db import get_connection, init_db
from quire.storage.repos import KeyValueRepo

logger = logging.getLogger(__name__)


class SqliteKeyValueStore:
    """Async ``kv_load`` / ``kv_save`` over the ``kv_store`` table.

    Each call opens its own connection in a worker thread, so calls never
    block the event loop.
    """

    def __init__(self, db_path: Path | str | None = None):
        self.db_path = init_db(db_path)

    def _load(self, store_name: str, key: str) -> dict[str, Any] | None:
        with get_connection(self.db_path) as conn:
            return KeyValueRepo(conn).get(store_name, key)

    def _save(self, store_name: str, key: str, record: dict[str, Any]) -> None:
        with get_connection(self.db_path) as conn:
            KeyValueRepo(conn).put(store_name, key, record)

    async def kv_load(self, store_name: str, key: str) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._load, store_name, key)

    async def kv_save(self, store_name: str, key: str, record: dict[str, Any]) -> None:
        await asyncio.to_thread(self._save, store_name, key, record)
        logger.debug("Saved %s/%s", store_name, key)
