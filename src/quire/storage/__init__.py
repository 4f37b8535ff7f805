"""Storage layer for Quire - SQLite database and repositories."""

from quire.storage.db import get_connection, init_db
from quire.storage.kv_store import SqliteKeyValueStore
from quire.storage.repos import KeyValueRepo

__all__ = [
    "get_connection",
    "init_db",
    "KeyValueRepo",
    "SqliteKeyValueStore",
]
