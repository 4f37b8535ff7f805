"""Repository classes for data access."""

from quire.storage.repos.kv_repo import KeyValueRepo

__all__ = ["KeyValueRepo"]
