"""Filesystem backends."""

from quire.fs.local import LocalFileSystem

__all__ = ["LocalFileSystem"]
