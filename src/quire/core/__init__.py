"""Quire core library - vault, file tree and tab state."""

from typing import TYPE_CHECKING

from quire.core.errors import (
    InvalidPathError,
    IoFailure,
    NotFoundError,
    WatchSetupFailure,
    WorkspaceError,
)
from quire.core.types import (
    FileEvent,
    FileNode,
    NodeKind,
    Settings,
    Tab,
    Vault,
    WorkspaceSnapshot,
)

if TYPE_CHECKING:
    from quire.core.factory import build_workspace
    from quire.core.workspace import Workspace

__all__ = [
    # Core classes
    "Workspace",
    "build_workspace",
    # Types
    "FileEvent",
    "FileNode",
    "NodeKind",
    "Settings",
    "Tab",
    "Vault",
    "WorkspaceSnapshot",
    # Errors
    "InvalidPathError",
    "IoFailure",
    "NotFoundError",
    "WatchSetupFailure",
    "WorkspaceError",
]


def __getattr__(name: str):
    if name == "Workspace":
        from quire.core.workspace import Workspace

        return Workspace
    if name == "build_workspace":
        from quire.core.factory import build_workspace

        return build_workspace
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
