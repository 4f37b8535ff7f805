"""Shared types and data structures for the Quire workspace core."""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from enum import Enum, StrEnum
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, model_validator

from quire.core.config import IMAGE_EXTENSIONS, MAX_TABS

__all__ = [
    "ChangeCallback",
    "FileEvent",
    "FileEventType",
    "FileNode",
    "FileStats",
    "FileSystemBackend",
    "FolderChooser",
    "NodeKind",
    "PersistenceGateway",
    "Settings",
    "SettingsStore",
    "SyncState",
    "Tab",
    "TemplateStore",
    "Unsubscribe",
    "Vault",
    "VaultStore",
    "VaultTabs",
    "WorkspaceSnapshot",
    "node_id_for_path",
]


def node_id_for_path(path: str) -> str:
    """Derive a stable node id from a filesystem path."""
    digest = hashlib.blake2b(path.encode("utf-8", errors="surrogateescape"), digest_size=8)
    return digest.hexdigest()


class NodeKind(StrEnum):
    """Kind of a file tree node."""

    FILE = "file"
    FOLDER = "folder"


class FileEventType(StrEnum):
    """Kind of change reported by the filesystem watcher."""

    CREATE = "create"
    DELETE = "delete"
    RENAME = "rename"
    MODIFY = "modify"


class SyncState(Enum):
    """Tab/selection synchronization state."""

    IDLE = "idle"
    SYNCING = "syncing"


class FileNode(BaseModel):
    """A file or folder in the vault tree.

    ``kind`` is also accepted under its wire name ``type``. When ``id`` is
    omitted it is derived from ``path``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    path: str
    kind: NodeKind = Field(alias="type")
    children: tuple[FileNode, ...] | None = None

    @model_validator(mode="before")
    @classmethod
    def _fill_derived(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("id") and data.get("path"):
            data["id"] = node_id_for_path(data["path"])
        kind = data.get("kind", data.get("type"))
        if kind in (NodeKind.FILE, NodeKind.FILE.value):
            # Leaf nodes never carry children
            data.pop("children", None)
        elif data.get("children") is None:
            data["children"] = ()
        return data

    @classmethod
    def from_path(
        cls,
        path: str,
        kind: NodeKind,
        children: list[FileNode] | tuple[FileNode, ...] | None = None,
    ) -> FileNode:
        """Create a node whose id and name are derived from ``path``."""
        normalized = path.replace("\\", "/").rstrip("/")
        name = normalized.rsplit("/", 1)[-1]
        return cls(
            id=node_id_for_path(path),
            name=name,
            path=path,
            kind=kind,
            children=children,
        )

    @property
    def is_file(self) -> bool:
        return self.kind is NodeKind.FILE

    @property
    def is_folder(self) -> bool:
        return self.kind is NodeKind.FOLDER

    @property
    def extension(self) -> str:
        """Extension without the dot, or an empty string."""
        stem, dot, ext = self.name.rpartition(".")
        return ext if dot and stem else ""

    @property
    def is_image(self) -> bool:
        return self.is_file and self.extension.lower() in IMAGE_EXTENSIONS


class FileEvent(BaseModel, frozen=True):
    """Filesystem change notification emitted by the watcher."""

    type: FileEventType
    path: str


class FileStats(BaseModel, frozen=True):
    """Statistics for the currently selected file."""

    word_count: int = 0
    char_count: int = 0

    @classmethod
    def from_text(cls, text: str) -> FileStats:
        return cls(word_count=len(text.split()), char_count=len(text))


class Vault(BaseModel, frozen=True):
    """A user-chosen folder treated as an independent note collection."""

    id: str
    path: str
    name: str
    is_default: bool = False


class VaultStore(BaseModel, frozen=True):
    """Persisted record of all vaults."""

    vaults: list[Vault] = Field(default_factory=list)


class Tab(BaseModel, frozen=True):
    """An open document view. ``id`` equals the source node id."""

    id: str
    name: str
    path: str
    opened_at: float

    @classmethod
    def from_node(cls, node: FileNode, opened_at: float) -> Tab:
        return cls(id=node.id, name=node.name, path=node.path, opened_at=opened_at)

    def to_node(self) -> FileNode:
        """Project the tab back onto a file node for selection."""
        return FileNode(id=self.id, name=self.name, path=self.path, kind=NodeKind.FILE)


class VaultTabs(BaseModel, frozen=True):
    """Persisted tab state for one vault."""

    vault_id: str
    tabs: list[Tab] = Field(default_factory=list)
    active_tab_id: str | None = None


class Settings(BaseModel, frozen=True):
    """Application settings."""

    hide_editor_toolbar: bool = False
    max_tabs: int = Field(default=MAX_TABS, ge=1)
    auto_check_updates: bool = True
    dev_mode: bool = False


class SettingsStore(BaseModel, frozen=True):
    """Persisted settings record."""

    settings: Settings = Field(default_factory=Settings)


class TemplateStore(BaseModel, frozen=True):
    """Persisted note templates, keyed by folder path."""

    templates: dict[str, str] = Field(default_factory=dict)


class WorkspaceSnapshot(BaseModel, frozen=True):
    """Read-only view of the whole workspace state for the UI layer."""

    nodes: tuple[FileNode, ...] = ()
    selected_file: FileNode | None = None
    file_content: str | None = None
    stats: FileStats | None = None
    expanded_ids: frozenset[str] = frozenset()
    renaming_id: str | None = None
    rename_draft: str | None = None
    tabs: tuple[Tab, ...] = ()
    active_tab_id: str | None = None
    vaults: tuple[Vault, ...] = ()
    current_vault: Vault | None = None
    settings: Settings = Field(default_factory=Settings)
    is_loading: bool = False
    error: str | None = None


# --- External capabilities ---

ChangeCallback = Callable[[FileEvent], None]
Unsubscribe = Callable[[], None]


class FileSystemBackend(Protocol):
    """Filesystem commands and change notifications consumed by the core."""

    async def scan_directory(self, path: str) -> list[FileNode]: ...

    async def read_file(self, path: str) -> str: ...

    async def write_file(self, path: str, content: str) -> None: ...

    async def create_note(self, parent_path: str) -> FileNode: ...

    async def create_folder(self, parent_path: str) -> FileNode: ...

    async def delete_path(self, path: str) -> None: ...

    async def duplicate_file(self, path: str) -> FileNode: ...

    async def rename_path(self, old_path: str, new_path: str) -> FileNode: ...

    async def start_watching(self, path: str) -> None: ...

    async def stop_watching(self) -> None: ...

    def subscribe_change_events(self, callback: ChangeCallback) -> Unsubscribe: ...


class FolderChooser(Protocol):
    """User folder picker."""

    async def choose_folder(self) -> str | None: ...


class PersistenceGateway(Protocol):
    """Asynchronous key-value load/save of JSON-compatible records."""

    async def kv_load(self, store_name: str, key: str) -> dict[str, Any] | None: ...

    async def kv_save(self, store_name: str, key: str, record: dict[str, Any]) -> None: ...
