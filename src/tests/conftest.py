"""Shared test fixtures and configuration."""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable
from typing import Any

import pytest
import pytest_asyncio

from quire.core.file_tree import FileTreeController
from quire.core.path_tree import is_within, parent_path
from quire.core.tabs import TabRegistry
from quire.core.types import FileEvent, FileNode, NodeKind


class FakeFileSystem:
    """In-memory FileSystemBackend.

    ``fail`` maps a method name to the exception it should raise, ``hooks``
    maps a method name to a callable run before the method does anything and
    ``scan_delays`` holds per-call delays consumed by ``scan_directory``.
    """

    def __init__(self, files: dict[str, str] | None = None, folders=()):
        self.files: dict[str, str] = dict(files or {})
        self.folders: set[str] = set(folders)
        self.calls: list[tuple] = []
        self.fail: dict[str, Exception] = {}
        self.hooks: dict[str, Callable[[], Any]] = {}
        self.scan_delays: list[float] = []
        self.subscribers: list[Callable[[FileEvent], None]] = []
        self.watching: str | None = None

    def _check(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.hooks:
            self.hooks[name]()
        if name in self.fail:
            raise self.fail[name]

    def call_count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def _exists(self, path: str) -> bool:
        return path in self.files or path in self.folders

    def _children(self, parent: str) -> list[FileNode]:
        nodes = [
            FileNode.from_path(folder, NodeKind.FOLDER, self._children(folder))
            for folder in self.folders
            if parent_path(folder) == parent
        ]
        nodes.extend(
            FileNode.from_path(path, NodeKind.FILE)
            for path in self.files
            if parent_path(path) == parent
        )
        return nodes

    def _unique(self, parent: str, stem: str, suffix: str) -> str:
        candidate = f"{parent}/{stem}{suffix}"
        counter = 1
        while self._exists(candidate):
            candidate = f"{parent}/{stem} {counter}{suffix}"
            counter += 1
        return candidate

    async def scan_directory(self, path: str) -> list[FileNode]:
        self._check("scan_directory", path)
        if self.scan_delays:
            await asyncio.sleep(self.scan_delays.pop(0))
        if path not in self.folders:
            raise FileNotFoundError(f"Directory does not exist: {path}")
        return self._children(path)

    async def read_file(self, path: str) -> str:
        self._check("read_file", path)
        if path not in self.files:
            raise FileNotFoundError(f"File does not exist: {path}")
        return self.files[path]

    async def write_file(self, path: str, content: str) -> None:
        self._check("write_file", path)
        self.files[path] = content

    async def create_note(self, parent_path: str) -> FileNode:
        self._check("create_note", parent_path)
        path = self._unique(parent_path, "Untitled", ".md")
        self.files[path] = ""
        return FileNode.from_path(path, NodeKind.FILE)

    async def create_folder(self, parent_path: str) -> FileNode:
        self._check("create_folder", parent_path)
        path = self._unique(parent_path, "Untitled Folder", "")
        self.folders.add(path)
        return FileNode.from_path(path, NodeKind.FOLDER, [])

    async def delete_path(self, path: str) -> None:
        self._check("delete_path", path)
        if not self._exists(path):
            raise FileNotFoundError(f"Path does not exist: {path}")
        self.files = {p: c for p, c in self.files.items() if p != path and not is_within(p, path)}
        self.folders = {f for f in self.folders if f != path and not is_within(f, path)}

    async def duplicate_file(self, path: str) -> FileNode:
        self._check("duplicate_file", path)
        stem, _, ext = path.rsplit("/", 1)[-1].rpartition(".")
        copy_path = self._unique(parent_path(path), f"{stem} copy", f".{ext}")
        self.files[copy_path] = self.files[path]
        return FileNode.from_path(copy_path, NodeKind.FILE)

    async def rename_path(self, old_path: str, new_path: str) -> FileNode:
        self._check("rename_path", old_path, new_path)
        if self._exists(new_path):
            raise FileExistsError(f"A file or folder already exists at {new_path}")

        def moved(p: str) -> str:
            return new_path + p[len(old_path):] if p == old_path or is_within(p, old_path) else p

        kind = NodeKind.FOLDER if old_path in self.folders else NodeKind.FILE
        self.files = {moved(p): c for p, c in self.files.items()}
        self.folders = {moved(f) for f in self.folders}
        if kind is NodeKind.FOLDER:
            return FileNode.from_path(new_path, kind, self._children(new_path))
        return FileNode.from_path(new_path, kind)

    async def start_watching(self, path: str) -> None:
        self._check("start_watching", path)
        self.watching = path

    async def stop_watching(self) -> None:
        self._check("stop_watching")
        self.watching = None

    def subscribe_change_events(self, callback):
        self.subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self.subscribers:
                self.subscribers.remove(callback)

        return unsubscribe

    def emit(self, event_type: str, path: str) -> None:
        """Deliver a change notification to every subscriber."""
        for callback in list(self.subscribers):
            callback(FileEvent(type=event_type, path=path))


class MemoryStore:
    """In-memory PersistenceGateway keeping deep copies of records."""

    def __init__(self):
        self.data: dict[tuple[str, str], dict] = {}
        self.saves: list[tuple[str, str]] = []
        self.fail_load: Exception | None = None
        self.fail_save: Exception | None = None

    async def kv_load(self, store_name: str, key: str) -> dict | None:
        if self.fail_load is not None:
            raise self.fail_load
        return copy.deepcopy(self.data.get((store_name, key)))

    async def kv_save(self, store_name: str, key: str, record: dict) -> None:
        if self.fail_save is not None:
            raise self.fail_save
        self.data[(store_name, key)] = copy.deepcopy(record)
        self.saves.append((store_name, key))


class StepClock:
    """Deterministic timestamps: 1.0, 2.0, 3.0, ..."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


VAULT = "/vault"


@pytest.fixture
def fs():
    """Fake vault with a folder, two notes and an image."""
    return FakeFileSystem(
        files={
            "/vault/notes/a.md": "alpha note",
            "/vault/notes/deep/c.md": "deep note",
            "/vault/b.md": "bravo words here",
            "/vault/pic.png": "",
        },
        folders={VAULT, "/vault/notes", "/vault/notes/deep"},
    )


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def controller(fs):
    return FileTreeController(fs)


@pytest_asyncio.fixture
async def loaded_controller(controller):
    await controller.load(VAULT)
    return controller


@pytest.fixture
def tab_registry(controller, store, clock):
    registry = TabRegistry(
        controller,
        store,
        max_tabs=5,
        save_delay=0.01,
        sync_release_delay=0.01,
        clock=clock,
    )
    yield registry
    registry.detach()


def file_node(path: str) -> FileNode:
    return FileNode.from_path(path, NodeKind.FILE)
