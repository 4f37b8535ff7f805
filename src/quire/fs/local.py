"""Local-disk implementation of the filesystem backend.

Blocking calls run in ``asyncio.to_thread``. Watching is poll based: a stat
snapshot of the vault is taken every poll interval and diffed against the
previous one; differences are delivered to subscribers as FileEvents on the
event loop.
"""

import asyncio
import logging
import os
import shutil
from pathlib import Path

from quire.core.config import (
    IMAGE_EXTENSIONS,
    SUPPORTED_NOTE_EXTENSIONS,
    WATCH_POLL_SECONDS,
)
from quire.core.types import (
    ChangeCallback,
    FileEvent,
    FileEventType,
    FileNode,
    NodeKind,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = frozenset(SUPPORTED_NOTE_EXTENSIONS + IMAGE_EXTENSIONS)

# path -> (is_dir, mtime_ns, size)
StatSnapshot = dict[str, tuple[bool, int, int]]


def is_supported_file(name: str) -> bool:
    stem, dot, ext = name.rpartition(".")
    return bool(dot and stem) and ext in SUPPORTED_EXTENSIONS


def _require_dir(path: Path) -> None:
    if not path.exists():
        raise FileNotFoundError(f"Directory does not exist: {path}")
    if not path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {path}")


def scan_tree(root: Path) -> list[FileNode]:
    """Recursively build nodes for non-hidden folders and supported files.

    A sub-folder that cannot be read becomes an empty folder.
    """
    folders: list[FileNode] = []
    files: list[FileNode] = []
    with os.scandir(root) as entries:
        for entry in entries:
            if entry.name.startswith("."):
                continue
            try:
                is_dir = entry.is_dir()
                is_file = entry.is_file()
            except OSError:
                logger.warning("Failed to stat %s", entry.path)
                continue

            if is_dir:
                try:
                    children = scan_tree(Path(entry.path))
                except OSError as exc:
                    logger.warning("Failed to scan subdirectory %s: %s", entry.path, exc)
                    children = []
                folders.append(FileNode.from_path(entry.path, NodeKind.FOLDER, children))
            elif is_file and is_supported_file(entry.name):
                files.append(FileNode.from_path(entry.path, NodeKind.FILE))

    folders.sort(key=lambda n: n.name.lower())
    files.sort(key=lambda n: n.name.lower())
    return folders + files


def stat_snapshot(root: Path) -> StatSnapshot:
    """Stat signature of every non-hidden entry under ``root``."""
    snapshot: StatSnapshot = {}
    stack = [root]
    while stack:
        directory = stack.pop()
        try:
            with os.scandir(directory) as entries:
                for entry in entries:
                    if entry.name.startswith("."):
                        continue
                    try:
                        st = entry.stat(follow_symlinks=False)
                        is_dir = entry.is_dir(follow_symlinks=False)
                    except OSError:
                        continue
                    snapshot[entry.path] = (is_dir, st.st_mtime_ns, st.st_size)
                    if is_dir:
                        stack.append(Path(entry.path))
        except OSError:
            continue
    return snapshot


def diff_snapshots(before: StatSnapshot, after: StatSnapshot) -> list[FileEvent]:
    events = [
        FileEvent(type=FileEventType.CREATE, path=path)
        for path in sorted(after.keys() - before.keys())
    ]
    events.extend(
        FileEvent(type=FileEventType.DELETE, path=path)
        for path in sorted(before.keys() - after.keys())
    )
    events.extend(
        FileEvent(type=FileEventType.MODIFY, path=path)
        for path in sorted(before.keys() & after.keys())
        # Directory mtimes change with their children, already reported above
        if not after[path][0] and before[path] != after[path]
    )
    return events


def _unique_path(directory: Path, stem: str, suffix: str, separator: str = " ") -> Path:
    """``stem+suffix``, else ``stem N+suffix`` for the first free N from 1."""
    candidate = directory / f"{stem}{suffix}"
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem}{separator}{counter}{suffix}"
        counter += 1
    return candidate


class LocalFileSystem:
    """FileSystemBackend backed by the local disk."""

    def __init__(self, poll_interval: float | None = None):
        self.poll_interval = WATCH_POLL_SECONDS if poll_interval is None else poll_interval
        self._subscribers: list[ChangeCallback] = []
        self._watch_task: asyncio.Task | None = None
        self.watching_path: str | None = None

    # Commands

    async def scan_directory(self, path: str) -> list[FileNode]:
        def _scan() -> list[FileNode]:
            root = Path(path)
            _require_dir(root)
            return scan_tree(root)

        nodes = await asyncio.to_thread(_scan)
        logger.debug("Scanned %s: %d top-level entries", path, len(nodes))
        return nodes

    async def read_file(self, path: str) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")

    async def write_file(self, path: str, content: str) -> None:
        def _write() -> None:
            target = Path(path)
            if not target.parent.exists():
                raise FileNotFoundError(f"Parent directory does not exist: {target.parent}")
            target.write_text(content, encoding="utf-8")

        await asyncio.to_thread(_write)
        logger.info("Wrote %s", path)

    async def create_note(self, parent_path: str) -> FileNode:
        def _create() -> Path:
            directory = Path(parent_path)
            _require_dir(directory)
            target = _unique_path(directory, "Untitled", ".md")
            target.write_text("", encoding="utf-8")
            return target

        target = await asyncio.to_thread(_create)
        logger.info("Created note %s", target)
        return FileNode.from_path(str(target), NodeKind.FILE)

    async def create_folder(self, parent_path: str) -> FileNode:
        def _create() -> Path:
            directory = Path(parent_path)
            _require_dir(directory)
            target = _unique_path(directory, "Untitled Folder", "")
            target.mkdir()
            return target

        target = await asyncio.to_thread(_create)
        logger.info("Created folder %s", target)
        return FileNode.from_path(str(target), NodeKind.FOLDER, [])

    async def delete_path(self, path: str) -> None:
        def _delete() -> None:
            target = Path(path)
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif target.exists() or target.is_symlink():
                target.unlink()
            else:
                raise FileNotFoundError(f"Path does not exist: {path}")

        await asyncio.to_thread(_delete)
        logger.info("Deleted %s", path)

    async def duplicate_file(self, path: str) -> FileNode:
        def _duplicate() -> Path:
            source = Path(path)
            if not source.is_file():
                raise FileNotFoundError(f"File does not exist: {path}")
            target = _unique_path(source.parent, f"{source.stem} copy", source.suffix)
            shutil.copy2(source, target)
            return target

        target = await asyncio.to_thread(_duplicate)
        logger.info("Duplicated %s to %s", path, target)
        return FileNode.from_path(str(target), NodeKind.FILE)

    async def rename_path(self, old_path: str, new_path: str) -> FileNode:
        def _rename() -> NodeKind:
            source, target = Path(old_path), Path(new_path)
            if not source.exists():
                raise FileNotFoundError(f"Path does not exist: {old_path}")
            if target.exists():
                raise FileExistsError(f"A file or folder already exists at {new_path}")
            kind = NodeKind.FOLDER if source.is_dir() else NodeKind.FILE
            source.rename(target)
            return kind

        kind = await asyncio.to_thread(_rename)
        logger.info("Renamed %s to %s", old_path, new_path)
        if kind is NodeKind.FOLDER:
            children = await asyncio.to_thread(scan_tree, Path(new_path))
            return FileNode.from_path(new_path, kind, children)
        return FileNode.from_path(new_path, kind)

    # Watching

    def subscribe_change_events(self, callback: ChangeCallback) -> Unsubscribe:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def start_watching(self, path: str) -> None:
        root = Path(path)
        await asyncio.to_thread(_require_dir, root)
        await self.stop_watching()
        baseline = await asyncio.to_thread(stat_snapshot, root)
        self.watching_path = path
        self._watch_task = asyncio.get_running_loop().create_task(
            self._poll(root, baseline)
        )
        logger.info("Started watching %s", path)

    async def stop_watching(self) -> None:
        task, self._watch_task = self._watch_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Stopped watching %s", self.watching_path)
        self.watching_path = None

    async def _poll(self, root: Path, snapshot: StatSnapshot) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                current = await asyncio.to_thread(stat_snapshot, root)
            except OSError:
                logger.warning("Failed to poll %s", root, exc_info=True)
                continue
            events = diff_snapshots(snapshot, current)
            snapshot = current
            for event in events:
                self._deliver(event)

    def _deliver(self, event: FileEvent) -> None:
        logger.debug("File event: %s - %s", event.type, event.path)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.error("File event subscriber failed", exc_info=True)
