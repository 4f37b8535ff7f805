"""File tree controller - single source of truth for the active vault's tree.

Owns the PathTree, the selection, expansion and inline-rename state, and
orchestrates every mutating filesystem command with optimistic local effects
followed by an authoritative rescan.
"""

import inspect
import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any

from quire.core.errors import InvalidPathError, IoFailure, WorkspaceError
from quire.core.path_tree import PathTree, is_within, parent_path
from quire.core.types import FileNode, FileStats, FileSystemBackend, NodeKind

logger = logging.getLogger(__name__)


class TreeEvent(Enum):
    """Notifications emitted by the controller."""

    SELECTION_CHANGED = "selection_changed"
    TREE_LOADED = "tree_loaded"
    PATH_REMOVED = "path_removed"
    PATH_RENAMED = "path_renamed"


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class FileTreeController:
    """Tree, selection and filesystem orchestration for one vault at a time."""

    def __init__(self, backend: FileSystemBackend):
        """
        Initialize the controller.

        Args:
            backend: Filesystem capability used for every command
        """
        self._backend = backend
        self._tree = PathTree()
        self._vault_path: str | None = None
        self._load_seq = 0
        self._in_flight = 0
        self._listeners: dict[TreeEvent, list[Callable[..., Any]]] = {
            event: [] for event in TreeEvent
        }

        self.selected_file: FileNode | None = None
        self.file_content: str | None = None
        self.expanded_ids: set[str] = set()
        self.renaming_id: str | None = None
        self.rename_draft: str | None = None
        self.error: WorkspaceError | None = None

    # State accessors

    @property
    def tree(self) -> PathTree:
        return self._tree

    @property
    def nodes(self) -> tuple[FileNode, ...]:
        return self._tree.roots

    @property
    def vault_path(self) -> str | None:
        return self._vault_path

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    @property
    def stats(self) -> FileStats | None:
        """Word and character counts of the selected text file."""
        if self.selected_file is None or self.file_content is None:
            return None
        return FileStats.from_text(self.file_content)

    # Listeners

    def add_listener(
        self, event: TreeEvent, callback: Callable[..., Any]
    ) -> Callable[[], None]:
        """Register a callback for ``event``; returns an unsubscribe function.

        SELECTION_CHANGED receives the new selection (or None), TREE_LOADED the
        new PathTree, PATH_REMOVED the removed path and PATH_RENAMED an
        ``(old_path, node)`` pair. Callbacks may be coroutines.
        """
        self._listeners[event].append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners[event]:
                self._listeners[event].remove(callback)

        return unsubscribe

    async def _emit(self, event: TreeEvent, payload: Any) -> None:
        for callback in list(self._listeners[event]):
            try:
                await _maybe_await(callback(payload))
            except Exception:
                logger.error("Listener for %s failed", event.value, exc_info=True)

    @contextmanager
    def _busy(self) -> Iterator[None]:
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1

    def _fail(self, exc: WorkspaceError) -> WorkspaceError:
        self.error = exc
        logger.warning("%s", exc)
        return exc

    def _validate(self, path: str | None, what: str = "path") -> str:
        if not path or not path.strip():
            raise self._fail(InvalidPathError(f"Invalid {what}: path is empty"))
        return path

    # Loading

    async def load(self, vault_path: str) -> PathTree:
        """Full rescan of ``vault_path``, replacing the tree wholesale.

        Raises:
            InvalidPathError: blank path; the backend is not called.
            IoFailure: the scan failed; the tree is cleared to empty.
        """
        self._load_seq += 1
        seq = self._load_seq
        try:
            self._validate(vault_path, "vault path")
        except InvalidPathError:
            self._vault_path = None
            self._tree = PathTree()
            raise

        self._vault_path = vault_path
        with self._busy():
            self.error = None
            try:
                roots = await self._backend.scan_directory(vault_path)
                tree = PathTree(roots)
            except Exception as exc:
                if seq != self._load_seq:
                    logger.debug("Discarding failed stale scan of %s", vault_path)
                    return self._tree
                self._tree = PathTree()
                raise self._fail(IoFailure.wrap("scan directory", vault_path, exc)) from exc

        if seq != self._load_seq:
            logger.debug("Discarding stale scan of %s", vault_path)
            return self._tree

        self._tree = tree
        logger.info("Loaded %d nodes from %s", len(tree), vault_path)
        await self._emit(TreeEvent.TREE_LOADED, tree)
        return tree

    async def refresh(self) -> None:
        """Rescan the current vault. Failures are recorded, not raised."""
        if not self._vault_path:
            return
        try:
            await self.load(self._vault_path)
        except WorkspaceError:
            logger.debug("Rescan of %s failed", self._vault_path)

    def reset(self) -> None:
        """Forget the current vault entirely."""
        self._load_seq += 1
        self._vault_path = None
        self._tree = PathTree()
        self.selected_file = None
        self.file_content = None
        self.expanded_ids.clear()
        self.renaming_id = None
        self.rename_draft = None
        self.error = None

    # Selection

    async def select_file(self, node: FileNode) -> bool:
        """Select a file and load its content.

        Returns:
            True if the selection changed. A failed read keeps the previous
            selection and records the error.
        """
        if node.kind is not NodeKind.FILE:
            return False
        if self.selected_file is not None and self.selected_file.id == node.id:
            return False
        try:
            self._validate(node.path, "file path")
        except InvalidPathError:
            return False

        if node.is_image:
            self.selected_file = node
            self.file_content = None
            await self._emit(TreeEvent.SELECTION_CHANGED, node)
            return True

        with self._busy():
            self.error = None
            try:
                content = await self._backend.read_file(node.path)
            except Exception as exc:
                self._fail(IoFailure.wrap("read file", node.path, exc))
                return False

        self.selected_file = node
        self.file_content = content
        await self._emit(TreeEvent.SELECTION_CHANGED, node)
        return True

    async def _clear_selection(self) -> None:
        self.selected_file = None
        self.file_content = None
        await self._emit(TreeEvent.SELECTION_CHANGED, None)

    def _resolve(self, node: FileNode) -> FileNode:
        """Prefer the freshly scanned instance of ``node``."""
        return self._tree.get(node.id) or node

    # Mutations

    async def _create(self, parent_path: str, kind: NodeKind) -> FileNode:
        label = "note" if kind is NodeKind.FILE else "folder"
        self._validate(parent_path, "parent path")
        with self._busy():
            self.error = None
            try:
                if kind is NodeKind.FILE:
                    node = await self._backend.create_note(parent_path)
                else:
                    node = await self._backend.create_folder(parent_path)
            except Exception as exc:
                raise self._fail(
                    IoFailure.wrap(f"create new {label} in", parent_path, exc)
                ) from exc

            # New items start in rename-to-confirm-name mode
            self.renaming_id = node.id
            self.rename_draft = None
            self.reveal(node.path)
            logger.info("Created %s %s", label, node.path)
            await self.refresh()
        return node

    async def create_note(self, parent_path: str) -> FileNode:
        """Create a note under ``parent_path``, rescan, then select it."""
        node = await self._create(parent_path, NodeKind.FILE)
        await self.select_file(self._resolve(node))
        return node

    async def create_folder(self, parent_path: str) -> FileNode:
        """Create a folder under ``parent_path`` and rescan."""
        return await self._create(parent_path, NodeKind.FOLDER)

    async def delete_node(self, path: str) -> None:
        """Delete a file or folder.

        The selection is cleared before the command is issued when it is the
        deleted path or nested under it, whatever the command's outcome.
        """
        self._validate(path)
        selected = self.selected_file
        if selected is not None and (selected.path == path or is_within(selected.path, path)):
            self.selected_file = None
            self.file_content = None
        renaming = self._tree.get(self.renaming_id) if self.renaming_id else None
        if renaming is not None and (renaming.path == path or is_within(renaming.path, path)):
            self.renaming_id = None
            self.rename_draft = None

        with self._busy():
            self.error = None
            try:
                if selected is not None and self.selected_file is None:
                    await self._emit(TreeEvent.SELECTION_CHANGED, None)
                try:
                    await self._backend.delete_path(path)
                except Exception as exc:
                    raise self._fail(IoFailure.wrap("delete", path, exc)) from exc
                logger.info("Deleted %s", path)
                await self._emit(TreeEvent.PATH_REMOVED, path)
            finally:
                await self.refresh()

    async def duplicate_file(self, path: str) -> FileNode:
        """Duplicate a file, rescan, then select the copy."""
        self._validate(path)
        with self._busy():
            self.error = None
            try:
                node = await self._backend.duplicate_file(path)
            except Exception as exc:
                raise self._fail(IoFailure.wrap("duplicate", path, exc)) from exc
            logger.info("Duplicated %s to %s", path, node.path)
            await self.refresh()
        await self.select_file(self._resolve(node))
        return node

    async def rename_path(self, old_path: str, new_path: str) -> FileNode:
        """Rename a file or folder and reconcile the selection.

        An exactly matching selection follows the rename; a selection nested
        under a renamed folder is cleared.
        """
        self._validate(old_path)
        self._validate(new_path)
        with self._busy():
            self.error = None
            try:
                try:
                    node = await self._backend.rename_path(old_path, new_path)
                except Exception as exc:
                    raise self._fail(IoFailure.wrap("rename", old_path, exc)) from exc

                logger.info("Renamed %s to %s", old_path, new_path)
                selected = self.selected_file
                if selected is not None and selected.path == old_path:
                    self.selected_file = node
                    await self._emit(TreeEvent.SELECTION_CHANGED, node)
                elif selected is not None and is_within(selected.path, old_path):
                    await self._clear_selection()
                # Listeners see the selection already reconciled
                await self._emit(TreeEvent.PATH_RENAMED, (old_path, node))
            finally:
                await self.refresh()
        return node

    async def save_file(self, path: str, content: str) -> None:
        """Write ``content`` to ``path``; the selected file's content follows."""
        self._validate(path)
        try:
            await self._backend.write_file(path, content)
        except Exception as exc:
            raise self._fail(IoFailure.wrap("save file", path, exc)) from exc
        if self.selected_file is not None and self.selected_file.path == path:
            self.file_content = content

    # Inline rename

    def begin_rename(self, node_id: str) -> None:
        self.renaming_id = node_id
        self.rename_draft = None

    def cancel_rename(self) -> None:
        self.renaming_id = None
        self.rename_draft = None

    async def rename_node(self, node: FileNode, new_name: str) -> FileNode | None:
        """Submit an inline rename of ``node`` to ``new_name``.

        A blank or unchanged name just leaves rename mode. On failure the node
        goes back into rename mode with the attempted name kept as the draft.
        """
        name = new_name.strip()
        if not name or name == node.name:
            self.cancel_rename()
            return None

        parent = parent_path(node.path)
        separator = "\\" if "\\" in node.path and "/" not in node.path else "/"
        if not parent:
            new_path = name
        elif parent.endswith(("/", "\\")):
            new_path = parent + name
        else:
            new_path = f"{parent}{separator}{name}"

        self.cancel_rename()
        try:
            return await self.rename_path(node.path, new_path)
        except WorkspaceError:
            self.renaming_id = node.id
            self.rename_draft = new_name
            raise

    # Expansion

    def toggle_expand(self, node_id: str) -> None:
        if node_id in self.expanded_ids:
            self.expanded_ids.discard(node_id)
        else:
            self.expanded_ids.add(node_id)

    def set_expanded_ids(self, ids: Iterable[str]) -> None:
        self.expanded_ids = set(ids)

    def reveal(self, path: str) -> None:
        """Expand every folder that contains ``path``."""
        self.expanded_ids.update(node.id for node in self._tree.ancestors_of(path))
