"""Tab registry - bounded, LRU-ordered set of open document tabs.

Tabs are a view over file tree nodes: ``Tab.id`` is the node id and the
registry never owns file content. The registry stays synchronized with the
FileTreeController selection in both directions; the feedback loop between
"tab activated -> file selected -> tab activated" is broken by the
SelectionSync state machine.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable

from quire.core.config import (
    MAX_TABS,
    SYNC_RELEASE_SECONDS,
    TAB_SAVE_DEBOUNCE_SECONDS,
    TABS_STORE,
)
from quire.core.errors import IoFailure, NotFoundError
from quire.core.file_tree import FileTreeController, TreeEvent
from quire.core.path_tree import PathTree, is_within
from quire.core.types import (
    FileNode,
    PersistenceGateway,
    SyncState,
    Tab,
    VaultTabs,
)

logger = logging.getLogger(__name__)


def enforce_max_tabs(
    tabs: list[Tab], max_tabs: int, exclude_id: str | None = None
) -> list[Tab]:
    """Evict the least recently used tabs until ``max_tabs`` remain.

    The tab whose id is ``exclude_id`` is never evicted. Order of the
    surviving tabs is preserved.
    """
    if len(tabs) <= max_tabs:
        return list(tabs)

    to_remove = len(tabs) - max_tabs
    evicted: set[str] = set()
    for tab in sorted(tabs, key=lambda t: t.opened_at):
        if len(evicted) >= to_remove:
            break
        if tab.id != exclude_id:
            evicted.add(tab.id)
    return [tab for tab in tabs if tab.id not in evicted]


def most_recent(tabs: Iterable[Tab]) -> Tab | None:
    """Tab with the greatest ``opened_at``, or None."""
    return max(tabs, key=lambda t: t.opened_at, default=None)


class SelectionSync:
    """Guard state for pushing a tab activation into the file tree.

    IDLE: selection changes coming from the file tree may activate tabs.
    SYNCING: the registry itself is driving the selection; selection changes
    are echoes and are ignored. The state returns to IDLE ``release_delay``
    seconds after the push settles, or immediately on ``release()``.
    """

    def __init__(self, release_delay: float = SYNC_RELEASE_SECONDS):
        self.release_delay = release_delay
        self.state = SyncState.IDLE
        self._release_handle: asyncio.TimerHandle | None = None

    @property
    def is_syncing(self) -> bool:
        return self.state is SyncState.SYNCING

    def begin(self) -> None:
        self._cancel_release()
        self.state = SyncState.SYNCING

    def settle(self) -> None:
        """Schedule the return to IDLE."""
        self._cancel_release()
        if self.release_delay <= 0:
            self.release()
            return
        loop = asyncio.get_running_loop()
        self._release_handle = loop.call_later(self.release_delay, self.release)

    def release(self) -> None:
        self._cancel_release()
        self.state = SyncState.IDLE

    def _cancel_release(self) -> None:
        if self._release_handle is not None:
            self._release_handle.cancel()
            self._release_handle = None


class TabRegistry:
    """Open tabs of the active vault, persisted per vault."""

    def __init__(
        self,
        file_tree: FileTreeController,
        store: PersistenceGateway,
        max_tabs: int | None = None,
        save_delay: float | None = None,
        sync_release_delay: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the tab registry.

        Args:
            file_tree: Controller whose selection the tabs follow
            store: Persistence gateway for per-vault tab state
            max_tabs: Upper bound on open tabs
            save_delay: Debounce before a change is persisted
            sync_release_delay: How long the SYNCING guard outlives a push
            clock: Timestamp source for ``Tab.opened_at``
        """
        self._file_tree = file_tree
        self._store = store
        self.max_tabs = MAX_TABS if max_tabs is None else max_tabs
        self.save_delay = TAB_SAVE_DEBOUNCE_SECONDS if save_delay is None else save_delay
        self.sync = SelectionSync(
            SYNC_RELEASE_SECONDS if sync_release_delay is None else sync_release_delay
        )
        self._clock = clock

        self._tabs: list[Tab] = []
        self.active_tab_id: str | None = None
        self.vault_id: str | None = None
        self.is_loading = False
        self.error: IoFailure | None = None

        self._dirty = False
        self._save_timer: asyncio.TimerHandle | None = None
        self._save_task: asyncio.Task | None = None

        self._unsubscribers = [
            file_tree.add_listener(TreeEvent.SELECTION_CHANGED, self._on_selection_changed),
            file_tree.add_listener(TreeEvent.TREE_LOADED, self._on_tree_loaded),
            file_tree.add_listener(TreeEvent.PATH_REMOVED, self._on_path_removed),
            file_tree.add_listener(TreeEvent.PATH_RENAMED, self._on_path_renamed),
        ]

    def detach(self) -> None:
        """Stop following the file tree."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self.sync.release()

    # State accessors

    @property
    def tabs(self) -> tuple[Tab, ...]:
        return tuple(self._tabs)

    @property
    def active_tab(self) -> Tab | None:
        return self.get(self.active_tab_id) if self.active_tab_id else None

    def get(self, tab_id: str) -> Tab | None:
        return next((tab for tab in self._tabs if tab.id == tab_id), None)

    def __len__(self) -> int:
        return len(self._tabs)

    def __contains__(self, tab_id: object) -> bool:
        return any(tab.id == tab_id for tab in self._tabs)

    # Operations

    async def open(self, file: FileNode) -> Tab | None:
        """Open ``file`` as a tab (or touch the existing one) and activate it."""
        if not file.is_file:
            return None

        if file.id in self:
            self._touch(file.id)
        else:
            self._tabs.append(Tab.from_node(file, self._clock()))
            before = {tab.id for tab in self._tabs}
            self._tabs = enforce_max_tabs(self._tabs, self.max_tabs, exclude_id=file.id)
            evicted = before - {tab.id for tab in self._tabs}
            if evicted:
                logger.debug("Evicted tabs %s", sorted(evicted))

        await self._activate(file.id)
        return self.get(file.id)

    async def activate(self, tab_id: str) -> bool:
        """Touch and activate a tab, selecting its file. Unknown ids are ignored."""
        if tab_id not in self:
            return False
        self._touch(tab_id)
        await self._activate(tab_id)
        return True

    async def close(self, tab_id: str) -> None:
        """Close a tab; the most recently opened remaining tab takes over."""
        if tab_id not in self:
            raise NotFoundError(f"Tab with id {tab_id} not found")
        await self._drop({tab_id})

    async def close_all(self) -> None:
        self._tabs = []
        self.active_tab_id = None
        self._changed()

    async def set_max_tabs(self, max_tabs: int) -> None:
        """Apply a new bound immediately; the active tab is never evicted."""
        if max_tabs < 1:
            raise ValueError("max_tabs must be at least 1")
        self.max_tabs = max_tabs
        trimmed = enforce_max_tabs(self._tabs, max_tabs, exclude_id=self.active_tab_id)
        if len(trimmed) != len(self._tabs):
            self._tabs = trimmed
            self._changed()

    async def sync_selection(self) -> None:
        """Select the active tab's file in the file tree, if any."""
        tab = self.active_tab
        if tab is not None:
            await self._push_selection(tab)

    # Internals

    def _touch(self, tab_id: str) -> None:
        now = self._clock()
        self._tabs = [
            tab.model_copy(update={"opened_at": now}) if tab.id == tab_id else tab
            for tab in self._tabs
        ]

    async def _activate(self, tab_id: str) -> None:
        self.active_tab_id = tab_id
        self._changed()
        tab = self.get(tab_id)
        if tab is not None:
            await self._push_selection(tab)

    async def _push_selection(self, tab: Tab) -> None:
        selected = self._file_tree.selected_file
        if selected is not None and selected.id == tab.id:
            return
        node = self._file_tree.tree.get(tab.id) or tab.to_node()
        self.sync.begin()
        try:
            await self._file_tree.select_file(node)
        finally:
            self.sync.settle()

    async def _drop(self, tab_ids: set[str], reselect: bool = True) -> None:
        """Remove tabs; a dropped active tab hands over to the most recent one.

        With ``reselect`` off the successor becomes active without being
        pushed into the file tree selection.
        """
        if not tab_ids:
            return
        self._tabs = [tab for tab in self._tabs if tab.id not in tab_ids]
        if self.active_tab_id in tab_ids:
            successor = most_recent(self._tabs)
            self.active_tab_id = successor.id if successor else None
            self._changed()
            if successor is not None and reselect:
                await self._push_selection(successor)
        else:
            self._changed()

    # File tree listeners

    def _on_selection_changed(self, node: FileNode | None) -> None:
        if self.sync.is_syncing or node is None:
            return
        if node.id in self and node.id != self.active_tab_id:
            self._touch(node.id)
            self.active_tab_id = node.id
            self._changed()

    async def _on_tree_loaded(self, tree: PathTree) -> None:
        missing = {tab.id for tab in self._tabs if tree.find_by_path(tab.path) is None}
        if missing:
            logger.info("Closing %d tabs whose files are gone", len(missing))
        await self._drop(missing)

    async def _on_path_removed(self, path: str) -> None:
        await self._drop(
            {tab.id for tab in self._tabs if tab.path == path or is_within(tab.path, path)}
        )

    async def _on_path_renamed(self, change: tuple[str, FileNode]) -> None:
        old_path, node = change
        retargeted = []
        for tab in self._tabs:
            if tab.path == old_path and node.is_file:
                if tab.id == self.active_tab_id:
                    self.active_tab_id = node.id
                tab = Tab(id=node.id, name=node.name, path=node.path, opened_at=tab.opened_at)
            retargeted.append(tab)
        self._tabs = retargeted
        # A selection under the renamed folder was cleared and stays cleared
        await self._drop(
            {tab.id for tab in self._tabs if is_within(tab.path, old_path)},
            reselect=False,
        )
        self._changed()

    # Persistence

    def _changed(self) -> None:
        if self.is_loading or self.vault_id is None:
            return
        self._dirty = True
        if self._save_timer is not None:
            self._save_timer.cancel()
        loop = asyncio.get_running_loop()
        self._save_timer = loop.call_later(self.save_delay, self._start_save, self.vault_id)

    def _start_save(self, vault_id: str) -> None:
        self._save_timer = None
        self._save_task = asyncio.get_running_loop().create_task(self._save(vault_id))

    async def _save(self, vault_id: str) -> None:
        if vault_id != self.vault_id:
            return
        record = VaultTabs(
            vault_id=vault_id, tabs=list(self._tabs), active_tab_id=self.active_tab_id
        )
        self._dirty = False
        try:
            await self._store.kv_save(TABS_STORE, vault_id, record.model_dump(mode="json"))
            logger.debug("Saved %d tabs for vault %s", len(self._tabs), vault_id)
        except Exception as exc:
            self._dirty = True
            self.error = IoFailure.wrap("save tabs for vault", vault_id, exc)
            logger.error("%s", self.error)

    async def flush(self) -> None:
        """Persist pending changes now instead of after the debounce."""
        if self._save_timer is not None:
            self._save_timer.cancel()
            self._save_timer = None
        if self._save_task is not None and not self._save_task.done():
            await self._save_task
        self._save_task = None
        if self._dirty and self.vault_id is not None:
            await self._save(self.vault_id)

    async def switch_vault(self, vault_id: str | None) -> None:
        """Flush the current vault's tabs, then load ``vault_id``'s."""
        if vault_id == self.vault_id:
            return
        await self.flush()
        self.sync.release()
        self.vault_id = vault_id
        self._tabs = []
        self.active_tab_id = None
        self._dirty = False
        self.error = None
        if vault_id is None:
            return

        self.is_loading = True
        try:
            record = await self._store.kv_load(TABS_STORE, vault_id)
            state = (
                VaultTabs.model_validate(record)
                if record
                else VaultTabs(vault_id=vault_id)
            )
        except Exception as exc:
            self.error = IoFailure.wrap("load tabs for vault", vault_id, exc)
            logger.error("%s", self.error)
            state = VaultTabs(vault_id=vault_id)
        finally:
            self.is_loading = False

        unique: dict[str, Tab] = {}
        for tab in state.tabs:
            unique.setdefault(tab.id, tab)
        self._tabs = enforce_max_tabs(
            list(unique.values()), self.max_tabs, exclude_id=state.active_tab_id
        )
        self.active_tab_id = state.active_tab_id if state.active_tab_id in self else None
        logger.info("Loaded %d tabs for vault %s", len(self._tabs), vault_id)
