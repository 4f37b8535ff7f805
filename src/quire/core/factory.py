"""Factory for building a Workspace with all dependencies wired.

The CLI and any other front end should call build_workspace() so that every
process wires the same components from the same configuration.
"""

import time
from collections.abc import Callable
from pathlib import Path

from quire.core.config import DATABASE_PATH, WATCH_ENABLED
from quire.core.file_tree import FileTreeController
from quire.core.settings import SettingsService
from quire.core.tabs import TabRegistry
from quire.core.templates import TemplateService
from quire.core.types import FileSystemBackend, FolderChooser, PersistenceGateway
from quire.core.vaults import VaultRegistry
from quire.core.watch import WatchReconciler
from quire.core.workspace import Workspace


def build_workspace(
    db_path: Path | str | None = None,
    backend: FileSystemBackend | None = None,
    store: PersistenceGateway | None = None,
    chooser: FolderChooser | None = None,
    watch_debounce: float | None = None,
    tab_save_delay: float | None = None,
    sync_release_delay: float | None = None,
    clock: Callable[[], float] = time.time,
    id_factory: Callable[[], str] | None = None,
    watch_enabled: bool | None = None,
) -> Workspace:
    """
    Build a fully wired Workspace.

    Args:
        db_path: Path to SQLite database (defaults to config)
        backend: Filesystem backend (defaults to LocalFileSystem)
        store: Persistence gateway (defaults to SqliteKeyValueStore at db_path)
        chooser: Folder picker for adding vaults interactively
        watch_debounce: Override for the watcher debounce window
        tab_save_delay: Override for the tab save debounce
        sync_release_delay: Override for the selection sync release delay
        clock: Timestamp source for tabs
        id_factory: Source of new vault ids
        watch_enabled: Whether to follow external changes (defaults to config)

    Returns:
        Workspace ready for ``start()``
    """
    if backend is None:
        from quire.fs.local import LocalFileSystem

        backend = LocalFileSystem()
    if store is None:
        from quire.storage.kv_store import SqliteKeyValueStore

        store = SqliteKeyValueStore(Path(db_path) if db_path else DATABASE_PATH)

    file_tree = FileTreeController(backend)
    tabs = TabRegistry(
        file_tree,
        store,
        save_delay=tab_save_delay,
        sync_release_delay=sync_release_delay,
        clock=clock,
    )
    if id_factory is None:
        vaults = VaultRegistry(store, chooser)
    else:
        vaults = VaultRegistry(store, chooser, id_factory=id_factory)
    watcher = WatchReconciler(backend, file_tree.refresh, watch_debounce)

    return Workspace(
        file_tree=file_tree,
        tabs=tabs,
        vaults=vaults,
        settings=SettingsService(store),
        templates=TemplateService(store),
        watcher=watcher,
        watch_enabled=WATCH_ENABLED if watch_enabled is None else watch_enabled,
    )
