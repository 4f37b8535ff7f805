"""Workspace - the explicit context object tying the core components together.

The UI layer talks to one Workspace. It owns no state of its own besides
which vault is active: tree, tabs, vaults and settings live in their
components and are projected into a WorkspaceSnapshot on demand.
"""

import logging
from typing import Any

from quire.core.errors import WorkspaceError
from quire.core.file_tree import FileTreeController
from quire.core.settings import SettingsService
from quire.core.tabs import TabRegistry
from quire.core.templates import TemplateService
from quire.core.types import FileNode, Settings, Tab, Vault, WorkspaceSnapshot
from quire.core.vaults import VaultRegistry
from quire.core.watch import WatchReconciler

logger = logging.getLogger(__name__)


class Workspace:
    """Vault switching, tab/selection wiring and the read-only snapshot."""

    def __init__(
        self,
        file_tree: FileTreeController,
        tabs: TabRegistry,
        vaults: VaultRegistry,
        settings: SettingsService,
        templates: TemplateService,
        watcher: WatchReconciler,
        watch_enabled: bool = True,
    ):
        self.file_tree = file_tree
        self.tabs = tabs
        self.vaults = vaults
        self.settings = settings
        self.templates = templates
        self.watcher = watcher
        self.watch_enabled = watch_enabled
        self._active_vault: Vault | None = None

    @property
    def current_vault(self) -> Vault | None:
        return self.vaults.current_vault

    async def start(self) -> None:
        """Load settings, templates and vaults, then open the default vault."""
        settings = await self.settings.load()
        await self.tabs.set_max_tabs(settings.max_tabs)
        await self.templates.load()
        await self.vaults.load()
        await self._sync_active_vault()

    async def _sync_active_vault(self) -> None:
        """Re-activate when the default vault differs from the open one."""
        vault = self.vaults.current_vault
        active = self._active_vault
        if vault is not None and active is not None:
            if vault.id == active.id and vault.path == active.path:
                self._active_vault = vault
                return
        elif vault is None and active is None:
            return

        # The old subscription must be gone before the new load starts
        await self.watcher.stop()
        await self.tabs.switch_vault(vault.id if vault else None)
        self.file_tree.reset()
        self._active_vault = vault

        if vault is None:
            logger.info("No vault selected")
            return

        logger.info("Opening vault %s at %s", vault.name, vault.path)
        try:
            await self.file_tree.load(vault.path)
        except WorkspaceError:
            logger.warning("Could not load vault %s", vault.path)
        else:
            await self.tabs.sync_selection()
        if self.watch_enabled:
            await self.watcher.start(vault.path)

    # Vaults

    async def add_vault(self, path: str | None = None) -> Vault | None:
        vault = await self.vaults.add(path)
        await self._sync_active_vault()
        return vault

    async def set_default_vault(self, vault_id: str) -> Vault:
        vault = await self.vaults.set_default(vault_id)
        await self._sync_active_vault()
        return vault

    async def remove_vault(self, vault_id: str) -> None:
        await self.vaults.remove(vault_id)
        await self._sync_active_vault()

    async def rename_vault(self, vault_id: str, name: str) -> Vault:
        vault = await self.vaults.rename(vault_id, name)
        await self._sync_active_vault()
        return vault

    # Files and tabs

    async def open_file(self, node: FileNode) -> Tab | None:
        """Open ``node`` in a tab; activating the tab selects the file."""
        return await self.tabs.open(node)

    # Settings

    async def update_setting(self, key: str, value: Any) -> Settings:
        settings = await self.settings.update_setting(key, value)
        if key == "max_tabs":
            await self.tabs.set_max_tabs(settings.max_tabs)
        return settings

    # Templates

    async def set_template(self, folder_path: str, content: str) -> None:
        await self.templates.set_template(folder_path, content)

    async def remove_template(self, folder_path: str) -> None:
        await self.templates.remove_template(folder_path)

    # Snapshot and teardown

    def _first_error(self) -> str | None:
        for error in (
            self.file_tree.error,
            self.tabs.error,
            self.vaults.error,
            self.settings.error,
            self.templates.error,
            self.watcher.error,
        ):
            if error is not None:
                return str(error)
        return None

    def snapshot(self) -> WorkspaceSnapshot:
        tree = self.file_tree
        return WorkspaceSnapshot(
            nodes=tree.nodes,
            selected_file=tree.selected_file,
            file_content=tree.file_content,
            stats=tree.stats,
            expanded_ids=frozenset(tree.expanded_ids),
            renaming_id=tree.renaming_id,
            rename_draft=tree.rename_draft,
            tabs=self.tabs.tabs,
            active_tab_id=self.tabs.active_tab_id,
            vaults=self.vaults.vaults,
            current_vault=self.vaults.current_vault,
            settings=self.settings.settings,
            is_loading=tree.is_loading or self.tabs.is_loading,
            error=self._first_error(),
        )

    async def close(self) -> None:
        """Stop watching and persist pending tab state."""
        await self.watcher.stop()
        await self.tabs.flush()
        self.tabs.detach()
        logger.info("Workspace closed")
