"""Vault registry - the list of known vaults and the default one."""

import logging
from collections.abc import Callable
from uuid import uuid4

from quire.core.config import VAULTS_STORE
from quire.core.errors import InvalidPathError, IoFailure, NotFoundError
from quire.core.types import FolderChooser, PersistenceGateway, Vault, VaultStore

logger = logging.getLogger(__name__)

VAULTS_KEY = "data"


def folder_name(path: str) -> str:
    """Last segment of ``path``, for either separator style."""
    normalized = path.replace("\\", "/").rstrip("/")
    return normalized.rsplit("/", 1)[-1]


def normalize_defaults(vaults: list[Vault]) -> list[Vault]:
    """Ensure exactly one vault is marked default when the list is non-empty.

    The first vault already marked default wins; with none marked, the first
    vault becomes the default.
    """
    if not vaults:
        return []
    default_id = next((v.id for v in vaults if v.is_default), vaults[0].id)
    return [
        v if v.is_default == (v.id == default_id)
        else v.model_copy(update={"is_default": v.id == default_id})
        for v in vaults
    ]


class VaultRegistry:
    """Known vaults, persisted as one record under ``vaults``/``data``."""

    def __init__(
        self,
        store: PersistenceGateway,
        chooser: FolderChooser | None = None,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        """
        Initialize the vault registry.

        Args:
            store: Persistence gateway for the vault list
            chooser: Folder picker used when ``add`` is called without a path
            id_factory: Source of new vault ids
        """
        self._store = store
        self._chooser = chooser
        self._id_factory = id_factory
        self._vaults: list[Vault] = []
        self.error: IoFailure | None = None

    @property
    def vaults(self) -> tuple[Vault, ...]:
        return tuple(self._vaults)

    @property
    def current_vault(self) -> Vault | None:
        return next((v for v in self._vaults if v.is_default), None)

    def get(self, vault_id: str) -> Vault | None:
        return next((v for v in self._vaults if v.id == vault_id), None)

    def _require(self, vault_id: str) -> Vault:
        vault = self.get(vault_id)
        if vault is None:
            raise NotFoundError(f"Vault with id {vault_id} not found")
        return vault

    async def load(self) -> tuple[Vault, ...]:
        """Read the stored list. A failed read leaves the list empty."""
        self.error = None
        try:
            record = await self._store.kv_load(VAULTS_STORE, VAULTS_KEY)
            stored = VaultStore.model_validate(record) if record else VaultStore()
        except Exception as exc:
            self.error = IoFailure.wrap("load vaults", None, exc)
            logger.error("%s", self.error)
            self._vaults = []
            return self.vaults

        self._vaults = normalize_defaults(stored.vaults)
        logger.info("Loaded %d vaults from store", len(self._vaults))
        return self.vaults

    async def _commit(self, vaults: list[Vault]) -> None:
        """Persist ``vaults`` and only then make them current."""
        vaults = normalize_defaults(vaults)
        record = VaultStore(vaults=vaults).model_dump(mode="json")
        try:
            await self._store.kv_save(VAULTS_STORE, VAULTS_KEY, record)
        except Exception as exc:
            self.error = IoFailure.wrap("save vaults", None, exc)
            logger.error("%s", self.error)
            raise self.error from exc
        self.error = None
        self._vaults = vaults

    async def add(self, path: str | None = None) -> Vault | None:
        """Register a folder as a vault.

        Without ``path`` the folder chooser is asked; a cancelled choice
        returns None and changes nothing. The first vault becomes default.
        """
        if path is None:
            if self._chooser is None:
                raise InvalidPathError("Invalid vault path: no folder chosen")
            try:
                path = await self._chooser.choose_folder()
            except Exception as exc:
                raise IoFailure.wrap("choose vault folder", None, exc) from exc
            if path is None:
                logger.info("Vault selection cancelled")
                return None

        if not path.strip():
            raise InvalidPathError("Invalid vault path: path is empty")

        vault = Vault(
            id=self._id_factory(),
            path=path,
            name=folder_name(path),
            is_default=not self._vaults,
        )
        await self._commit([*self._vaults, vault])
        logger.info("Created new vault: %s (%s)", vault.name, vault.id)
        return vault

    async def set_default(self, vault_id: str) -> Vault:
        vault = self._require(vault_id)
        await self._commit(
            [v.model_copy(update={"is_default": v.id == vault_id}) for v in self._vaults]
        )
        logger.info("Set vault %s as default", vault_id)
        return self.get(vault.id)

    async def remove(self, vault_id: str) -> None:
        """Forget a vault; its folder on disk is untouched."""
        self._require(vault_id)
        # normalize_defaults promotes the first remaining vault if needed
        await self._commit([v for v in self._vaults if v.id != vault_id])
        logger.info("Removed vault %s", vault_id)

    async def rename(self, vault_id: str, name: str) -> Vault:
        vault = self._require(vault_id)
        new_name = name.strip() or folder_name(vault.path)
        await self._commit(
            [
                v.model_copy(update={"name": new_name}) if v.id == vault_id else v
                for v in self._vaults
            ]
        )
        logger.info("Updated vault %s name to %s", vault_id, new_name)
        return self.get(vault_id)
