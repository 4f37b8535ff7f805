"""Per-folder note templates persisted under ``templates``/``data``."""

import logging

from quire.core.config import TEMPLATES_STORE
from quire.core.errors import InvalidPathError, IoFailure
from quire.core.types import PersistenceGateway, TemplateStore

logger = logging.getLogger(__name__)

TEMPLATES_KEY = "data"


class TemplateService:
    """Folder path to template text, saved whole on every change."""

    def __init__(self, store: PersistenceGateway):
        self._store = store
        self._templates: dict[str, str] = {}
        self.error: IoFailure | None = None

    @property
    def templates(self) -> dict[str, str]:
        return dict(self._templates)

    async def load(self) -> dict[str, str]:
        """Read every template; a failed read leaves none."""
        self.error = None
        try:
            record = await self._store.kv_load(TEMPLATES_STORE, TEMPLATES_KEY)
            stored = TemplateStore.model_validate(record or {})
        except Exception as exc:
            self.error = IoFailure.wrap("load templates", None, exc)
            logger.error("%s", self.error)
            self._templates = {}
            return {}

        self._templates = dict(stored.templates)
        logger.info("Loaded %d templates from store", len(self._templates))
        return self.templates

    def get_template(self, folder_path: str) -> str | None:
        return self._templates.get(folder_path)

    async def set_template(self, folder_path: str, content: str) -> None:
        """Store ``content`` as the template of ``folder_path``.

        Raises:
            InvalidPathError: blank folder path.
            IoFailure: the save failed; nothing changed.
        """
        if not folder_path or not folder_path.strip():
            raise InvalidPathError("Invalid folder path: path is empty")
        await self._commit({**self._templates, folder_path: content})

    async def remove_template(self, folder_path: str) -> None:
        """Forget the template of ``folder_path``; unknown folders are a no-op."""
        if folder_path not in self._templates:
            return
        templates = dict(self._templates)
        del templates[folder_path]
        await self._commit(templates)

    async def _commit(self, templates: dict[str, str]) -> None:
        record = TemplateStore(templates=templates).model_dump(mode="json")
        try:
            await self._store.kv_save(TEMPLATES_STORE, TEMPLATES_KEY, record)
        except Exception as exc:
            self.error = IoFailure.wrap("save templates", None, exc)
            logger.error("%s", self.error)
            raise self.error from exc

        self.error = None
        self._templates = templates
        logger.info("Saved %d templates to store", len(templates))
