"""Application settings persisted under ``settings``/``data``."""

import logging
from typing import Any

from quire.core.config import SETTINGS_STORE
from quire.core.errors import IoFailure
from quire.core.types import PersistenceGateway, Settings, SettingsStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "data"


class SettingsService:
    """Loads, validates and saves the Settings model."""

    def __init__(self, store: PersistenceGateway):
        self._store = store
        self.settings = Settings()
        self.error: IoFailure | None = None

    async def load(self) -> Settings:
        """Stored values merged over defaults; a failed read keeps defaults."""
        self.error = None
        try:
            record = await self._store.kv_load(SETTINGS_STORE, SETTINGS_KEY)
            stored = (record or {}).get("settings") or {}
            self.settings = Settings.model_validate(
                {**Settings().model_dump(), **stored}
            )
        except Exception as exc:
            self.error = IoFailure.wrap("load settings", None, exc)
            logger.error("%s", self.error)
            self.settings = Settings()
            return self.settings

        logger.info("Loaded settings from store")
        return self.settings

    async def update_setting(self, key: str, value: Any) -> Settings:
        """Validate, persist, then apply a single setting.

        Raises:
            KeyError: ``key`` is not a setting.
            pydantic.ValidationError: ``value`` is not valid for ``key``.
            IoFailure: the save failed; the current settings are unchanged.
        """
        if key not in Settings.model_fields:
            raise KeyError(key)

        updated = Settings.model_validate({**self.settings.model_dump(), key: value})
        record = SettingsStore(settings=updated).model_dump(mode="json")
        try:
            await self._store.kv_save(SETTINGS_STORE, SETTINGS_KEY, record)
        except Exception as exc:
            self.error = IoFailure.wrap("save settings", None, exc)
            logger.error("%s", self.error)
            raise self.error from exc

        self.error = None
        self.settings = updated
        logger.info("Updated setting %s", key)
        return updated
