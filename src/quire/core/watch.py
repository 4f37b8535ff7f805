"""Watch reconciler - turns filesystem change bursts into debounced rescans.

Individual event payloads are never applied to the tree: each burst only
schedules one full rescan. Every subscription carries a generation token so
that events or timers belonging to a stopped subscription (e.g. the previous
vault) can never rescan into the current state.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from quire.core.config import WATCH_DEBOUNCE_SECONDS
from quire.core.errors import WatchSetupFailure
from quire.core.types import FileEvent, FileSystemBackend, Unsubscribe

logger = logging.getLogger(__name__)


class WatchReconciler:
    """Debounces watcher notifications into rescans of one vault."""

    def __init__(
        self,
        backend: FileSystemBackend,
        rescan: Callable[[], Awaitable[None]],
        debounce_seconds: float | None = None,
    ):
        """
        Initialize the reconciler.

        Args:
            backend: Filesystem capability providing the watcher
            rescan: Coroutine function performing a full rescan
            debounce_seconds: Quiet window before a rescan fires
        """
        self._backend = backend
        self._rescan = rescan
        self.debounce_seconds = (
            WATCH_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self._generation = 0
        self._unsubscribe: Unsubscribe | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._rescan_task: asyncio.Task | None = None
        self.watching_path: str | None = None
        self.error: WatchSetupFailure | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_watching(self) -> bool:
        return self.watching_path is not None

    @property
    def has_pending_rescan(self) -> bool:
        return self._timer is not None

    async def start(self, path: str) -> bool:
        """Start watching ``path``, replacing any previous subscription.

        Returns:
            False if the watcher could not be set up. The failure is recorded
            in ``error`` and the tree stays usable without live updates.
        """
        await self.stop()
        token = self._generation
        self.error = None

        try:
            await self._backend.start_watching(path)
        except Exception as exc:
            self.error = WatchSetupFailure(f"Failed to start file watcher for {path}: {exc}")
            logger.warning("%s", self.error)
            return False

        if token != self._generation:
            # stop() was called while start_watching was in flight
            return False

        self.watching_path = path
        try:
            self._unsubscribe = self._backend.subscribe_change_events(
                lambda event: self._on_event(token, event)
            )
        except Exception as exc:
            self.error = WatchSetupFailure(f"Failed to subscribe to file events: {exc}")
            logger.warning("%s", self.error)
            return False

        logger.info("Watching %s for changes", path)
        return True

    def _on_event(self, token: int, event: FileEvent) -> None:
        if token != self._generation:
            logger.debug("Ignoring stale file event %s %s", event.type, event.path)
            return
        logger.debug("File event %s %s", event.type, event.path)
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_seconds, self._fire, token)

    def _fire(self, token: int) -> None:
        self._timer = None
        if token != self._generation:
            return
        self._rescan_task = asyncio.get_running_loop().create_task(
            self._run_rescan(token)
        )

    async def _run_rescan(self, token: int) -> None:
        if token != self._generation:
            return
        try:
            await self._rescan()
        except Exception:
            logger.error("Watcher-triggered rescan failed", exc_info=True)

    async def stop(self) -> None:
        """Tear down the subscription and any pending or running rescan."""
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._rescan_task is not None and not self._rescan_task.done():
            self._rescan_task.cancel()
        self._rescan_task = None

        if self._unsubscribe is not None:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            try:
                unsubscribe()
            except Exception:
                logger.warning("Failed to unsubscribe from file events", exc_info=True)

        if self.watching_path is None:
            return
        path, self.watching_path = self.watching_path, None
        try:
            await self._backend.stop_watching()
            logger.info("Stopped watching %s", path)
        except Exception:
            logger.warning("Failed to stop file watcher for %s", path, exc_info=True)
