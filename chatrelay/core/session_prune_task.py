"""Background task for idle session eviction."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from chatrelay.config.settings import settings
from chatrelay.util.logger import logger


class SessionPruneTask:
    """Owns periodic idle-session cleanup for the session store."""

    def __init__(self, *, prune_func: Callable[[], int]) -> None:
        self._prune_func = prune_func
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run_loop(), name="chatrelay-session-prune")
        logger.info("session prune task started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None
        logger.info("session prune task stopped")

    async def run_once(self) -> int:
        removed = int(self._prune_func())
        if removed > 0:
            logger.info("session store pruned removed=%s", removed)
        return removed

    async def _run_loop(self) -> None:
        interval = max(5, int(settings.session_prune_interval_seconds))
        while True:
            await asyncio.sleep(interval)
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # pragma: no cover - operational guard
                logger.warning("session prune task failed: %s", exc)
