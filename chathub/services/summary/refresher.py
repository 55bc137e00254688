"""Background loop that keeps the summary cache fresh and pushes it to clients."""

from __future__ import annotations

import asyncio
from typing import Optional

from ...logging_config import logger
from ..background import BackgroundTasks
from ..outbound import Outbound
from .cache import SummaryCache

DEFAULT_INITIAL_DELAY_SECONDS = 2.0
DEFAULT_REFRESH_INTERVAL_SECONDS = 30.0


class SummaryRefresher:
    """Refreshes after a startup delay, then on a fixed interval, plus on demand."""

    def __init__(
        self,
        cache: SummaryCache,
        outbound: Outbound,
        *,
        initial_delay_seconds: float = DEFAULT_INITIAL_DELAY_SECONDS,
        interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
    ) -> None:
        self._cache = cache
        self._outbound = outbound
        self._initial_delay = initial_delay_seconds
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task[None]] = None
        self._running = False
        self._lock = asyncio.Lock()
        self._triggered = BackgroundTasks()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        async with self._lock:
            if self._task and not self._task.done():
                return
            loop = asyncio.get_running_loop()
            self._running = True
            self._task = loop.create_task(self._run(), name="summary-refresher")
            logger.info(
                "Summary refresher started",
                extra={"initial_delay": self._initial_delay, "interval": self._interval},
            )

    async def stop(self) -> None:
        async with self._lock:
            self._running = False
            if self._task:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
                self._task = None
                logger.info("Summary refresher stopped")
            await self._triggered.cancel_all()

    def trigger(self) -> None:
        """Request an immediate refresh; collapses into a running one if any."""
        if self._cache.generating:
            return
        self._triggered.spawn(self.refresh_and_broadcast(), name="summary-refresh")

    async def refresh_and_broadcast(self) -> bool:
        refreshed = await self._cache.refresh()
        summary = self._cache.current
        if refreshed and summary is not None:
            await self._outbound.emit("summary_updated", summary.model_dump(mode="json", by_alias=True))
        return refreshed

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self._initial_delay)
            while self._running:
                try:
                    await self.refresh_and_broadcast()
                except Exception as exc:  # pragma: no cover
                    logger.exception("Summary refresh failed", extra={"error": str(exc)})
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            raise


__all__ = ["DEFAULT_INITIAL_DELAY_SECONDS", "DEFAULT_REFRESH_INTERVAL_SECONDS", "SummaryRefresher"]
