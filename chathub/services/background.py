from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, Set

from ..logging_config import logger


class BackgroundTasks:
    """Fire-and-forget task set that keeps references until completion and logs failures."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task[None]] = set()

    def spawn(self, awaitable: Awaitable[None], *, name: Optional[str] = None) -> Optional[asyncio.Task[None]]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("background task skipped (no running event loop)", extra={"task": name})
            close = getattr(awaitable, "close", None)
            if close is not None:
                close()
            return None

        task = loop.create_task(self._guard(awaitable, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, awaitable: Awaitable[None], name: Optional[str]) -> None:
        try:
            await awaitable
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pragma: no cover
            logger.exception("background task failed", extra={"task": name, "error": str(exc)})

    async def drain(self) -> None:
        """Wait for every task spawned so far, including ones spawned while waiting."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()

    def __len__(self) -> int:
        return len(self._tasks)


__all__ = ["BackgroundTasks"]
