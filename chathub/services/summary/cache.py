from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from ...logging_config import logger
from ...memory_client import MemoryService
from ...models import MessageEvent, MessageKind, SessionSummary
from ...utils.timestamps import isoformat, utc_now
from ..history import HistoryBuffer

EMPTY_SHORT = "No messages yet. Start chatting to see a summary!"
EMPTY_FULL = "Once the conversation begins, this will show a summary of the key topics and interactions."
PROCESSING_FULL = "The system is processing the conversation. Please check back in a moment."


def _is_chat(event: MessageEvent) -> bool:
    return event.kind is MessageKind.CHAT


class SummaryCache:
    """Latest conversation summary with single-flight regeneration.

    A refresh requested while another is awaiting the memory service returns
    immediately instead of queueing. A completed refresh replaces the value
    wholesale. When the memory service fails, the last generated summary stays
    cached; the "unavailable" fallback is stored only if none was generated yet.
    """

    def __init__(
        self,
        memory: MemoryService,
        history: HistoryBuffer,
        *,
        token_budget: int = 2000,
        short_length: int = 150,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._memory = memory
        self._history = history
        self._token_budget = token_budget
        self._short_length = short_length
        self._clock = clock
        self._summary: Optional[SessionSummary] = None
        self._last_generated: Optional[SessionSummary] = None
        self._generating = False

    @property
    def current(self) -> Optional[SessionSummary]:
        return self._summary

    @property
    def generating(self) -> bool:
        return self._generating

    def message_count(self) -> int:
        return self._history.count_where(_is_chat)

    async def refresh(self) -> bool:
        """Regenerate the summary. Returns ``False`` when skipped as a duplicate."""

        if self._generating:
            logger.debug("summary generation already in progress, skipping")
            return False

        message_count = self.message_count()
        if message_count == 0:
            self._summary = self._build(EMPTY_SHORT, EMPTY_FULL, 0)
            return True

        self._generating = True
        logger.info("summary generation started", extra={"message_count": message_count})
        try:
            content = await self._memory.get_summary(tokens=self._token_budget)
        except Exception as exc:
            logger.error("summary generation failed", extra={"error": str(exc)})
            self._summary = self._last_generated or self.unavailable(message_count, exc)
        else:
            if content:
                self._summary = self._build(content[: self._short_length], content, message_count)
                self._last_generated = self._summary
                logger.info("summary generation completed", extra={"message_count": message_count})
            else:
                logger.warning("summary generation returned no content; using fallback")
                self._summary = self._build(
                    f"{message_count} messages exchanged. Summary generation in progress...",
                    PROCESSING_FULL,
                    message_count,
                )
        finally:
            self._generating = False
        return True

    def snapshot(self) -> SessionSummary:
        """Cached summary, or an unavailable fallback when nothing has been generated yet."""
        if self._summary is not None:
            return self._summary
        return self.unavailable(self.message_count())

    def unavailable(self, message_count: int, error: Optional[BaseException] = None) -> SessionSummary:
        detail = f"Error retrieving session summary: {error}" if error else "Session summary has not been generated yet."
        return self._build(f"{message_count} messages. Summary temporarily unavailable.", detail, message_count)

    def _build(self, short: str, full: str, message_count: int) -> SessionSummary:
        return SessionSummary(
            short=short,
            full=full,
            message_count=message_count,
            last_updated=isoformat(self._clock()),
        )


__all__ = ["EMPTY_FULL", "EMPTY_SHORT", "PROCESSING_FULL", "SummaryCache"]
