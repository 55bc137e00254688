"""On-demand knowledge and relationship queries fanned out over every participant."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence

from ..logging_config import logger
from ..memory_client import MemoryService
from ..models import (
    SYSTEM_KINDS,
    KnowledgeTopic,
    MessageEvent,
    PeerKnowledge,
    PeerRelationship,
    Sentiment,
)
from ..utils.timestamps import isoformat, utc_now
from .history import HistoryBuffer
from .registry import IdentityRegistry

KNOWLEDGE_QUESTION = "What topics have been discussed in this session? List them as bullet points."
RELATIONSHIP_QUESTION = "What is your relationship with {name}? Describe in one sentence."
NO_RELATIONSHIP_DATA = "No relationship data"

POSITIVE_WORDS = ("good", "great", "excellent", "helpful", "friendly", "like", "love", "wonderful")
NEGATIVE_WORDS = ("bad", "terrible", "awful", "unhelpful", "rude", "dislike", "hate", "poor")

_BULLET_PATTERN = re.compile(r"^\s*[-•*]\s+")


def _keyword_hits(text: str, words: Sequence[str]) -> int:
    return sum(1 for word in words if re.search(rf"\b{re.escape(word)}\b", text))


def analyze_sentiment(text: str) -> Sentiment:
    """Classify by counting which positive and negative keywords appear."""

    lowered = (text or "").lower()
    positive = _keyword_hits(lowered, POSITIVE_WORDS)
    negative = _keyword_hits(lowered, NEGATIVE_WORDS)
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def parse_topics(text: str, limit: int = 5) -> List[str]:
    """Extract bullet lines (``-``, ``•`` or ``*``) from a free-text answer."""

    topics: List[str] = []
    for line in (text or "").splitlines():
        if not _BULLET_PATTERN.match(line):
            continue
        topic = _BULLET_PATTERN.sub("", line, count=1).strip()
        if topic:
            topics.append(topic)
        if len(topics) >= limit:
            break
    return topics


class InsightFanout:
    """Read-only queries; every call asks the memory service afresh."""

    def __init__(
        self,
        registry: IdentityRegistry,
        history: HistoryBuffer,
        memory: MemoryService,
        *,
        topic_limit: int = 5,
        recent_window: timedelta = timedelta(minutes=5),
        description_length: int = 100,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._registry = registry
        self._history = history
        self._memory = memory
        self._topic_limit = topic_limit
        self._recent_window = recent_window
        self._description_length = description_length
        self._clock = clock

    async def get_knowledge(self) -> List[PeerKnowledge]:
        participants = self._registry.list_all()
        results: List[PeerKnowledge] = []
        for participant in participants:
            try:
                answer = await self._memory.ask_peer(participant.username, KNOWLEDGE_QUESTION)
            except Exception as exc:
                logger.warning(
                    "peer knowledge query failed",
                    extra={"peer": participant.username, "error": str(exc)},
                )
                topics: List[KnowledgeTopic] = []
            else:
                topics = self._tag_topics(parse_topics(answer, self._topic_limit))
            results.append(
                PeerKnowledge(
                    participant_id=participant.handle,
                    participant_name=participant.username,
                    topics=topics,
                )
            )
        return results

    async def get_relationships(self) -> List[PeerRelationship]:
        participants = self._registry.list_all()
        results: List[PeerRelationship] = []
        for source in participants:
            for target in participants:
                if source.handle == target.handle or source.username == target.username:
                    continue
                try:
                    answer = await self._memory.ask_peer(
                        source.username,
                        RELATIONSHIP_QUESTION.format(name=target.username),
                        target=target.username,
                    )
                except Exception as exc:
                    logger.warning(
                        "peer relationship query failed",
                        extra={"from": source.username, "to": target.username, "error": str(exc)},
                    )
                    continue
                text = answer if isinstance(answer, str) else ""
                results.append(
                    PeerRelationship(
                        from_peer=source.username,
                        to_peer=target.username,
                        sentiment=analyze_sentiment(text),
                        description=text[: self._description_length] or NO_RELATIONSHIP_DATA,
                    )
                )
        return results

    def _tag_topics(self, topics: List[str]) -> List[KnowledgeTopic]:
        now = self._clock()
        observed_at = self._last_activity() or now
        is_recent = now - observed_at <= self._recent_window
        stamp = isoformat(observed_at)
        return [KnowledgeTopic(content=topic, is_recent=is_recent, timestamp=stamp) for topic in topics]

    def _last_activity(self) -> Optional[datetime]:
        """Timestamp of the latest conversational event the answers can draw on."""
        latest: Optional[MessageEvent] = None
        for event in self._history.filter(lambda item: item.kind not in SYSTEM_KINDS):
            latest = event
        return latest.timestamp if latest is not None else None


__all__ = [
    "InsightFanout",
    "KNOWLEDGE_QUESTION",
    "NEGATIVE_WORDS",
    "POSITIVE_WORDS",
    "RELATIONSHIP_QUESTION",
    "analyze_sentiment",
    "parse_topics",
]
