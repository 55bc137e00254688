from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Iterable, Iterator, List

from ..models import MessageEvent

DEFAULT_HISTORY_CAPACITY = 1000

EventPredicate = Callable[[MessageEvent], bool]


class HistoryBuffer:
    """Bounded, append-only log of emitted events; the oldest entry is evicted first."""

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("History capacity must be positive")
        self._entries: Deque[MessageEvent] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def append(self, event: MessageEvent) -> None:
        self._entries.append(event)

    def extend(self, events: Iterable[MessageEvent]) -> None:
        for event in events:
            self.append(event)

    def recent(self, n: int) -> List[MessageEvent]:
        if n <= 0:
            return []
        entries = list(self._entries)
        return entries[-n:]

    def filter(self, predicate: EventPredicate) -> List[MessageEvent]:
        return [event for event in self._entries if predicate(event)]

    def count_where(self, predicate: EventPredicate) -> int:
        return sum(1 for event in self._entries if predicate(event))

    def __iter__(self) -> Iterator[MessageEvent]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["DEFAULT_HISTORY_CAPACITY", "EventPredicate", "HistoryBuffer"]
