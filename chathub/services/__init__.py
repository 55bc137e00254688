"""Service layer components."""

from .history import HistoryBuffer
from .hub import SessionHub
from .insights import InsightFanout, analyze_sentiment, parse_topics
from .outbound import Outbound
from .registry import DuplicateRegistration, IdentityRegistry
from .router import ConnectionState, MessageRouter
from .summary import SummaryCache, SummaryRefresher


__all__ = [
    "HistoryBuffer",
    "SessionHub",
    "InsightFanout",
    "analyze_sentiment",
    "parse_topics",
    "Outbound",
    "DuplicateRegistration",
    "IdentityRegistry",
    "ConnectionState",
    "MessageRouter",
    "SummaryCache",
    "SummaryRefresher",
]
