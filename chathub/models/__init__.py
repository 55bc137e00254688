from .events import (
    AgentDataPayload,
    AgentResponsePayload,
    ChatPayload,
    DialecticPayload,
    HistoryQuery,
    RegisterPayload,
)
from .insights import KnowledgeTopic, PeerKnowledge, PeerRelationship, Sentiment, SessionSummary
from .messages import SYSTEM_KINDS, MessageEvent, MessageKind, create_message
from .meta import HealthResponse, HistoryResponse, RootResponse, SessionInfoResponse, UsersResponse
from .participants import Agent, Human, Participant, ParticipantKind

__all__ = [
    "AgentDataPayload",
    "AgentResponsePayload",
    "ChatPayload",
    "DialecticPayload",
    "HistoryQuery",
    "RegisterPayload",
    "KnowledgeTopic",
    "PeerKnowledge",
    "PeerRelationship",
    "Sentiment",
    "SessionSummary",
    "SYSTEM_KINDS",
    "MessageEvent",
    "MessageKind",
    "create_message",
    "HealthResponse",
    "HistoryResponse",
    "RootResponse",
    "SessionInfoResponse",
    "UsersResponse",
    "Agent",
    "Human",
    "Participant",
    "ParticipantKind",
]
