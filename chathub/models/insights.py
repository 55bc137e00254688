from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

Sentiment = Literal["positive", "neutral", "negative"]


class SessionSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    short: str
    full: str
    message_count: int = Field(..., alias="messageCount")
    last_updated: str = Field(..., alias="lastUpdated")


class KnowledgeTopic(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str
    is_recent: bool = Field(..., alias="isRecent")
    timestamp: str


class PeerKnowledge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    participant_id: str = Field(..., alias="participantId")
    participant_name: str = Field(..., alias="participantName")
    topics: List[KnowledgeTopic] = Field(default_factory=list)


class PeerRelationship(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_peer: str = Field(..., alias="from")
    to_peer: str = Field(..., alias="to")
    sentiment: Sentiment
    description: str


__all__ = ["KnowledgeTopic", "PeerKnowledge", "PeerRelationship", "Sentiment", "SessionSummary"]
