from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..utils.ids import generate_id
from ..utils.timestamps import isoformat, parse_timestamp, utc_now


class MessageKind(str, Enum):
    CHAT = "chat"
    AGENT_RESPONSE = "agent_response"
    AGENT_DATA = "agent_data"
    SYSTEM = "system"
    JOIN = "join"
    LEAVE = "leave"


# Presence and status notices; hidden from get_history.
SYSTEM_KINDS = frozenset({MessageKind.JOIN, MessageKind.LEAVE, MessageKind.SYSTEM})


class MessageEvent(BaseModel):
    """Immutable record of something said or announced in the room."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1)
    kind: MessageKind = Field(..., alias="type")
    username: str
    content: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def timestamp(self) -> Optional[datetime]:
        return parse_timestamp(self.metadata.get("timestamp"))

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def create_message(
    kind: MessageKind,
    username: str,
    content: str,
    metadata: Optional[Mapping[str, Any]] = None,
    *,
    timestamp: Optional[datetime] = None,
) -> MessageEvent:
    """Build a new event; the creation timestamp always wins over caller metadata."""

    stamped: Dict[str, Any] = dict(metadata or {})
    stamped["timestamp"] = isoformat(timestamp or utc_now())
    return MessageEvent(
        id=generate_id(),
        kind=kind,
        username=username,
        content=content,
        metadata=stamped,
    )


__all__ = ["MessageEvent", "MessageKind", "SYSTEM_KINDS", "create_message"]
