"""Inbound client event payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .messages import MessageKind
from .participants import ParticipantKind


class RegisterPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    username: str = ""
    kind: ParticipantKind = Field(default=ParticipantKind.HUMAN, alias="type")
    capabilities: List[str] = Field(default_factory=list)
    observe_me: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_username(cls, data: Any) -> Any:
        if isinstance(data, dict) and "username" in data:
            data = dict(data)
            data["username"] = "" if data["username"] is None else str(data["username"]).strip()
        return data

    @field_validator("capabilities", mode="before")
    @classmethod
    def _coerce_capabilities(cls, value: Any) -> Any:
        return [] if value is None else value


class ChatPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def _coerce_metadata(cls, value: Any) -> Any:
        return {} if value is None else value


class AgentDataPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    content: str = ""
    data_type: Optional[str] = Field(default=None, alias="dataType")
    processed_data: Any = Field(default=None, alias="processedData")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    broadcast: bool = False
    targets: Optional[List[str]] = None

    @field_validator("content", mode="before")
    @classmethod
    def _coerce_content(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("metadata", mode="before")
    @classmethod
    def _coerce_metadata(cls, value: Any) -> Any:
        return {} if value is None else value


class AgentResponsePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    response: str
    response_type: str = Field(default="general", alias="responseType")
    confidence: Optional[float] = None
    referenced_message: Optional[str] = Field(default=None, alias="referencedMessage")


class HistoryQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    limit: Optional[int] = Field(default=None, ge=1)
    message_type: Optional[MessageKind] = Field(default=None, alias="messageType")
    since: Optional[datetime] = None


class DialecticPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user: str = Field(..., min_length=1)
    query: str = Field(..., min_length=1)


__all__ = [
    "AgentDataPayload",
    "AgentResponsePayload",
    "ChatPayload",
    "DialecticPayload",
    "HistoryQuery",
    "RegisterPayload",
]
