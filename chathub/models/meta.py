from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool
    service: str
    version: str
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    participants: int = 0


class RootResponse(BaseModel):
    status: str
    service: str
    version: str
    endpoints: List[str]
    events: List[str] = Field(default_factory=list)


class SessionInfoResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    humans: int
    agents: int
    history_size: int = Field(..., alias="historySize")


class UsersResponse(BaseModel):
    users: List[Dict[str, Any]] = Field(default_factory=list)
    agents: List[Dict[str, Any]] = Field(default_factory=list)


class HistoryResponse(BaseModel):
    history: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = 0
