from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from ..models import HistoryResponse, SessionInfoResponse, SessionSummary, UsersResponse
from ..services import SessionHub
from ..utils import hub_error_response

router = APIRouter(prefix="/session", tags=["session"])


def get_hub(request: Request) -> SessionHub:
    return request.app.state.hub


@router.get("", response_model=SessionInfoResponse)
# Report the active session id and who is present
def session_info(hub: SessionHub = Depends(get_hub)) -> SessionInfoResponse:
    return SessionInfoResponse(
        session_id=hub.session_id,
        humans=hub.registry.human_count,
        agents=hub.registry.agent_count,
        history_size=len(hub.history),
    )


@router.get("/users", response_model=UsersResponse)
def session_users(hub: SessionHub = Depends(get_hub)) -> UsersResponse:
    return UsersResponse(**hub.get_users())


@router.get("/history", response_model=HistoryResponse)
# Return recent chat history using the same filters as the get_history socket event
def session_history(
    hub: SessionHub = Depends(get_hub),
    limit: Optional[int] = Query(default=None, ge=1),
    message_type: Optional[str] = Query(default=None, alias="messageType"),
    since: Optional[str] = Query(default=None),
) -> Any:
    query: Dict[str, Any] = {"limit": limit, "messageType": message_type, "since": since}
    result = hub.get_history({key: value for key, value in query.items() if value is not None})
    if "error" in result:
        return hub_error_response(result, status_code=status.HTTP_400_BAD_REQUEST)
    return HistoryResponse(**result)


@router.get("/summary", response_model=SessionSummary)
async def session_summary(hub: SessionHub = Depends(get_hub)) -> JSONResponse:
    return JSONResponse(await hub.get_session_summary())


__all__ = ["get_hub", "router"]
