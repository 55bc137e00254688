from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..config import Settings, get_settings
from ..models import HealthResponse, RootResponse
from .socket import CLIENT_EVENTS

SERVICE_NAME = "chathub"

router = APIRouter(tags=["meta"])


@router.get("/health", response_model=HealthResponse)
# Liveness plus the upstream session this process writes into
def health(request: Request, settings: Settings = Depends(get_settings)) -> HealthResponse:
    hub = getattr(request.app.state, "hub", None)
    return HealthResponse(
        ok=True,
        service=SERVICE_NAME,
        version=settings.app_version,
        session_id=hub.session_id if hub is not None else None,
        participants=len(hub.registry) if hub is not None else 0,
    )


@router.get("/meta", response_model=RootResponse)
# HTTP read endpoints and the socket events clients may emit
def meta(request: Request, settings: Settings = Depends(get_settings)) -> RootResponse:
    endpoints = sorted(
        {
            route.path
            for route in request.app.routes
            if getattr(route, "include_in_schema", False) and route.path.startswith("/api/")
        }
    )
    return RootResponse(
        status="ok",
        service=SERVICE_NAME,
        version=settings.app_version,
        endpoints=endpoints,
        events=list(CLIENT_EVENTS),
    )
