from __future__ import annotations

from fastapi import APIRouter

from .meta import router as meta_router
from .session import router as session_router
from .socket import bind_socket_events

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(meta_router)
api_router.include_router(session_router)

__all__ = ["api_router", "bind_socket_events"]
