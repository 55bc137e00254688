from __future__ import annotations

import json
import time
from typing import List, Optional, Union

import socketio
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .logging_config import configure_logging, logger
from .memory_client import HonchoMemoryService
from .routes import api_router, bind_socket_events
from .services import SessionHub


# Register global exception handlers for consistent error responses across the API
def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.debug("validation error", extra={"errors": exc.errors(), "path": str(request.url)})
        return JSONResponse(
            {"ok": False, "error": "Invalid request", "detail": exc.errors()},
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException):
        logger.debug(
            "http error",
            extra={"detail": exc.detail, "status": exc.status_code, "path": str(request.url)},
        )
        detail = exc.detail
        if not isinstance(detail, str):
            detail = json.dumps(detail)
        return JSONResponse({"ok": False, "error": detail}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", extra={"path": str(request.url)})
        return JSONResponse(
            {"ok": False, "error": "Internal server error"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


def _socket_cors(settings: Settings) -> Union[str, List[str]]:
    origins = settings.cors_allow_origins
    return "*" if origins == ["*"] else origins


def create_socket_server(settings: Optional[Settings] = None) -> socketio.AsyncServer:
    settings = settings or get_settings()
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=_socket_cors(settings),
        ping_interval=25,
        ping_timeout=60,
    )


def create_app(hub: SessionHub, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or hub.settings
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=settings.resolved_docs_url,
        redoc_url=None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router)
    app.state.hub = hub

    @app.on_event("startup")
    # Open the upstream session, seed history and start the summary refresher
    async def _start_hub() -> None:
        await hub.start()
        logger.info("chat hub started", extra={"session_id": hub.session_id})

    @app.on_event("shutdown")
    # Stop the refresher and let in-flight memory syncs finish
    async def _stop_hub() -> None:
        await hub.stop()
        logger.info("chat hub stopped", extra={"session_id": hub.session_id})

    return app


configure_logging()
_settings = get_settings()
_session_id = _settings.session_id or f"groupchat-{int(time.time() * 1000)}"

sio = create_socket_server(_settings)
hub = SessionHub(HonchoMemoryService.from_settings(_settings, session_id=_session_id), sio, _settings)
bind_socket_events(sio, hub)
app = create_app(hub, _settings)
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)


__all__ = ["app", "asgi_app", "create_app", "create_socket_server", "hub", "sio"]
