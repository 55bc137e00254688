"""Socket.IO binding: maps client events onto the session hub."""

from __future__ import annotations

from typing import Any, Optional

import socketio

from ..logging_config import logger
from ..services import SessionHub

CLIENT_EVENTS = (
    "register",
    "chat",
    "agent_data",
    "agent_response",
    "get_history",
    "get_users",
    "dialectic",
    "toggle_observe",
    "get_session_summary",
    "get_peer_knowledge",
    "get_peer_relationships",
)


def _first(args: tuple) -> Optional[Any]:
    # Callback-only emits (``emit("get_users", cb)``) arrive without a data argument.
    return args[0] if args else None


def bind_socket_events(sio: socketio.AsyncServer, hub: SessionHub) -> None:
    """Register every inbound event. Returned values become the client's callback payload."""

    @sio.event
    async def connect(sid: str, environ: dict, auth: Any = None) -> None:
        logger.info("new connection", extra={"sid": sid})
        hub.connect(sid)

    @sio.event
    async def disconnect(sid: str, *args: Any) -> None:
        await hub.disconnect(sid)

    @sio.on("register")
    async def register(sid: str, *args: Any) -> None:
        await hub.register(sid, _first(args))

    @sio.on("chat")
    async def chat(sid: str, *args: Any) -> None:
        await hub.chat(sid, _first(args))

    @sio.on("agent_data")
    async def agent_data(sid: str, *args: Any) -> None:
        await hub.agent_data(sid, _first(args))

    @sio.on("agent_response")
    async def agent_response(sid: str, *args: Any) -> None:
        await hub.agent_response(sid, _first(args))

    @sio.on("get_history")
    async def get_history(sid: str, *args: Any) -> Any:
        return hub.get_history(_first(args))

    @sio.on("get_users")
    async def get_users(sid: str, *args: Any) -> Any:
        return hub.get_users()

    @sio.on("dialectic")
    async def dialectic(sid: str, *args: Any) -> Any:
        return await hub.dialectic(_first(args))

    @sio.on("toggle_observe")
    async def toggle_observe(sid: str, *args: Any) -> Any:
        return await hub.toggle_observe(sid)

    @sio.on("get_session_summary")
    async def get_session_summary(sid: str, *args: Any) -> Any:
        return await hub.get_session_summary()

    @sio.on("get_peer_knowledge")
    async def get_peer_knowledge(sid: str, *args: Any) -> Any:
        return await hub.get_peer_knowledge()

    @sio.on("get_peer_relationships")
    async def get_peer_relationships(sid: str, *args: Any) -> Any:
        return await hub.get_peer_relationships()


__all__ = ["CLIENT_EVENTS", "bind_socket_events"]
