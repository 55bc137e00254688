"""Inbound event routing: validation, stamping, delivery and memory ingestion."""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from ..logging_config import logger
from ..memory_client import MemoryService
from ..models import (
    Agent,
    AgentDataPayload,
    AgentResponsePayload,
    ChatPayload,
    Human,
    MessageEvent,
    MessageKind,
    Participant,
    ParticipantKind,
    RegisterPayload,
    create_message,
)
from ..utils.timestamps import utc_now
from .background import BackgroundTasks
from .history import HistoryBuffer
from .outbound import Outbound
from .registry import DuplicateRegistration, IdentityRegistry

SYSTEM_USERNAME = "system"
DEFAULT_CLOSED_HANDLE_LIMIT = 1024


class ConnectionState(str, Enum):
    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    DISCONNECTED = "disconnected"


class MessageRouter:
    """Drives the registry and history for each inbound event and fans events out.

    Every handler finishes its local mutations (registry, history, connection
    state) before its first ``await`` so interleaved handlers never observe a
    half-applied event. Memory-service calls run as background tasks and never
    gate delivery.
    """

    def __init__(
        self,
        registry: IdentityRegistry,
        history: HistoryBuffer,
        memory: MemoryService,
        outbound: Outbound,
        *,
        snapshot_size: int = 50,
        agent_context_size: int = 10,
        on_chat: Optional[Callable[[], None]] = None,
        closed_handle_limit: int = DEFAULT_CLOSED_HANDLE_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._registry = registry
        self._history = history
        self._memory = memory
        self._outbound = outbound
        self._snapshot_size = snapshot_size
        self._agent_context_size = agent_context_size
        self._on_chat = on_chat
        self._clock = clock
        self._states: Dict[str, ConnectionState] = {}
        # Recently closed handles, oldest first; late events for them are dropped.
        self._closed: OrderedDict[str, None] = OrderedDict()
        self._closed_limit = max(1, closed_handle_limit)
        self._last_stamp: Optional[datetime] = None
        self._tasks = BackgroundTasks()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self, handle: str) -> None:
        if handle not in self._closed:
            self._states.setdefault(handle, ConnectionState.UNREGISTERED)
        logger.debug("connection opened", extra={"handle": handle})

    def state_of(self, handle: str) -> ConnectionState:
        if handle in self._closed:
            return ConnectionState.DISCONNECTED
        return self._states.get(handle, ConnectionState.UNREGISTERED)

    async def register(self, handle: str, payload: RegisterPayload) -> Optional[Participant]:
        if self.state_of(handle) is ConnectionState.DISCONNECTED:
            logger.debug("register from closed connection dropped", extra={"handle": handle})
            return None

        kind = payload.kind
        username = payload.username or self._default_username(handle, kind)
        explicit_observe = payload.observe_me is not None
        try:
            participant = self._registry.register(
                handle,
                kind,
                username,
                observe_me=payload.observe_me if explicit_observe else True,
                capabilities=payload.capabilities,
            )
        except DuplicateRegistration as exc:
            logger.warning("duplicate registration dropped", extra={"handle": handle, "error": str(exc)})
            return None

        if explicit_observe and isinstance(participant, Human):
            participant.preference_set = True
        self._states[handle] = ConnectionState.REGISTERED
        snapshot = [event.to_wire() for event in self._history.recent(self._snapshot_size)]
        join_message = self._create(
            MessageKind.JOIN,
            SYSTEM_USERNAME,
            f"{username} ({kind.value}) joined the chat",
            {"joinedUser": username, "userType": kind.value},
        )
        self._history.append(join_message)
        self._tasks.spawn(
            self._sync_peer_added(participant, explicit_observe=explicit_observe),
            name=f"peer-add-{handle}",
        )
        logger.info("participant registered", extra={"handle": handle, "username": username, "type": kind.value})

        await self._outbound.emit("history", snapshot, to=handle)
        await self._outbound.emit("session_id", self._memory.session_id, to=handle)
        await self._outbound.emit("message", join_message.to_wire(), skip_sid=handle)
        return participant

    async def disconnect(self, handle: str) -> Optional[Participant]:
        self._states.pop(handle, None)
        self._remember_closed(handle)
        participant = self._registry.remove(handle)
        if participant is None:
            return None

        leave_message = self._create(
            MessageKind.LEAVE,
            SYSTEM_USERNAME,
            f"{participant.username} ({participant.kind.value}) left the chat",
            {"leftUser": participant.username, "userType": participant.kind.value},
        )
        self._history.append(leave_message)
        self._tasks.spawn(self._sync_peer_removed(participant), name=f"peer-remove-{handle}")
        logger.info(
            "participant disconnected",
            extra={"handle": handle, "username": participant.username, "type": participant.kind.value},
        )

        await self._outbound.emit("message", leave_message.to_wire(), skip_sid=handle)
        return participant

    # ------------------------------------------------------------------
    # Chat-bearing events
    # ------------------------------------------------------------------

    async def chat(self, handle: str, payload: ChatPayload) -> Optional[MessageEvent]:
        participant = self._active(handle)
        if participant is None:
            return None

        metadata = {**payload.metadata, "userId": handle, "userType": participant.kind.value}
        message = self._create(MessageKind.CHAT, participant.username, payload.content, metadata)
        self._history.append(message)
        notice = self._agent_notice(message, "chat_message")
        recipients = self._agent_recipients(exclude={handle})
        self._ingest(participant, message)
        if self._on_chat is not None:
            self._on_chat()

        await self._outbound.emit("message", message.to_wire())
        await self._notify_agents(notice, recipients)
        return message

    async def agent_data(self, handle: str, payload: AgentDataPayload) -> Optional[MessageEvent]:
        agent = self._active_agent(handle)
        if agent is None:
            return None

        metadata = {
            **payload.metadata,
            "agentId": handle,
            "dataType": payload.data_type,
            "processedData": payload.processed_data,
        }
        message = self._create(MessageKind.AGENT_DATA, agent.username, payload.content, metadata)

        targets: List[str] = []
        if payload.broadcast:
            self._history.append(message)
        elif payload.targets:
            targets = [target for target in dict.fromkeys(payload.targets) if target in self._registry]
        notice = self._agent_notice(message, "agent_data")
        recipients = self._agent_recipients(exclude={handle})

        wire = message.to_wire()
        if payload.broadcast:
            await self._outbound.emit("message", wire)
        for target in targets:
            await self._outbound.emit("message", wire, to=target)
        await self._notify_agents(notice, recipients)
        return message

    async def agent_response(self, handle: str, payload: AgentResponsePayload) -> Optional[MessageEvent]:
        agent = self._active_agent(handle)
        if agent is None:
            return None

        metadata = {
            "agentId": handle,
            "responseType": payload.response_type,
            "confidence": payload.confidence,
            "referencedMessage": payload.referenced_message,
        }
        message = self._create(MessageKind.AGENT_RESPONSE, agent.username, payload.response, metadata)
        self._history.append(message)
        self._ingest(agent, message)

        await self._outbound.emit("message", message.to_wire())
        return message

    async def announce(self, content: str, metadata: Optional[Mapping[str, Any]] = None) -> MessageEvent:
        """Record and broadcast a ``system`` notice."""
        message = self._create(MessageKind.SYSTEM, SYSTEM_USERNAME, content, metadata)
        self._history.append(message)
        await self._outbound.emit("message", message.to_wire())
        return message

    # ------------------------------------------------------------------
    # History seeding and shutdown
    # ------------------------------------------------------------------

    def seed(self, events: Iterable[MessageEvent]) -> int:
        ordered = sorted(events, key=lambda event: event.timestamp or self._clock())
        for event in ordered:
            self._history.append(event)
            stamp = event.timestamp
            if stamp is not None and (self._last_stamp is None or stamp > self._last_stamp):
                self._last_stamp = stamp
        return len(ordered)

    async def drain(self) -> None:
        """Wait for outstanding memory-service syncs."""
        await self._tasks.drain()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _active(self, handle: str) -> Optional[Participant]:
        if self.state_of(handle) is not ConnectionState.REGISTERED:
            logger.debug("event from unregistered connection dropped", extra={"handle": handle})
            return None
        return self._registry.lookup(handle)

    def _active_agent(self, handle: str) -> Optional[Agent]:
        if self._active(handle) is None:
            return None
        return self._registry.lookup_agent(handle)

    def _remember_closed(self, handle: str) -> None:
        self._closed[handle] = None
        self._closed.move_to_end(handle)
        while len(self._closed) > self._closed_limit:
            self._closed.popitem(last=False)

    @staticmethod
    def _default_username(handle: str, kind: ParticipantKind) -> str:
        return f"{kind.value}-{handle[:6]}"

    def _stamp(self) -> datetime:
        now = self._clock()
        if self._last_stamp is not None and now < self._last_stamp:
            now = self._last_stamp
        self._last_stamp = now
        return now

    def _create(
        self,
        kind: MessageKind,
        username: str,
        content: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> MessageEvent:
        return create_message(kind, username, content, metadata, timestamp=self._stamp())

    def _agent_notice(self, message: MessageEvent, event_type: str) -> Dict[str, Any]:
        return {
            "eventType": event_type,
            "message": message.to_wire(),
            "context": {
                "totalUsers": self._registry.human_count,
                "totalAgents": self._registry.agent_count,
                "recentHistory": [event.to_wire() for event in self._history.recent(self._agent_context_size)],
            },
        }

    def _agent_recipients(self, *, exclude: Set[str]) -> List[str]:
        return [agent.handle for agent in self._registry.list_agents() if agent.handle not in exclude]

    async def _notify_agents(self, notice: Dict[str, Any], recipients: List[str]) -> None:
        for handle in recipients:
            await self._outbound.emit("agent_event", notice, to=handle)

    def _ingest(self, participant: Participant, message: MessageEvent) -> None:
        if not message.content.strip():
            return
        self._tasks.spawn(
            self._ingest_message(participant.username, message.content),
            name=f"ingest-{message.id}",
        )

    async def _ingest_message(self, peer: str, content: str) -> None:
        try:
            await self._memory.ingest_message(peer, content)
        except Exception as exc:
            logger.warning("memory ingestion failed", extra={"peer": peer, "error": str(exc)})

    async def _sync_peer_added(self, participant: Participant, *, explicit_observe: bool) -> None:
        try:
            if isinstance(participant, Agent):
                await self._memory.register_peer(participant.username, observe_me=False, observe_others=True)
                return
            stored = await self._memory.register_peer(
                participant.username,
                observe_me=participant.observe_me if explicit_observe else None,
            )
        except Exception as exc:
            logger.warning(
                "memory peer registration failed",
                extra={"peer": participant.username, "error": str(exc)},
            )
            return

        # A choice made after registration (toggle_observe) outranks the stored value.
        if not isinstance(participant, Human) or participant.preference_set:
            return
        preference = (stored or {}).get("observe_me")
        if isinstance(preference, bool) and self._registry.lookup_human(participant.handle) is participant:
            participant.observe_me = preference

    async def _sync_peer_removed(self, participant: Participant) -> None:
        try:
            await self._memory.remove_peer(participant.username)
        except Exception as exc:
            logger.warning(
                "memory peer removal failed",
                extra={"peer": participant.username, "error": str(exc)},
            )


__all__ = ["ConnectionState", "DEFAULT_CLOSED_HANDLE_LIMIT", "MessageRouter", "SYSTEM_USERNAME"]
