"""Session hub: owns the session state and exposes the client event surface."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..config import Settings, get_settings
from ..logging_config import logger
from ..memory_client import MemoryService
from ..models import (
    SYSTEM_KINDS,
    AgentDataPayload,
    AgentResponsePayload,
    ChatPayload,
    DialecticPayload,
    HistoryQuery,
    MessageEvent,
    MessageKind,
    RegisterPayload,
)
from ..utils.ids import generate_id
from ..utils.timestamps import UTC, isoformat, parse_timestamp, utc_now
from .history import HistoryBuffer
from .insights import InsightFanout
from .outbound import Outbound
from .registry import IdentityRegistry
from .router import MessageRouter
from .summary import SummaryCache, SummaryRefresher

NO_DIALECTIC_RESPONSE = "No response from agent"

PayloadT = TypeVar("PayloadT", bound=BaseModel)
Payload = Optional[Mapping[str, Any]]


def _as_dict(data: Any) -> Dict[str, Any]:
    return dict(data) if isinstance(data, Mapping) else {}


def _invalid(exc: ValidationError) -> Dict[str, Any]:
    return {
        "error": "Invalid request",
        "detail": exc.errors(include_url=False, include_context=False, include_input=False),
    }


class SessionHub:
    """Composition root for one shared conversation room.

    Fire-and-forget events (``register``, ``chat``, ``agent_data``,
    ``agent_response``, ``disconnect``) return nothing to the client. Request
    events return the callback payload: a result or ``{"error": ...}``.
    """

    def __init__(
        self,
        memory: MemoryService,
        outbound: Outbound,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.memory = memory
        self.registry = IdentityRegistry()
        self.history = HistoryBuffer(self.settings.history_capacity)
        self.summary = SummaryCache(
            memory,
            self.history,
            token_budget=self.settings.summary_token_budget,
            short_length=self.settings.summary_short_length,
        )
        self.refresher = SummaryRefresher(
            self.summary,
            outbound,
            initial_delay_seconds=self.settings.summary_initial_delay_seconds,
            interval_seconds=self.settings.summary_refresh_interval_seconds,
        )
        self.router = MessageRouter(
            self.registry,
            self.history,
            memory,
            outbound,
            snapshot_size=self.settings.history_snapshot_size,
            agent_context_size=self.settings.agent_context_size,
            on_chat=self.refresher.trigger if self.settings.summary_refresh_on_chat else None,
            closed_handle_limit=self.settings.closed_connection_limit,
        )
        self.insights = InsightFanout(
            self.registry,
            self.history,
            memory,
            topic_limit=self.settings.knowledge_topic_limit,
            recent_window=timedelta(seconds=self.settings.knowledge_recent_window_seconds),
            description_length=self.settings.relationship_description_length,
        )

    @property
    def session_id(self) -> str:
        return self.memory.session_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        try:
            await self.memory.open_session()
            logger.info("memory session ready", extra={"session_id": self.session_id})
        except Exception as exc:
            logger.error("memory session setup failed", extra={"session_id": self.session_id, "error": str(exc)})

        if self.settings.session_provided:
            await self._load_existing_messages()

        await self.refresher.start()

    async def stop(self) -> None:
        await self.refresher.stop()
        await self.router.drain()

    async def _load_existing_messages(self) -> None:
        try:
            records = await self.memory.list_messages()
        except Exception as exc:
            logger.error("loading session messages failed", extra={"session_id": self.session_id, "error": str(exc)})
            return

        events: List[MessageEvent] = []
        for record in records:
            created_at = parse_timestamp(record.get("created_at")) or utc_now()
            events.append(
                MessageEvent(
                    id=str(record.get("id") or generate_id()),
                    kind=MessageKind.CHAT,
                    username=str(record.get("peer_id") or "unknown"),
                    content=str(record.get("content") or ""),
                    metadata={"timestamp": isoformat(created_at), "loadedFromSession": True},
                )
            )
        loaded = self.router.seed(events)
        logger.info("loaded session messages", extra={"session_id": self.session_id, "count": loaded})

    # ------------------------------------------------------------------
    # Fire-and-forget events
    # ------------------------------------------------------------------

    def connect(self, handle: str) -> None:
        self.router.connect(handle)

    async def register(self, handle: str, data: Payload) -> None:
        payload = self._parse_event(RegisterPayload, data, "register")
        if payload is not None:
            await self.router.register(handle, payload)

    async def chat(self, handle: str, data: Payload) -> None:
        payload = self._parse_event(ChatPayload, data, "chat")
        if payload is not None:
            await self.router.chat(handle, payload)

    async def agent_data(self, handle: str, data: Payload) -> None:
        payload = self._parse_event(AgentDataPayload, data, "agent_data")
        if payload is not None:
            await self.router.agent_data(handle, payload)

    async def agent_response(self, handle: str, data: Payload) -> None:
        payload = self._parse_event(AgentResponsePayload, data, "agent_response")
        if payload is not None:
            await self.router.agent_response(handle, payload)

    async def disconnect(self, handle: str) -> None:
        await self.router.disconnect(handle)

    # ------------------------------------------------------------------
    # Request/response events
    # ------------------------------------------------------------------

    def get_history(self, data: Payload = None) -> Dict[str, Any]:
        try:
            query = HistoryQuery.model_validate(_as_dict(data))
        except ValidationError as exc:
            return _invalid(exc)

        limit = query.limit or self.settings.history_default_limit
        since = query.since
        if since is not None and since.tzinfo is None:
            since = since.replace(tzinfo=UTC)

        def _matches(event: MessageEvent) -> bool:
            if event.kind in SYSTEM_KINDS:
                return False
            if query.message_type is not None and event.kind is not query.message_type:
                return False
            if since is not None:
                stamp = event.timestamp
                if stamp is None or stamp <= since:
                    return False
            return True

        matching = self.history.filter(_matches)
        return {
            "history": [event.to_wire() for event in matching[-limit:]],
            "total": len(matching),
        }

    def get_users(self) -> Dict[str, Any]:
        return {
            "users": [human.snapshot() for human in self.registry.list_humans()],
            "agents": [agent.snapshot() for agent in self.registry.list_agents()],
        }

    async def dialectic(self, data: Payload) -> Union[str, Dict[str, Any]]:
        try:
            payload = DialecticPayload.model_validate(_as_dict(data))
        except ValidationError as exc:
            return _invalid(exc)

        try:
            answer = await self.memory.ask_peer(payload.user, payload.query)
        except Exception as exc:
            logger.warning("dialectic query failed", extra={"peer": payload.user, "error": str(exc)})
            return {"error": f"Memory service unavailable: {exc}"}
        return answer or NO_DIALECTIC_RESPONSE

    async def toggle_observe(self, handle: str) -> Dict[str, Any]:
        human = self.registry.lookup_human(handle)
        if human is None:
            return {"error": "User not found"}

        new_status = not human.observe_me
        human.observe_me = new_status
        human.preference_set = True
        try:
            await self.memory.set_peer_config(human.username, observe_me=new_status, observe_others=False)
        except Exception as exc:
            logger.warning(
                "observation preference sync failed",
                extra={"peer": human.username, "error": str(exc)},
            )
            return {"error": f"Failed to update observation status: {exc}"}

        verb = "enabled" if new_status else "disabled"
        await self.router.announce(
            f"{human.username} {verb} observation",
            {"userId": handle, "observeStatus": new_status},
        )
        logger.info("observation toggled", extra={"peer": human.username, "observe_me": new_status})
        return {"success": True, "observe_me": new_status, "message": f"Observation {verb}"}

    async def get_session_summary(self) -> Dict[str, Any]:
        if self.summary.current is None:
            await self.summary.refresh()
        return self.summary.snapshot().model_dump(mode="json", by_alias=True)

    async def get_peer_knowledge(self) -> List[Dict[str, Any]]:
        knowledge = await self.insights.get_knowledge()
        return [entry.model_dump(mode="json", by_alias=True) for entry in knowledge]

    async def get_peer_relationships(self) -> List[Dict[str, Any]]:
        relationships = await self.insights.get_relationships()
        return [entry.model_dump(mode="json", by_alias=True) for entry in relationships]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_event(model: Type[PayloadT], data: Payload, event: str) -> Optional[PayloadT]:
        if data is not None and not isinstance(data, Mapping):
            logger.debug("non-object event payload dropped", extra={"event": event})
            return None
        try:
            return model.model_validate(_as_dict(data))
        except ValidationError as exc:
            logger.debug("invalid event payload dropped", extra={"event": event, "error": str(exc)})
            return None


__all__ = ["NO_DIALECTIC_RESPONSE", "SessionHub"]
