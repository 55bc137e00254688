from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from chathub.config import Settings
from chathub.services import SessionHub


class FakeMemoryService:
    """In-memory stand-in for the memory service that records every call."""

    def __init__(self, session_id: str = "test-session") -> None:
        self.session_id = session_id
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.ingested: List[Tuple[str, str]] = []
        self.stored_configs: Dict[str, Dict[str, Any]] = {}
        self.peer_configs: Dict[str, Dict[str, Any]] = {}
        self.session_peers: Set[str] = set()
        self.messages: List[Dict[str, Any]] = []

        self.summary_text: Optional[str] = "Ann greeted everyone and the group discussed the weather."
        self.summary_error: Optional[Exception] = None
        self.summary_gate: Optional[asyncio.Event] = None
        self.summary_calls = 0

        self.answers: Dict[Tuple[str, Optional[str]], str] = {}
        self.default_answer = ""
        self.failing_peers: Set[str] = set()
        self.failing_targets: Set[Tuple[str, str]] = set()

        self.register_gate: Optional[asyncio.Event] = None

        self.fail_ingest = False
        self.fail_register = False
        self.fail_config = False
        self.fail_session = False

    async def open_session(self) -> None:
        self.calls.append(("open_session", ()))
        if self.fail_session:
            raise RuntimeError("memory service offline")

    async def register_peer(
        self,
        peer: str,
        *,
        observe_me: Optional[bool] = None,
        observe_others: bool = False,
    ) -> Dict[str, Any]:
        self.calls.append(("register_peer", (peer, observe_me, observe_others)))
        if self.register_gate is not None:
            await self.register_gate.wait()
        if self.fail_register:
            raise RuntimeError("memory service offline")
        self.session_peers.add(peer)
        return dict(self.stored_configs.get(peer, {}))

    async def remove_peer(self, peer: str) -> None:
        self.calls.append(("remove_peer", (peer,)))
        self.session_peers.discard(peer)

    async def set_peer_config(self, peer: str, *, observe_me: bool, observe_others: bool = False) -> None:
        self.calls.append(("set_peer_config", (peer, observe_me, observe_others)))
        if self.fail_config:
            raise RuntimeError("memory service offline")
        self.peer_configs[peer] = {"observe_me": observe_me, "observe_others": observe_others}

    async def ingest_message(self, peer: str, content: str) -> None:
        self.calls.append(("ingest_message", (peer, content)))
        if self.fail_ingest:
            raise RuntimeError("memory service offline")
        self.ingested.append((peer, content))

    async def get_summary(self, *, tokens: int) -> Optional[str]:
        self.calls.append(("get_summary", (tokens,)))
        self.summary_calls += 1
        if self.summary_gate is not None:
            await self.summary_gate.wait()
        if self.summary_error is not None:
            raise self.summary_error
        return self.summary_text

    async def ask_peer(self, peer: str, question: str, *, target: Optional[str] = None) -> str:
        self.calls.append(("ask_peer", (peer, question, target)))
        if peer in self.failing_peers:
            raise RuntimeError(f"no memory for {peer}")
        if target is not None and (peer, target) in self.failing_targets:
            raise RuntimeError(f"no relationship {peer}->{target}")
        return self.answers.get((peer, target), self.default_answer)

    async def list_messages(self) -> List[Dict[str, Any]]:
        self.calls.append(("list_messages", ()))
        return list(self.messages)

    def called(self, name: str) -> List[Tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]


@dataclass
class Emission:
    event: str
    data: Any
    to: Optional[str]
    skip_sid: Optional[str]

    def reaches(self, handle: str) -> bool:
        if self.to is not None:
            return self.to == handle
        return self.skip_sid != handle


class RecordingOutbound:
    """Outbound channel that records emissions instead of sending them."""

    def __init__(self) -> None:
        self.emissions: List[Emission] = []

    async def emit(
        self,
        event: str,
        data: Any = None,
        to: Optional[str] = None,
        skip_sid: Optional[str] = None,
    ) -> None:
        self.emissions.append(Emission(event=event, data=data, to=to, skip_sid=skip_sid))

    def received(self, handle: str, event: Optional[str] = None) -> List[Any]:
        return [
            emission.data
            for emission in self.emissions
            if emission.reaches(handle) and (event is None or emission.event == event)
        ]

    def of(self, event: str) -> List[Emission]:
        return [emission for emission in self.emissions if emission.event == event]

    def clear(self) -> None:
        self.emissions.clear()


@pytest.fixture
def memory() -> FakeMemoryService:
    return FakeMemoryService()


@pytest.fixture
def outbound() -> RecordingOutbound:
    return RecordingOutbound()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        session_id=None,
        summary_refresh_on_chat=False,
        summary_initial_delay_seconds=3600,
        summary_refresh_interval_seconds=3600,
    )


@pytest.fixture
def hub(memory: FakeMemoryService, outbound: RecordingOutbound, settings: Settings) -> SessionHub:
    return SessionHub(memory, outbound, settings)
