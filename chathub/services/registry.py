"""In-memory registry of connected humans and agents keyed by connection handle."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Union

from ..models import Agent, Human, Participant, ParticipantKind


class DuplicateRegistration(RuntimeError):
    """Raised when a connection handle is registered twice without removal."""

    def __init__(self, handle: str) -> None:
        super().__init__(f"Connection {handle!r} is already registered")
        self.handle = handle


class IdentityRegistry:
    """Tracks who is present. Holds at most one participant per handle."""

    def __init__(self) -> None:
        self._humans: Dict[str, Human] = {}
        self._agents: Dict[str, Agent] = {}

    def register(
        self,
        handle: str,
        kind: Union[ParticipantKind, str],
        username: str,
        *,
        observe_me: bool = True,
        capabilities: Iterable[str] = (),
    ) -> Participant:
        if handle in self:
            raise DuplicateRegistration(handle)

        participant: Participant
        if ParticipantKind(kind) is ParticipantKind.AGENT:
            participant = Agent(handle=handle, username=username, capabilities=tuple(capabilities))
            self._agents[handle] = participant
        else:
            participant = Human(handle=handle, username=username, observe_me=observe_me)
            self._humans[handle] = participant
        return participant

    def lookup(self, handle: str) -> Optional[Participant]:
        return self._humans.get(handle) or self._agents.get(handle)

    def lookup_human(self, handle: str) -> Optional[Human]:
        return self._humans.get(handle)

    def lookup_agent(self, handle: str) -> Optional[Agent]:
        return self._agents.get(handle)

    def remove(self, handle: str) -> Optional[Participant]:
        return self._humans.pop(handle, None) or self._agents.pop(handle, None)

    def list_humans(self) -> List[Human]:
        return list(self._humans.values())

    def list_agents(self) -> List[Agent]:
        return list(self._agents.values())

    def list_all(self) -> List[Participant]:
        return [*self._humans.values(), *self._agents.values()]

    @property
    def human_count(self) -> int:
        return len(self._humans)

    @property
    def agent_count(self) -> int:
        return len(self._agents)

    def __contains__(self, handle: object) -> bool:
        return handle in self._humans or handle in self._agents

    def __len__(self) -> int:
        return len(self._humans) + len(self._agents)


__all__ = ["DuplicateRegistration", "IdentityRegistry"]
