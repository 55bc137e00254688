from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Tuple


class ParticipantKind(str, Enum):
    HUMAN = "human"
    AGENT = "agent"


@dataclass
class Participant:
    """A registered connection. ``handle`` addresses its outbound channel."""

    handle: str
    username: str

    kind: ClassVar[ParticipantKind]

    def snapshot(self) -> Dict[str, Any]:
        return {"id": self.handle, "username": self.username, "type": self.kind.value}


@dataclass
class Human(Participant):
    observe_me: bool = True
    # Set once the participant chose a preference in this session (register payload or toggle).
    preference_set: bool = field(default=False, compare=False)

    kind: ClassVar[ParticipantKind] = ParticipantKind.HUMAN

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data["observe_me"] = self.observe_me
        return data


@dataclass
class Agent(Participant):
    capabilities: Tuple[str, ...] = ()

    kind: ClassVar[ParticipantKind] = ParticipantKind.AGENT

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data["capabilities"] = list(self.capabilities)
        return data


__all__ = ["Agent", "Human", "Participant", "ParticipantKind"]
