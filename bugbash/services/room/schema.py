from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Union

from pydantic import BaseModel, Field

from bugbash.services.bugs.schema import Bug, WireModel
from bugbash.services.spawner.schema import SpawnPolicy
from bugbash.services.submissions.schema import Verdict


class GameConfig(BaseModel):
    duration_s: int = 300
    tick_interval_s: float = 1.0
    max_players: int = Field(default=4, ge=1)
    penalty_per_bug: int = 2
    spawn: SpawnPolicy = Field(default_factory=SpawnPolicy)


class Connection(Protocol):
    id: str

    async def send_text(self, text: str) -> None:
        ...


class ClientMessage(BaseModel):
    type: str
    payload: Optional[Dict[str, Any]] = None


class JoinIn(WireModel):
    name: Optional[str] = None


# ----------------------------------------------------------------------
# Mailbox events
# ----------------------------------------------------------------------
@dataclass
class Connected:
    connection: Connection


@dataclass
class Disconnected:
    connection_id: str


@dataclass
class Inbound:
    connection_id: str
    raw: Union[str, bytes]


@dataclass
class Tick:
    round_no: int


@dataclass
class SpawnDue:
    round_no: int


@dataclass
class BugGenerated:
    round_no: int
    bug: Optional[Bug] = None
    error: Optional[str] = None


@dataclass
class RevealDue:
    round_no: int
    bug_id: str


@dataclass
class ExpiryDue:
    round_no: int
    bug_id: str


@dataclass
class VerdictReady:
    round_no: int
    connection_id: str
    submitted_by: str
    bug_id: str
    candidate: str
    verdict: Optional[Verdict] = None
    error: Optional[str] = None


RoomEvent = Union[
    Connected,
    Disconnected,
    Inbound,
    Tick,
    SpawnDue,
    BugGenerated,
    RevealDue,
    ExpiryDue,
    VerdictReady,
]


@dataclass
class RoomInfo:
    room_id: str
    status: str
    players: int
    connections: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "roomId": self.room_id,
            "status": self.status,
            "players": self.players,
            "connections": self.connections,
        }
