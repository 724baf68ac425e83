from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


RoomStatus = Literal["waiting", "playing", "ended"]
HistoryStatus = Literal["resolved", "unresolved"]
Outcome = Literal["fixed", "expired", "round_end"]


class WireModel(BaseModel):
    """Base for models that travel to clients with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class Player(WireModel):
    name: str
    joined_at: float


class Bug(WireModel):
    id: str
    code: str
    title: str
    spawned_at: float
    visible_at: Optional[float] = None
    expires_at: Optional[float] = None

    @property
    def is_visible(self) -> bool:
        return self.visible_at is not None


class ResolvedBug(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    code: str
    title: str
    status: HistoryStatus
    outcome: Outcome
    resolved_by: Optional[str] = None
    fixed_code: Optional[str] = None


class ScoreReport(WireModel):
    score: int
    resolved: int
    unresolved: int
    fixes_by_player: Dict[str, int] = Field(default_factory=dict)


class RoomState(WireModel):
    status: RoomStatus = "waiting"
    players: Dict[str, Player] = Field(default_factory=dict)
    time_remaining: int = 0
    progress: float = 0.0
    active_bugs: List[Bug] = Field(default_factory=list)
    bug_history: List[ResolvedBug] = Field(default_factory=list)
    score: int = 100
    total_bugs_spawned: int = 0
    total_bugs_resolved: int = 0
    summary: Optional[ScoreReport] = None

    def find_bug(self, bug_id: Optional[str]) -> Optional[Bug]:
        if not bug_id:
            return None
        for bug in self.active_bugs:
            if bug.id == bug_id:
                return bug
        return None

    def find_visible_bug(self, bug_id: Optional[str]) -> Optional[Bug]:
        bug = self.find_bug(bug_id)
        return bug if bug is not None and bug.is_visible else None

    def visible_bugs(self) -> List[Bug]:
        return [bug for bug in self.active_bugs if bug.is_visible]

    def queued_bugs(self) -> List[Bug]:
        return [bug for bug in self.active_bugs if not bug.is_visible]

    def player_name(self, connection_id: str) -> Optional[str]:
        player = self.players.get(connection_id)
        return player.name if player else None
