"""Bug lifecycle models and transitions."""

from .schema import Bug, Player, ResolvedBug, RoomState, ScoreReport, WireModel
from .service import derive_title, flush_active, make_bug, new_bug_id, retire, reveal

__all__ = [
    "Bug",
    "Player",
    "ResolvedBug",
    "RoomState",
    "ScoreReport",
    "WireModel",
    "derive_title",
    "flush_active",
    "make_bug",
    "new_bug_id",
    "retire",
    "reveal",
]
