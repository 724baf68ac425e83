"""Per-room session coordinator and the registry that owns rooms."""

from .registry import RoomRegistry, normalize_room_id
from .schema import ClientMessage, Connection, GameConfig, RoomInfo
from .service import RoomCoordinator

__all__ = [
    "ClientMessage",
    "Connection",
    "GameConfig",
    "RoomCoordinator",
    "RoomInfo",
    "RoomRegistry",
    "normalize_room_id",
]
