from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from .service import RoomCoordinator

RoomFactory = Callable[[str], RoomCoordinator]


def normalize_room_id(room_id: str) -> str:
    return room_id.strip().upper()


class RoomRegistry:
    """Owns every live room; creates on first reference, tears down when idle."""

    def __init__(self, factory: RoomFactory, *, idle_timeout_s: float = 60.0) -> None:
        self._factory = factory
        self._idle_timeout_s = max(0.0, idle_timeout_s)
        self._rooms: Dict[str, RoomCoordinator] = {}
        self._refs: Dict[str, int] = {}
        self._teardowns: Dict[str, asyncio.Task[None]] = {}
        self._lock = asyncio.Lock()
        self._logger = logging.getLogger("bugbash.registry")

    async def acquire(self, room_id: str) -> RoomCoordinator:
        key = normalize_room_id(room_id)
        async with self._lock:
            pending = self._teardowns.pop(key, None)
            if pending is not None:
                pending.cancel()
            room = self._rooms.get(key)
            if room is None:
                room = self._factory(key)
                room.start()
                self._rooms[key] = room
                self._logger.info("Created room %s", key)
            self._refs[key] = self._refs.get(key, 0) + 1
            return room

    async def release(self, room_id: str) -> None:
        key = normalize_room_id(room_id)
        async with self._lock:
            if key not in self._rooms:
                return
            remaining = max(0, self._refs.get(key, 0) - 1)
            self._refs[key] = remaining
            if remaining or key in self._teardowns:
                return
            self._teardowns[key] = asyncio.create_task(self._teardown_later(key))

    def get(self, room_id: str) -> Optional[RoomCoordinator]:
        return self._rooms.get(normalize_room_id(room_id))

    def rooms(self) -> List[RoomCoordinator]:
        return list(self._rooms.values())

    async def close_all(self) -> None:
        async with self._lock:
            for task in self._teardowns.values():
                task.cancel()
            self._teardowns.clear()
            rooms = list(self._rooms.values())
            self._rooms.clear()
            self._refs.clear()
        for room in rooms:
            await room.close()

    async def _teardown_later(self, key: str) -> None:
        if self._idle_timeout_s:
            await asyncio.sleep(self._idle_timeout_s)
        async with self._lock:
            self._teardowns.pop(key, None)
            if self._refs.get(key, 0) > 0:
                return
            room = self._rooms.pop(key, None)
            self._refs.pop(key, None)
        if room is not None:
            await room.close()
            self._logger.info("Tore down idle room %s", key)
