import json
import random
from typing import Any, Dict, Optional

import pytest

from bugbash.services.room import GameConfig, RoomCoordinator
from bugbash.services.spawner import SpawnPolicy

from fakes import FakeClock, FakeConnection, FakeOracle, ManualTimers


class RoomHarness:
    """Drives a RoomCoordinator by hand: no worker task, no wall-clock sleeps."""

    def __init__(self, room: RoomCoordinator, timers: ManualTimers, clock: FakeClock, oracle: FakeOracle) -> None:
        self.room = room
        self.timers = timers
        self.clock = clock
        self.oracle = oracle

    @property
    def state(self):
        return self.room.state

    async def connect(self, connection_id: str) -> FakeConnection:
        conn = FakeConnection(connection_id)
        self.room.connect(conn)
        await self.room.drain()
        return conn

    async def send(self, conn: FakeConnection, msg_type: str, payload: Optional[Dict[str, Any]] = None) -> None:
        message: Dict[str, Any] = {"type": msg_type}
        if payload is not None:
            message["payload"] = payload
        self.room.receive(conn.id, json.dumps(message))
        await self.room.drain()

    async def send_without_waiting(
        self, conn: FakeConnection, msg_type: str, payload: Optional[Dict[str, Any]] = None
    ) -> None:
        """Like :meth:`send` but leaves oracle calls in flight."""

        message: Dict[str, Any] = {"type": msg_type}
        if payload is not None:
            message["payload"] = payload
        self.room.receive(conn.id, json.dumps(message))
        await self.room.drain(wait_background=False)

    async def join(self, connection_id: str, name: Optional[str] = None) -> FakeConnection:
        conn = await self.connect(connection_id)
        await self.send(conn, "join", {"name": name} if name else {})
        return conn

    async def fire(self, key: str) -> None:
        self.timers.fire(key)
        await self.room.drain()

    async def tick(self, seconds: int = 1, *, wait_background: bool = True) -> None:
        for _ in range(seconds):
            if "clock" not in self.timers.armed:
                return
            self.clock.advance(1)
            self.timers.fire("clock")
            await self.room.drain(wait_background=wait_background)

    async def spawn(self) -> Optional[str]:
        """Fire the spawn timer; returns the id of the bug it queued, if any."""

        before = {bug.id for bug in self.state.active_bugs}
        await self.fire("spawn")
        created = [bug.id for bug in self.state.active_bugs if bug.id not in before]
        return created[0] if created else None

    async def reveal(self, bug_id: str) -> None:
        await self.fire(f"reveal:{bug_id}")

    async def spawn_visible(self) -> str:
        bug_id = await self.spawn()
        assert bug_id is not None
        await self.reveal(bug_id)
        return bug_id


@pytest.fixture()
def game_config() -> GameConfig:
    return GameConfig(duration_s=300, spawn=SpawnPolicy())


@pytest.fixture()
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture()
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def harness(game_config, oracle, timers, clock) -> RoomHarness:
    room = RoomCoordinator(
        "TEST",
        oracle,  # type: ignore[arg-type]
        config=game_config,
        timers=timers,  # type: ignore[arg-type]
        clock=clock,
        rng=random.Random(1234),
    )
    return RoomHarness(room, timers, clock, oracle)
