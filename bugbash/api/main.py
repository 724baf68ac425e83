from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic_settings import BaseSettings, SettingsConfigDict

from bugbash.services.oracle import OracleService
from bugbash.services.room import GameConfig, RoomCoordinator, RoomRegistry
from bugbash.services.spawner import SpawnPolicy


load_dotenv()
logger = logging.getLogger("bugbash.api")


class Settings(BaseSettings):
    ORACLE_API_KEY: str | None = None
    ORACLE_BASE_URL: str = "https://api.anthropic.com/v1"
    ORACLE_MODEL_ID: str = "claude-sonnet-4-20250514"
    ORACLE_USE_MOCK: bool = True
    ORACLE_MAX_TOKENS: int = 2048
    ORACLE_TIMEOUT_S: float = 30.0
    GAME_DURATION_S: int = 300
    MAX_PLAYERS: int = 4
    MAX_ACTIVE_BUGS: int = 2
    MAX_VISIBLE_BUGS: int = 2
    MIN_SPAWN_INTERVAL_S: int = 10
    MAX_SPAWN_INTERVAL_S: int = 20
    REVEAL_DELAY_S: float = 3.0
    BUG_TIMEOUT_S: float = 60.0
    PENALTY_PER_BUG: int = 2
    ROOM_IDLE_TIMEOUT_S: float = 60.0
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    def game_config(self) -> GameConfig:
        return GameConfig(
            duration_s=self.GAME_DURATION_S,
            max_players=self.MAX_PLAYERS,
            penalty_per_bug=self.PENALTY_PER_BUG,
            spawn=SpawnPolicy(
                min_interval_s=self.MIN_SPAWN_INTERVAL_S,
                max_interval_s=self.MAX_SPAWN_INTERVAL_S,
                max_active_bugs=self.MAX_ACTIVE_BUGS,
                max_visible_bugs=self.MAX_VISIBLE_BUGS,
                reveal_delay_s=self.REVEAL_DELAY_S,
                bug_timeout_s=self.BUG_TIMEOUT_S,
            ),
        )


settings = Settings()
logging.basicConfig(level=settings.LOG_LEVEL.upper())

oracle_service = OracleService(
    api_key=settings.ORACLE_API_KEY,
    base_url=settings.ORACLE_BASE_URL,
    model_id=settings.ORACLE_MODEL_ID,
    use_mock=settings.ORACLE_USE_MOCK,
    max_tokens=settings.ORACLE_MAX_TOKENS,
    timeout_s=settings.ORACLE_TIMEOUT_S,
)
game_config = settings.game_config()


def build_room(room_id: str) -> RoomCoordinator:
    return RoomCoordinator(room_id, oracle_service, config=game_config)


registry = RoomRegistry(build_room, idle_timeout_s=settings.ROOM_IDLE_TIMEOUT_S)


class WebSocketConnection:
    """Adapts a FastAPI socket to the room's ``Connection`` protocol."""

    def __init__(self, ws: WebSocket) -> None:
        self.id = uuid.uuid4().hex[:12]
        self._ws = ws

    async def send_text(self, text: str) -> None:
        await self._ws.send_text(text)


def get_registry() -> RoomRegistry:
    return registry


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    await oracle_service.start()
    logger.info(
        "Oracle ready (mock=%s, model=%s); rounds last %ss",
        oracle_service.use_mock,
        oracle_service.model_id,
        game_config.duration_s,
    )
    try:
        yield
    finally:
        await registry.close_all()
        await oracle_service.close()


app = FastAPI(title="Bug Bash Room Server", lifespan=lifespan)


@app.get("/healthz", response_class=JSONResponse)
async def healthz() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/rooms")
async def list_rooms(rooms: RoomRegistry = Depends(get_registry)) -> List[Dict[str, Any]]:
    return [room.info().as_dict() for room in rooms.rooms()]


@app.get("/rooms/{room_id}")
async def room_state(room_id: str, rooms: RoomRegistry = Depends(get_registry)) -> Dict[str, Any]:
    room = rooms.get(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail=f"Room {room_id} not found")
    return room.snapshot()


@app.websocket("/ws/{room_id}")
async def room_socket(room_id: str, ws: WebSocket, rooms: RoomRegistry = Depends(get_registry)) -> None:
    await ws.accept()
    connection = WebSocketConnection(ws)
    room = await rooms.acquire(room_id)
    room.connect(connection)
    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
            frame = message.get("text")
            if frame is None:
                frame = message.get("bytes")
            if frame is not None:
                room.receive(connection.id, frame)
    except WebSocketDisconnect:
        pass
    finally:
        room.disconnect(connection.id)
        await rooms.release(room_id)
