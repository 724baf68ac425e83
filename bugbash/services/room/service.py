from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from pydantic import ValidationError

from bugbash.services.bugs.schema import Player, RoomState
from bugbash.services.bugs.service import flush_active
from bugbash.services.clock.service import GameClock, TimerSet
from bugbash.services.oracle.service import OracleService
from bugbash.services.presence.schema import CodeUpdateIn, CursorPositionIn, EditingIn, PointerIn
from bugbash.services.presence.service import PresenceRelay
from bugbash.services.scoring.service import summarize_round
from bugbash.services.spawner.service import SpawnScheduler
from bugbash.services.submissions.schema import FixResult, FixSubmission, Verdict
from bugbash.services.submissions.service import (
    NOT_FOUND_EXPLANATION,
    SERVICE_ERROR_EXPLANATION,
    STALE_EXPLANATION,
    SubmissionPipeline,
)

from .schema import (
    BugGenerated,
    ClientMessage,
    Connected,
    Connection,
    Disconnected,
    ExpiryDue,
    GameConfig,
    Inbound,
    JoinIn,
    RevealDue,
    RoomEvent,
    RoomInfo,
    SpawnDue,
    Tick,
    VerdictReady,
)

ROOM_FULL_MESSAGE = "Room is full (max {max_players} players)"

MessageHandler = Callable[[str, Dict[str, Any]], Awaitable[None]]


class RoomCoordinator:
    """Single writer of one room's state.

    Every input (socket traffic, timer firings, oracle completions) arrives as
    an event on the mailbox and is handled to completion before the next one.
    Slow oracle calls run as background tasks that post their result back.
    """

    def __init__(
        self,
        room_id: str,
        oracle: OracleService,
        *,
        config: Optional[GameConfig] = None,
        timers: Optional[TimerSet] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.room_id = room_id
        self.config = config or GameConfig()
        self.state = RoomState(time_remaining=self.config.duration_s)
        self._clock = clock
        self._rng = rng or random.Random()
        self._timers = timers or TimerSet()
        self._game_clock = GameClock(self.config.duration_s, interval_s=self.config.tick_interval_s)
        self._spawner = SpawnScheduler(oracle, self.config.spawn, rng=self._rng, clock=clock)
        self._pipeline = SubmissionPipeline(oracle)
        self._presence = PresenceRelay()
        self._connections: Dict[str, Connection] = {}
        self._mailbox: asyncio.Queue[RoomEvent] = asyncio.Queue()
        self._worker: Optional[asyncio.Task[None]] = None
        self._background: Set[asyncio.Task[None]] = set()
        self._round = 0
        self._generating = 0
        self._reveal_ready: Set[str] = set()
        self._logger = logging.getLogger("bugbash.room")
        self._event_handlers = {
            Connected: self._on_connected,
            Disconnected: self._on_disconnected,
            Inbound: self._on_inbound,
            Tick: self._on_tick,
            SpawnDue: self._on_spawn_due,
            BugGenerated: self._on_bug_generated,
            RevealDue: self._on_reveal_due,
            ExpiryDue: self._on_expiry_due,
            VerdictReady: self._on_verdict,
        }
        self._message_handlers: Dict[str, MessageHandler] = {
            "join": self._join,
            "start_game": self._start_game,
            "submit_fix": self._submit_fix,
            "cursor": self._relay_pointer,
            "editing": self._relay_editing,
            "code_update": self._relay_code,
            "cursor_position": self._relay_cursor_position,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.create_task(self._run())

    async def close(self) -> None:
        self._timers.cancel_all()
        tasks = list(self._background)
        if self._worker is not None:
            tasks.append(self._worker)
            self._worker = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._background.clear()
        self._logger.info("Room %s closed", self.room_id)

    def post(self, event: RoomEvent) -> None:
        self._mailbox.put_nowait(event)

    def connect(self, connection: Connection) -> None:
        self.post(Connected(connection))

    def disconnect(self, connection_id: str) -> None:
        self.post(Disconnected(connection_id))

    def receive(self, connection_id: str, raw: str | bytes) -> None:
        self.post(Inbound(connection_id, raw))

    def snapshot(self) -> Dict[str, Any]:
        return self.state.wire()

    def info(self) -> RoomInfo:
        return RoomInfo(
            room_id=self.room_id,
            status=self.state.status,
            players=len(self.state.players),
            connections=len(self._connections),
        )

    async def handle(self, event: RoomEvent) -> None:
        handler = self._event_handlers.get(type(event))
        if handler is None:
            self._logger.warning("Room %s got unknown event %r", self.room_id, event)
            return
        await handler(event)  # type: ignore[operator]

    async def drain(self, *, wait_background: bool = True) -> None:
        """Handle everything queued, optionally waiting for in-flight oracle calls.

        Only meaningful while the worker task is not running.
        """

        while True:
            while not self._mailbox.empty():
                await self.handle(self._mailbox.get_nowait())
            if not wait_background or not self._background:
                return
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------
    async def _run(self) -> None:
        while True:
            event = await self._mailbox.get()
            try:
                await self.handle(event)
            except asyncio.CancelledError:
                raise
            except Exception:
                self._logger.exception("Room %s failed to handle %s", self.room_id, type(event).__name__)

    def _launch(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _is_current(self, round_no: int) -> bool:
        return round_no == self._round and self.state.status == "playing"

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------
    async def _on_connected(self, event: Connected) -> None:
        connection = event.connection
        self._connections[connection.id] = connection
        await self._send(connection.id, {"type": "state", "payload": self.snapshot()})

    async def _on_disconnected(self, event: Disconnected) -> None:
        connection_id = event.connection_id
        self._connections.pop(connection_id, None)
        name = self.state.player_name(connection_id)
        if self._presence.forget_player(connection_id) is not None:
            await self._broadcast({"type": "editing", "payload": {"id": connection_id, "name": name, "bugId": None}})
        if connection_id in self.state.players:
            del self.state.players[connection_id]
            self._logger.info("Room %s: %s left", self.room_id, name)
            await self._broadcast_state()

    async def _on_inbound(self, event: Inbound) -> None:
        try:
            message = ClientMessage.model_validate(json.loads(event.raw))
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError, TypeError):
            self._logger.debug("Room %s dropped malformed message from %s", self.room_id, event.connection_id)
            return
        handler = self._message_handlers.get(message.type)
        if handler is None:
            return
        try:
            await handler(event.connection_id, message.payload or {})
        except ValidationError:
            self._logger.debug(
                "Room %s dropped invalid %s payload from %s", self.room_id, message.type, event.connection_id
            )

    # ------------------------------------------------------------------
    # Lobby and round state machine
    # ------------------------------------------------------------------
    async def _join(self, connection_id: str, payload: Dict[str, Any]) -> None:
        if self.state.status == "ended":
            return
        body = JoinIn.model_validate(payload)
        players = self.state.players
        existing = players.get(connection_id)
        if existing is None and len(players) >= self.config.max_players:
            self._logger.info("Room %s rejected %s: room full", self.room_id, connection_id)
            await self._send(
                connection_id,
                {"type": "error", "payload": ROOM_FULL_MESSAGE.format(max_players=self.config.max_players)},
            )
            return
        if existing is not None:
            existing.name = body.name or existing.name
        else:
            name = body.name or f"Player {len(players) + 1}"
            players[connection_id] = Player(name=name, joined_at=self._clock())
            self._logger.info("Room %s: %s joined (%s/%s)", self.room_id, name, len(players), self.config.max_players)
        await self._broadcast_state()

    async def _start_game(self, connection_id: str, payload: Dict[str, Any]) -> None:
        if self.state.status != "waiting" or connection_id not in self.state.players:
            return
        self._round += 1
        self._generating = 0
        self._reveal_ready.clear()
        self._presence.reset()
        state = self.state
        state.status = "playing"
        state.active_bugs = []
        state.bug_history = []
        state.score = 100
        state.summary = None
        state.total_bugs_spawned = 0
        state.total_bugs_resolved = 0
        self._game_clock.start(state)
        round_no = self._round
        self._timers.schedule("clock", self._game_clock.interval_s, lambda: self.post(Tick(round_no)))
        self._schedule_spawn()
        self._logger.info("Room %s round %s started with %s players", self.room_id, round_no, len(state.players))
        await self._broadcast_state()

    async def _on_tick(self, event: Tick) -> None:
        if not self._is_current(event.round_no):
            return
        if self._game_clock.tick(self.state):
            await self._end_round()
            return
        self._timers.schedule("clock", self._game_clock.interval_s, lambda: self.post(Tick(event.round_no)))
        await self._broadcast_state()

    async def _end_round(self) -> None:
        self._timers.cancel_all()
        state = self.state
        state.status = "ended"
        state.time_remaining = max(0, state.time_remaining)
        flushed = flush_active(state)
        self._reveal_ready.clear()
        self._presence.reset()
        report = summarize_round(state.bug_history, self.config.penalty_per_bug)
        state.score = report.score
        state.summary = report
        state.progress = 100.0
        self._logger.info(
            "Room %s round %s ended: score=%s resolved=%s unresolved=%s (flushed %s)",
            self.room_id,
            self._round,
            report.score,
            report.resolved,
            report.unresolved,
            flushed,
        )
        await self._broadcast_state()

    # ------------------------------------------------------------------
    # Spawning, reveal and expiry
    # ------------------------------------------------------------------
    def _schedule_spawn(self) -> None:
        round_no = self._round
        self._timers.schedule("spawn", self._spawner.next_delay(), lambda: self.post(SpawnDue(round_no)))

    async def _on_spawn_due(self, event: SpawnDue) -> None:
        if not self._is_current(event.round_no):
            return
        if not self._spawner.has_capacity(self.state, self._generating):
            self._schedule_spawn()
            return
        topic = self._spawner.pick_topic()
        self._generating += 1
        self._launch(self._generate(event.round_no, topic))

    async def _generate(self, round_no: int, topic: str) -> None:
        try:
            bug = await self._spawner.generate(topic)
        except Exception as exc:
            self._logger.exception("Room %s bug generation failed for %r", self.room_id, topic)
            self.post(BugGenerated(round_no, error=str(exc) or type(exc).__name__))
            return
        self.post(BugGenerated(round_no, bug=bug))

    async def _on_bug_generated(self, event: BugGenerated) -> None:
        if event.round_no != self._round:
            return
        self._generating = max(0, self._generating - 1)
        if self.state.status != "playing":
            return
        self._schedule_spawn()
        if event.bug is None:
            return
        bug = event.bug
        delay = self._spawner.admit(self.state, bug)
        self._timers.schedule(
            f"reveal:{bug.id}", delay, lambda: self.post(RevealDue(event.round_no, bug.id))
        )
        self._logger.info("Room %s spawned %s (%s), reveal in %.1fs", self.room_id, bug.id, bug.title, delay)
        await self._broadcast_state()

    async def _on_reveal_due(self, event: RevealDue) -> None:
        if not self._is_current(event.round_no):
            return
        self._reveal_ready.add(event.bug_id)
        if self._promote_ready():
            await self._broadcast_state()

    def _promote_ready(self) -> bool:
        promoted = False
        for bug in self.state.queued_bugs():
            if bug.id not in self._reveal_ready:
                continue
            if not self._spawner.can_reveal(self.state):
                break
            self._spawner.promote(self.state, bug.id)
            self._reveal_ready.discard(bug.id)
            self._timers.schedule(
                f"expire:{bug.id}",
                self.config.spawn.bug_timeout_s,
                lambda r=self._round, b=bug.id: self.post(ExpiryDue(r, b)),
            )
            self._logger.info("Room %s revealed %s", self.room_id, bug.id)
            promoted = True
        return promoted

    async def _on_expiry_due(self, event: ExpiryDue) -> None:
        if not self._is_current(event.round_no):
            return
        entry = self._spawner.expire(self.state, event.bug_id)
        if entry is None:
            return
        self._presence.forget_bug(event.bug_id)
        self._promote_ready()
        self._logger.info("Room %s: %s expired unresolved", self.room_id, event.bug_id)
        await self._broadcast_state()

    # ------------------------------------------------------------------
    # Fix submissions
    # ------------------------------------------------------------------
    async def _submit_fix(self, connection_id: str, payload: Dict[str, Any]) -> None:
        if self.state.status != "playing":
            return
        submission = FixSubmission.model_validate(payload)
        submitted_by = self.state.player_name(connection_id) or connection_id
        bug = self._pipeline.locate(self.state, submission.bug_id)
        if bug is None:
            result = FixResult(
                bug_id=submission.bug_id,
                fixed=False,
                explanation=NOT_FOUND_EXPLANATION,
                submitted_by=submitted_by,
            )
            await self._send(connection_id, {"type": "fix_result", "payload": result.wire()})
            return
        self._launch(
            self._validate(self._round, connection_id, submitted_by, bug.id, bug.code, submission.code)
        )

    async def _validate(
        self,
        round_no: int,
        connection_id: str,
        submitted_by: str,
        bug_id: str,
        original: str,
        candidate: str,
    ) -> None:
        event = VerdictReady(round_no, connection_id, submitted_by, bug_id, candidate)
        try:
            event.verdict = await self._pipeline.judge(original, candidate)
        except Exception as exc:
            self._logger.exception("Room %s validation failed for %s", self.room_id, bug_id)
            event.error = str(exc) or type(exc).__name__
        self.post(event)

    async def _on_verdict(self, event: VerdictReady) -> None:
        if event.verdict is None:
            result = FixResult(
                bug_id=event.bug_id,
                fixed=False,
                explanation=SERVICE_ERROR_EXPLANATION,
                submitted_by=event.submitted_by,
            )
            await self._send(event.connection_id, {"type": "fix_result", "payload": result.wire()})
            return
        verdict: Verdict = event.verdict
        outcome = "stale"
        if event.round_no == self._round:
            outcome = self._pipeline.apply(
                self.state,
                event.bug_id,
                verdict,
                submitted_by=event.submitted_by,
                candidate=event.candidate,
            )
        if outcome == "stale":
            verdict = Verdict(fixed=False, explanation=STALE_EXPLANATION)
        result = FixResult(
            bug_id=event.bug_id,
            fixed=verdict.fixed,
            explanation=verdict.explanation,
            submitted_by=event.submitted_by,
        )
        await self._broadcast({"type": "fix_result", "payload": result.wire()})
        if outcome != "applied":
            return
        self._timers.cancel(f"expire:{event.bug_id}")
        self._timers.cancel(f"reveal:{event.bug_id}")
        self._reveal_ready.discard(event.bug_id)
        self._presence.forget_bug(event.bug_id)
        self._promote_ready()
        self._logger.info("Room %s: %s fixed by %s", self.room_id, event.bug_id, event.submitted_by)
        await self._broadcast_state()

    # ------------------------------------------------------------------
    # Presence relay
    # ------------------------------------------------------------------
    async def _relay_pointer(self, connection_id: str, payload: Dict[str, Any]) -> None:
        pointer = PointerIn.model_validate(payload)
        relay = {"id": connection_id, "name": self.state.player_name(connection_id), "x": pointer.x, "y": pointer.y}
        await self._broadcast({"type": "cursor", "payload": relay}, exclude=connection_id)

    async def _relay_editing(self, connection_id: str, payload: Dict[str, Any]) -> None:
        body = EditingIn.model_validate(payload)
        if body.bug_id is not None and self.state.find_visible_bug(body.bug_id) is None:
            return
        name = self.state.player_name(connection_id)
        relay = self._presence.set_focus(connection_id, name, body.bug_id)
        await self._broadcast({"type": "editing", "payload": relay})
        buffer = self._presence.buffer(body.bug_id) if body.bug_id else None
        if buffer is not None and buffer.id != connection_id:
            await self._send(connection_id, {"type": "code_update", "payload": buffer.wire()})

    async def _relay_code(self, connection_id: str, payload: Dict[str, Any]) -> None:
        body = CodeUpdateIn.model_validate(payload)
        if self.state.find_visible_bug(body.bug_id) is None:
            return
        relay = self._presence.update_code(connection_id, self.state.player_name(connection_id), body.bug_id, body.code)
        await self._broadcast({"type": "code_update", "payload": relay}, exclude=connection_id)

    async def _relay_cursor_position(self, connection_id: str, payload: Dict[str, Any]) -> None:
        body = CursorPositionIn.model_validate(payload)
        if self.state.find_visible_bug(body.bug_id) is None:
            return
        relay = self._presence.move_cursor(
            connection_id,
            self.state.player_name(connection_id),
            body.bug_id,
            body.line,
            body.column,
        )
        await self._broadcast({"type": "cursor_position", "payload": relay}, exclude=connection_id)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------
    async def _broadcast_state(self) -> None:
        await self._broadcast({"type": "state", "payload": self.snapshot()})

    async def _broadcast(self, message: Dict[str, Any], *, exclude: Optional[str] = None) -> None:
        receivers = [conn for cid, conn in self._connections.items() if cid != exclude]
        if not receivers:
            return
        text = json.dumps(message)
        results = await asyncio.gather(*(conn.send_text(text) for conn in receivers), return_exceptions=True)
        for conn, result in zip(receivers, results):
            if isinstance(result, Exception):
                self._logger.debug("Room %s send to %s failed: %s", self.room_id, conn.id, result)

    async def _send(self, connection_id: str, message: Dict[str, Any]) -> None:
        connection = self._connections.get(connection_id)
        if connection is None:
            return
        try:
            await connection.send_text(json.dumps(message))
        except Exception as exc:
            self._logger.debug("Room %s send to %s failed: %s", self.room_id, connection_id, exc)
