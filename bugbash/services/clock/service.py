from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from bugbash.services.bugs.schema import RoomState

TimerCallback = Callable[[], None]


class GameClock:
    """Round countdown; one call to :meth:`tick` per elapsed second."""

    def __init__(self, duration_s: int, *, interval_s: float = 1.0) -> None:
        if duration_s <= 0:
            raise ValueError("round duration must be positive")
        self.duration_s = duration_s
        self.interval_s = interval_s

    def start(self, state: RoomState) -> None:
        state.time_remaining = self.duration_s
        state.progress = 0.0

    def tick(self, state: RoomState) -> bool:
        """Advance one second. Returns ``True`` once the round is over."""

        state.time_remaining -= 1
        state.progress = self.progress(state.time_remaining)
        return state.time_remaining <= 0

    def progress(self, time_remaining: int) -> float:
        elapsed = self.duration_s - time_remaining
        return max(0.0, min(100.0, 100.0 * elapsed / self.duration_s))


class TimerSet:
    """Keyed ``call_later`` handles scoped to one room.

    Callbacks are expected to do nothing but enqueue an event; scheduling a
    key that is already armed replaces the old handle.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._handles: Dict[str, asyncio.TimerHandle] = {}
        self._logger = logging.getLogger("bugbash.timers")

    def schedule(self, key: str, delay_s: float, callback: TimerCallback) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self.cancel(key)

        def _fire() -> None:
            self._handles.pop(key, None)
            callback()

        self._handles[key] = loop.call_later(max(0.0, delay_s), _fire)

    def cancel(self, key: str) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        count = len(self._handles)
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
        if count:
            self._logger.debug("Cancelled %s pending timers", count)
        return count

    def pending(self) -> List[str]:
        return sorted(self._handles)
