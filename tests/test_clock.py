import asyncio

import pytest

from bugbash.services.bugs import RoomState
from bugbash.services.clock import GameClock, TimerSet


def test_clock_counts_down_to_end():
    clock = GameClock(3)
    state = RoomState()
    clock.start(state)
    assert state.time_remaining == 3
    assert state.progress == 0.0

    assert clock.tick(state) is False
    assert state.progress == pytest.approx(100 / 3)
    assert clock.tick(state) is False
    assert clock.tick(state) is True
    assert state.time_remaining == 0
    assert state.progress == 100.0


def test_progress_is_clamped():
    clock = GameClock(300)
    assert clock.progress(400) == 0.0
    assert clock.progress(-5) == 100.0
    assert clock.progress(150) == 50.0


def test_non_positive_duration_rejected():
    with pytest.raises(ValueError):
        GameClock(0)


@pytest.mark.asyncio
async def test_timer_fires_once_and_forgets_key():
    timers = TimerSet()
    fired = []
    timers.schedule("spawn", 0.01, lambda: fired.append("spawn"))
    assert timers.pending() == ["spawn"]
    await asyncio.sleep(0.05)
    assert fired == ["spawn"]
    assert timers.pending() == []


@pytest.mark.asyncio
async def test_rescheduling_a_key_replaces_the_old_handle():
    timers = TimerSet()
    fired = []
    timers.schedule("clock", 0.01, lambda: fired.append("old"))
    timers.schedule("clock", 0.02, lambda: fired.append("new"))
    await asyncio.sleep(0.06)
    assert fired == ["new"]


@pytest.mark.asyncio
async def test_cancel_all_silences_everything():
    timers = TimerSet()
    fired = []
    timers.schedule("clock", 0.01, lambda: fired.append("clock"))
    timers.schedule("expire:bug_1", 0.01, lambda: fired.append("expire"))
    assert timers.cancel_all() == 2
    await asyncio.sleep(0.05)
    assert fired == []
    assert timers.cancel("clock") is False
