"""Round clock and room-scoped timers."""

from .service import GameClock, TimerCallback, TimerSet

__all__ = ["GameClock", "TimerCallback", "TimerSet"]
