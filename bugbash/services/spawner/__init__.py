"""Bug spawn cadence, capacity and reveal/expiry policy."""

from .schema import SpawnPolicy
from .service import BUG_TOPICS, SpawnScheduler

__all__ = ["BUG_TOPICS", "SpawnPolicy", "SpawnScheduler"]
