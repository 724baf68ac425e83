from __future__ import annotations

import random
import time
from typing import Callable, List, Optional

from bugbash.services.bugs.schema import Bug, ResolvedBug, RoomState
from bugbash.services.bugs.service import make_bug, retire, reveal
from bugbash.services.oracle.service import OracleService

from .schema import SpawnPolicy

BUG_TOPICS: List[str] = [
    "Write a function that reverses a linked list",
    "Write a function that finds the second largest number in a list",
    "Write a class that implements a basic stack with push, pop, and peek",
    "Write a function that checks if a string is a valid palindrome ignoring spaces and case",
    "Write a function that merges two sorted lists into one sorted list",
    "Write a function that computes the nth Fibonacci number using memoization",
    "Write a function that finds all prime numbers up to n using Sieve of Eratosthenes",
    "Write a function that rotates a matrix 90 degrees clockwise",
    "Write a function that finds the longest common substring of two strings",
    "Write a function that implements binary search on a sorted array",
    "Write a function that converts a Roman numeral string to an integer",
    "Write a function that validates balanced parentheses in a string",
    "Write a function that removes duplicates from a sorted linked list",
    "Write a function that computes the power set of a given set",
    "Write a function that finds the majority element in an array",
]


class SpawnScheduler:
    """Decides when bugs appear, how many may exist, and when they are seen.

    The scheduler never arms timers itself; it answers questions and applies
    transitions, and the room decides what to schedule from the answers.
    """

    def __init__(
        self,
        oracle: OracleService,
        policy: Optional[SpawnPolicy] = None,
        *,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.oracle = oracle
        self.policy = policy or SpawnPolicy()
        self._rng = rng or random.Random()
        self._clock = clock

    # ------------------------------------------------------------------
    # Cadence
    # ------------------------------------------------------------------
    def next_delay(self) -> float:
        return float(self._rng.randint(self.policy.min_interval_s, self.policy.max_interval_s))

    def has_capacity(self, state: RoomState, in_flight: int = 0) -> bool:
        return len(state.active_bugs) + in_flight < self.policy.max_active_bugs

    def pick_topic(self) -> str:
        return self._rng.choice(BUG_TOPICS)

    async def generate(self, topic: str) -> Bug:
        """Fetch a snippet for ``topic``; oracle errors propagate to the caller."""

        code = await self.oracle.generate_snippet(topic)
        return make_bug(code, topic, self._clock(), self._rng)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def admit(self, state: RoomState, bug: Bug) -> float:
        """Queue a freshly generated bug; returns the delay before its reveal."""

        queued_ahead = len(state.queued_bugs())
        state.active_bugs.append(bug)
        state.total_bugs_spawned += 1
        return self.policy.reveal_delay_s * (1 + queued_ahead)

    def can_reveal(self, state: RoomState) -> bool:
        return len(state.visible_bugs()) < self.policy.max_visible_bugs

    def promote(self, state: RoomState, bug_id: str) -> Optional[Bug]:
        bug = state.find_bug(bug_id)
        if bug is None or bug.is_visible or not self.can_reveal(state):
            return None
        return reveal(bug, self._clock(), self.policy.bug_timeout_s)

    def expire(self, state: RoomState, bug_id: str) -> Optional[ResolvedBug]:
        bug = state.find_bug(bug_id)
        if bug is None or not bug.is_visible:
            return None
        return retire(state, bug_id, "expired")
