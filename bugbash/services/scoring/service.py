from __future__ import annotations

from typing import Dict, Iterable

from bugbash.services.bugs.schema import ResolvedBug, ScoreReport

PENALTY_PER_BUG = 2
MAX_SCORE = 100


def compute_score(history: Iterable[ResolvedBug], penalty_per_bug: int = PENALTY_PER_BUG) -> int:
    """Score a finished round: 100 minus a fixed penalty per unresolved bug."""

    unresolved = sum(1 for entry in history if entry.status == "unresolved")
    return max(0, MAX_SCORE - unresolved * penalty_per_bug)


def summarize_round(history: Iterable[ResolvedBug], penalty_per_bug: int = PENALTY_PER_BUG) -> ScoreReport:
    entries = list(history)
    fixes: Dict[str, int] = {}
    for entry in entries:
        if entry.status == "resolved" and entry.resolved_by:
            fixes[entry.resolved_by] = fixes.get(entry.resolved_by, 0) + 1
    resolved = sum(1 for entry in entries if entry.status == "resolved")
    return ScoreReport(
        score=compute_score(entries, penalty_per_bug),
        resolved=resolved,
        unresolved=len(entries) - resolved,
        fixes_by_player=fixes,
    )
