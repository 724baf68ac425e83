from __future__ import annotations

import random
import string
from typing import Optional

from .schema import Bug, Outcome, ResolvedBug, RoomState

_ID_ALPHABET = string.digits + string.ascii_lowercase
_TITLE_PREFIXES = ("Write a function that ", "Write a class that ")


def new_bug_id(now: float, rng: random.Random) -> str:
    suffix = "".join(rng.choice(_ID_ALPHABET) for _ in range(6))
    return f"bug_{int(now * 1000)}_{suffix}"


def derive_title(task: str) -> str:
    title = task.strip()
    for prefix in _TITLE_PREFIXES:
        title = title.replace(prefix, "")
    return title


def make_bug(code: str, task: str, now: float, rng: random.Random) -> Bug:
    """Build a queued bug; it stays hidden until :func:`reveal` runs."""

    return Bug(
        id=new_bug_id(now, rng),
        code=code.strip(),
        title=derive_title(task),
        spawned_at=now,
    )


def reveal(bug: Bug, now: float, timeout_s: float) -> Bug:
    if bug.is_visible:
        raise ValueError(f"bug {bug.id} is already visible")
    bug.visible_at = now
    bug.expires_at = now + timeout_s
    return bug


def retire(
    state: RoomState,
    bug_id: str,
    outcome: Outcome,
    *,
    resolved_by: Optional[str] = None,
    fixed_code: Optional[str] = None,
) -> Optional[ResolvedBug]:
    """Move an active bug into the append-only history.

    Returns ``None`` when the bug is no longer active, so late callers can
    never write a second history entry for the same id.
    """

    bug = state.find_bug(bug_id)
    if bug is None:
        return None
    state.active_bugs = [b for b in state.active_bugs if b.id != bug_id]
    entry = ResolvedBug(
        id=bug.id,
        code=bug.code,
        title=bug.title,
        status="resolved" if outcome == "fixed" else "unresolved",
        outcome=outcome,
        resolved_by=resolved_by if outcome == "fixed" else None,
        fixed_code=fixed_code if outcome == "fixed" else None,
    )
    state.bug_history.append(entry)
    if outcome == "fixed":
        state.total_bugs_resolved += 1
    return entry


def flush_active(state: RoomState) -> int:
    """Close out every remaining bug, visible or queued, as unresolved."""

    remaining = [bug.id for bug in state.active_bugs]
    for bug_id in remaining:
        retire(state, bug_id, "round_end")
    return len(remaining)
