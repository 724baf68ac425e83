import random
import re

import pytest
from pydantic import ValidationError

from bugbash.services.bugs import RoomState, derive_title, flush_active, make_bug, retire, reveal


def test_bug_id_has_timestamp_and_random_suffix():
    bug = make_bug("  def f(): pass  ", "Write a function that reverses a linked list", 1700000000.5, random.Random(3))
    assert re.fullmatch(r"bug_1700000000500_[0-9a-z]{6}", bug.id)
    assert bug.code == "def f(): pass"
    assert bug.title == "reverses a linked list"
    assert bug.visible_at is None and bug.expires_at is None
    assert not bug.is_visible


def test_derive_title_strips_class_prefix():
    assert derive_title("Write a class that implements a basic stack") == "implements a basic stack"
    assert derive_title("Sort a list") == "Sort a list"


def test_reveal_sets_expiry_once():
    bug = make_bug("x = 1", "task", 10.0, random.Random(1))
    reveal(bug, 20.0, 60)
    assert bug.visible_at == 20.0
    assert bug.expires_at == 80.0
    with pytest.raises(ValueError):
        reveal(bug, 30.0, 60)


def test_retire_moves_bug_exactly_once():
    state = RoomState()
    bug = make_bug("x = 1", "task", 10.0, random.Random(1))
    state.active_bugs.append(bug)

    entry = retire(state, bug.id, "fixed", resolved_by="Ada", fixed_code="x = 2")
    assert entry is not None
    assert entry.status == "resolved"
    assert entry.resolved_by == "Ada"
    assert state.active_bugs == []
    assert state.total_bugs_resolved == 1

    assert retire(state, bug.id, "expired") is None
    assert len(state.bug_history) == 1


def test_expired_entry_has_no_credit():
    state = RoomState()
    bug = make_bug("x = 1", "task", 10.0, random.Random(1))
    state.active_bugs.append(bug)
    entry = retire(state, bug.id, "expired", resolved_by="Ada", fixed_code="nope")
    assert entry.status == "unresolved"
    assert entry.outcome == "expired"
    assert entry.resolved_by is None
    assert entry.fixed_code is None
    assert state.total_bugs_resolved == 0


def test_history_entries_are_frozen():
    state = RoomState()
    bug = make_bug("x = 1", "task", 10.0, random.Random(1))
    state.active_bugs.append(bug)
    entry = retire(state, bug.id, "expired")
    with pytest.raises(ValidationError):
        entry.status = "resolved"


def test_flush_active_closes_queued_and_visible_bugs():
    rng = random.Random(5)
    state = RoomState()
    visible = make_bug("a = 1", "task a", 1.0, rng)
    queued = make_bug("b = 1", "task b", 2.0, rng)
    reveal(visible, 3.0, 60)
    state.active_bugs.extend([visible, queued])

    assert flush_active(state) == 2
    assert state.active_bugs == []
    assert [e.outcome for e in state.bug_history] == ["round_end", "round_end"]
    assert all(e.status == "unresolved" for e in state.bug_history)


def test_room_state_wire_uses_camel_case():
    payload = RoomState(time_remaining=300).wire()
    assert payload["timeRemaining"] == 300
    assert payload["activeBugs"] == []
    assert payload["bugHistory"] == []
    assert payload["totalBugsSpawned"] == 0
    assert payload["totalBugsResolved"] == 0
    assert payload["status"] == "waiting"
