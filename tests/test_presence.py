from bugbash.services.presence import PresenceRelay


def test_focus_moves_between_bugs():
    relay = PresenceRelay()
    assert relay.set_focus("p1", "Ada", "bug_a") == {"id": "p1", "name": "Ada", "bugId": "bug_a"}
    relay.set_focus("p1", "Ada", "bug_b")
    assert relay.editors("bug_a") == []
    assert [e.id for e in relay.editors("bug_b")] == ["p1"]
    assert relay.focus_of("p1") == "bug_b"

    relay.set_focus("p1", "Ada", None)
    assert relay.focus_of("p1") is None


def test_code_update_is_last_writer_wins():
    relay = PresenceRelay()
    first = relay.update_code("p1", "Ada", "bug_a", "x = 1")
    again = relay.update_code("p1", "Ada", "bug_a", "x = 1")
    assert first == again == {"id": "p1", "name": "Ada", "bugId": "bug_a", "code": "x = 1"}

    relay.update_code("p2", "Linus", "bug_a", "x = 2")
    assert relay.buffer("bug_a").code == "x = 2"
    assert relay.buffer("bug_a").id == "p2"


def test_cursor_marks_are_per_player():
    relay = PresenceRelay()
    payload = relay.move_cursor("p1", "Ada", "bug_a", 3, 7)
    assert payload == {"id": "p1", "name": "Ada", "bugId": "bug_a", "line": 3, "column": 7}
    relay.move_cursor("p2", None, "bug_a", 1, 0)
    assert set(relay.cursors("bug_a")) == {"p1", "p2"}


def test_forget_bug_drops_all_channels():
    relay = PresenceRelay()
    relay.set_focus("p1", "Ada", "bug_a")
    relay.update_code("p1", "Ada", "bug_a", "x")
    relay.move_cursor("p1", "Ada", "bug_a", 0, 0)
    relay.forget_bug("bug_a")
    assert relay.editors("bug_a") == []
    assert relay.buffer("bug_a") is None
    assert relay.cursors("bug_a") == {}


def test_forget_player_reports_their_bug():
    relay = PresenceRelay()
    relay.set_focus("p1", "Ada", "bug_a")
    relay.move_cursor("p1", "Ada", "bug_a", 0, 0)
    relay.update_code("p1", "Ada", "bug_a", "x")
    assert relay.forget_player("p1") == "bug_a"
    assert relay.editors("bug_a") == []
    assert relay.cursors("bug_a") == {}
    assert relay.buffer("bug_a") is not None
    assert relay.forget_player("p1") is None
