from bugbash.services.bugs.schema import ResolvedBug
from bugbash.services.scoring import compute_score, summarize_round


def _entry(idx, status, resolved_by=None):
    return ResolvedBug(
        id=f"bug_{idx}",
        code="pass",
        title="t",
        status=status,
        outcome="fixed" if status == "resolved" else "expired",
        resolved_by=resolved_by,
        fixed_code="pass" if status == "resolved" else None,
    )


def test_empty_history_scores_full_marks():
    assert compute_score([]) == 100


def test_each_unresolved_bug_costs_two_points():
    history = [_entry(1, "resolved", "Ada"), _entry(2, "unresolved"), _entry(3, "unresolved")]
    assert compute_score(history) == 96


def test_score_never_drops_below_zero():
    history = [_entry(i, "unresolved") for i in range(80)]
    assert compute_score(history) == 0


def test_score_matches_formula_over_range():
    for unresolved in range(0, 60):
        history = [_entry(i, "unresolved") for i in range(unresolved)]
        score = compute_score(history)
        assert 0 <= score <= 100
        assert score == max(0, 100 - 2 * unresolved)


def test_custom_penalty():
    assert compute_score([_entry(1, "unresolved")], penalty_per_bug=5) == 95


def test_summary_counts_fixes_per_player():
    history = [
        _entry(1, "resolved", "Ada"),
        _entry(2, "resolved", "Ada"),
        _entry(3, "resolved", "Linus"),
        _entry(4, "unresolved"),
    ]
    report = summarize_round(history)
    assert report.score == 98
    assert report.resolved == 3
    assert report.unresolved == 1
    assert report.fixes_by_player == {"Ada": 2, "Linus": 1}
    assert report.wire()["fixesByPlayer"] == {"Ada": 2, "Linus": 1}
