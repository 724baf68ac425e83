import pytest

from bugbash.services.submissions import UNPARSABLE_EXPLANATION, parse_verdict


def test_plain_json_object():
    verdict = parse_verdict('{"fixed": true, "explanation": "Loop bound corrected."}')
    assert verdict.fixed is True
    assert verdict.explanation == "Loop bound corrected."


def test_object_embedded_in_prose():
    text = 'Sure! Here is my assessment:\n{"fixed": false, "explanation": "Still off by one."}\nHope that helps.'
    verdict = parse_verdict(text)
    assert verdict.fixed is False
    assert verdict.explanation == "Still off by one."


def test_object_inside_code_fence():
    text = '```json\n{"fixed": true, "explanation": "ok"}\n```'
    assert parse_verdict(text).fixed is True


def test_loose_object_parsed_as_yaml():
    verdict = parse_verdict("{fixed: true, explanation: Swapped the comparison}")
    assert verdict.fixed is True
    assert verdict.explanation == "Swapped the comparison"


def test_missing_explanation_gets_default():
    assert parse_verdict('{"fixed": true}').explanation == "Fix accepted."
    assert parse_verdict('{"fixed": false, "explanation": "  "}').explanation == "Fix rejected."


@pytest.mark.parametrize(
    "text",
    [
        "",
        None,
        "The fix looks right to me.",
        '{"fixed": "yes", "explanation": "string instead of bool"}',
        '{"fixed": 1, "explanation": "number instead of bool"}',
        '{"explanation": "no verdict"}',
        "{not: [valid",
        "[true]",
    ],
)
def test_unusable_answers_fall_back_to_not_fixed(text):
    verdict = parse_verdict(text)
    assert verdict.fixed is False
    assert verdict.explanation == UNPARSABLE_EXPLANATION
