"""Tests for the mistake-detection protocol parser."""

import pytest

from coach.response_parser import ResponseParser, contains_protocol_marker

SCENARIO = (
    "MISTAKE_DETECTED: You meant: 'I went to the park yesterday'. We use past tense. "
    "Can you try saying it again? RUSSIAN_EXPLANATION: Используйте прошедшее время 'went'."
)


@pytest.fixture
def parser():
    return ResponseParser()


def test_mistake_response_extracts_all_fields(parser):
    parsed = parser.parse(SCENARIO, original_text="I go to park yesterday")

    assert parsed.has_mistake is True
    assert parsed.corrected_text == "I went to the park yesterday"
    assert parsed.brief_explanation == "We use past tense"
    assert parsed.detailed_explanation_ru == "Используйте прошедшее время 'went'."
    assert parsed.text == (
        "You meant: 'I went to the park yesterday'. We use past tense. "
        "Can you try saying it again?"
    )
    assert parsed.mistake.original_text == "I go to park yesterday"
    assert parsed.mistake.awaiting_retry is True
    assert parsed.mistake.retried is False


@pytest.mark.parametrize(
    "response, expected",
    [
        ("NO_MISTAKE: That sounds great!", "That sounds great!"),
        ("NO_MISTAKE:   Spaces trimmed.  ", "Spaces trimmed."),
        ("NO_MISTAKE: NO_MISTAKE: twice", "NO_MISTAKE: twice"),
        ("NO_MISTAKE:", ""),
    ],
)
def test_no_mistake_drops_marker_once(parser, response, expected):
    parsed = parser.parse(response)

    assert parsed.has_mistake is False
    assert parsed.text == expected
    assert parsed.mistake is None


@pytest.mark.parametrize(
    "response",
    [
        "Hello! How are you today?",
        "  leading spaces and no marker",
        "",
        "Sure. NO_MISTAKE: marker not at the start",
    ],
)
def test_non_compliant_response_is_verbatim(parser, response):
    parsed = parser.parse(response)

    assert parsed.has_mistake is False
    assert parsed.text == response


def test_corrected_text_accepts_double_quotes(parser):
    parsed = parser.parse(
        'MISTAKE_DETECTED: You meant: "She doesn’t like it". Use does not. '
        "Can you try saying it again?"
    )

    assert parsed.corrected_text == "She doesn’t like it"
    assert parsed.brief_explanation == "Use does not"
    assert parsed.detailed_explanation_ru == ""


def test_brief_explanation_before_detail_marker(parser):
    parsed = parser.parse(
        "MISTAKE_DETECTED: You meant: 'I went home'. The past of go is went. "
        "RUSSIAN_EXPLANATION: Прошедшее время."
    )

    assert parsed.brief_explanation == "The past of go is went"
    assert parsed.text == "You meant: 'I went home'. The past of go is went."


def test_brief_explanation_after_quoted_correction(parser):
    parsed = parser.parse(
        'MISTAKE_DETECTED: You meant "I am happy" because we need am. '
        "Can you try saying it again?"
    )

    assert parsed.corrected_text == "I am happy"
    assert parsed.brief_explanation == "because we need am"


def test_missing_parts_are_empty_not_errors(parser):
    parsed = parser.parse("MISTAKE_DETECTED: something was off")

    assert parsed.has_mistake is True
    assert parsed.corrected_text == ""
    assert parsed.brief_explanation == ""
    assert parsed.mistake.detailed_explanation is None


def test_mistake_ids_are_unique_and_increasing(parser):
    first = parser.parse(SCENARIO)
    second = parser.parse(SCENARIO)

    assert second.mistake_id > first.mistake_id


def test_custom_strategy_table_is_used():
    parser = ResponseParser(strategies=[("always", lambda segments: "custom")])

    parsed = parser.parse(SCENARIO)

    assert parsed.brief_explanation == "custom"


def test_contains_protocol_marker():
    assert contains_protocol_marker(SCENARIO)
    assert contains_protocol_marker("NO_MISTAKE: ok")
    assert not contains_protocol_marker("plain text")


@pytest.mark.parametrize(
    "response, corrected",
    [
        (
            'MISTAKE_DETECTED: You meant: "I don\'t like coffee". Use do not. '
            "Can you try saying it again?",
            "I don't like coffee",
        ),
        (
            "MISTAKE_DETECTED: You meant: 'I'm sure it's fine'. Use the contraction. "
            "Can you try saying it again?",
            "I'm sure it's fine",
        ),
        (
            "MISTAKE_DETECTED: That's close! You meant: 'I don't know'. Use do not. "
            "Can you try saying it again?",
            "I don't know",
        ),
    ],
)
def test_corrected_text_keeps_apostrophes(parser, response, corrected):
    parsed = parser.parse(response)

    assert parsed.corrected_text == corrected
    assert parsed.brief_explanation in ("Use do not", "Use the contraction")


def test_outcome_accessors(parser):
    mistake = parser.parse(SCENARIO)
    clean = parser.parse("NO_MISTAKE: Well said!")

    assert mistake.mistake_id == mistake.mistake.id
    assert mistake.detailed_explanation_ru == mistake.mistake.detailed_explanation
    assert clean.mistake_id is None
    assert clean.detailed_explanation_ru == ""
    assert clean.corrected_text == ""
    assert clean.brief_explanation == ""
