"""Tests for transcript alternative selection and accumulation."""

from coach.models import TranscriptAlternative, TranscriptResult
from coach.transcripts import best_alternative, final_text, interim_preview, jsgf_grammar


def result(is_final: bool, *alternatives) -> TranscriptResult:
    return TranscriptResult(
        is_final=is_final,
        alternatives=[TranscriptAlternative(transcript=t, confidence=c) for t, c in alternatives],
    )


def test_best_alternative_picks_highest_confidence():
    chosen = best_alternative(result(True, ("I sea", 0.4), ("I see", 0.92), ("eye see", 0.3)))

    assert chosen.transcript == "I see"


def test_best_alternative_empty_result():
    assert best_alternative(result(True)) is None


def test_final_text_concatenates_finals_in_order():
    text, low = final_text(
        [
            result(True, ("Hello ", 0.9)),
            result(False, ("ignored", 0.9)),
            result(True, ("world", 0.7), ("word", 0.8)),
        ]
    )

    assert text == "Hello word"
    assert low is False


def test_final_text_flags_low_confidence_but_keeps_text():
    text, low = final_text([result(True, ("mumble", 0.2))])

    assert text == "mumble"
    assert low is True


def test_interim_preview_filters_by_confidence():
    preview = interim_preview(
        [
            result(False, ("no score ", None)),
            result(False, ("weak ", 0.2)),
            result(False, ("ok", 0.5)),
            result(True, ("final", 0.9)),
        ]
    )

    assert preview == "no score ok"


def test_jsgf_grammar_lists_hints():
    assert jsgf_grammar(["noun", "verb"]) == "#JSGF V1.0; grammar hints; public <hint> = noun | verb;"
