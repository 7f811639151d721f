"""Transcript fragment helpers: alternative selection and accumulation."""

from __future__ import annotations

from typing import Iterable, Optional

from coach.config import settings
from coach.models import TranscriptAlternative, TranscriptResult


def best_alternative(result: TranscriptResult) -> Optional[TranscriptAlternative]:
    """Return the highest-confidence alternative (first wins on ties)."""
    best = None
    for alternative in result.alternatives:
        if best is None or (alternative.confidence or 0.0) > (best.confidence or 0.0):
            best = alternative
    return best


def final_text(
    results: Iterable[TranscriptResult],
    low_confidence_threshold: float = settings.LOW_CONFIDENCE_THRESHOLD,
) -> tuple[str, bool]:
    """Concatenate the chosen text of every final result in arrival order.

    Returns (text, low_confidence). Results under the threshold are still
    used; the flag only reports that at least one of them was weak.
    """
    text = ""
    low_confidence = False
    for result in results:
        if not result.is_final:
            continue
        chosen = best_alternative(result)
        if chosen is None:
            continue
        if (chosen.confidence or 0.0) < low_confidence_threshold:
            low_confidence = True
        text += chosen.transcript
    return text, low_confidence


def interim_preview(
    results: Iterable[TranscriptResult],
    confidence_floor: float = settings.INTERIM_CONFIDENCE_FLOOR,
) -> str:
    """Live preview built from the top alternative of each interim result."""
    preview = ""
    for result in results:
        if result.is_final or not result.alternatives:
            continue
        top = result.alternatives[0]
        if top.confidence is None or top.confidence > confidence_floor:
            preview += top.transcript
    return preview


def jsgf_grammar(hints: list[str]) -> str:
    """Render recognition hints as a JSGF grammar for hosts that accept one."""
    return f"#JSGF V1.0; grammar hints; public <hint> = {' | '.join(hints)};"
