"""Parse tutor responses against the mistake-detection protocol.

A compliant response starts with MISTAKE_DETECTED: or NO_MISTAKE:. The model
drifts from the format often, so field extraction is a table of strategies
tried in order; anything unrecognised is shown verbatim.
"""

from __future__ import annotations

import itertools
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from coach.models import MistakeRecord, ParsedResponse

log = logging.getLogger(__name__)

MISTAKE_MARKER = "MISTAKE_DETECTED:"
NO_MISTAKE_MARKER = "NO_MISTAKE:"
DETAIL_MARKER = "RUSSIAN_EXPLANATION:"
RETRY_PHRASE = "Can you try saying it again?"

# Double quotes win; a single-quoted span may contain apostrophes (don't, I'm).
DOUBLE_QUOTED = re.compile(r'"([^"]+)"')
SINGLE_QUOTED = re.compile(r"(?<!\w)'(.+?)'(?!\w)")


@dataclass(frozen=True)
class Segments:
    """Pieces of a MISTAKE_DETECTED response the strategies look at."""
    remainder: str  # Everything after the marker, detail section included
    english: str
    corrected: str


Strategy = Callable[[Segments], Optional[str]]


def _regex(pattern: str, source: str = "english", group: int = 1) -> Strategy:
    compiled = re.compile(pattern)

    def extract(segments: Segments) -> Optional[str]:
        match = compiled.search(getattr(segments, source))
        return match.group(group).strip() if match else None

    return extract


def _after_correction(segments: Segments) -> Optional[str]:
    """Text after the quoted correction and before the retry phrase."""
    if not segments.corrected:
        return None
    for quote in ('"', "'"):
        quoted = f"{quote}{segments.corrected}{quote}"
        if quoted not in segments.english:
            continue
        after = segments.english.split(quoted, 1)[1]
        match = re.search(r"\.?\s*(.+?)\.\s*Can you try saying it again", after)
        return match.group(1).strip() if match else None
    return None


# (name, strategy) in priority order. Append new formats here.
BRIEF_EXPLANATION_STRATEGIES: list[tuple[str, Strategy]] = [
    ("sentence_before_retry", _regex(r"\. (.+?)\. Can you try saying it again\?")),
    (
        "sentence_before_detail",
        _regex(r"\. (.+?)\.\s*RUSSIAN_EXPLANATION:", source="remainder"),
    ),
    ("after_correction", _after_correction),
]


def quoted_correction(text: str) -> str:
    for pattern in (DOUBLE_QUOTED, SINGLE_QUOTED):
        match = pattern.search(text)
        if match:
            return match.group(1)
    return ""


def contains_protocol_marker(text: str) -> bool:
    return MISTAKE_MARKER in text or NO_MISTAKE_MARKER in text


class ResponseParser:
    """Turns one response string into a ParsedResponse. Performs no I/O."""

    def __init__(
        self,
        id_generator: Optional[Callable[[], int]] = None,
        strategies: Sequence[tuple[str, Strategy]] = BRIEF_EXPLANATION_STRATEGIES,
    ):
        self._next_id = id_generator or itertools.count(1).__next__
        self.strategies = list(strategies)

    def parse(self, response: str, original_text: str = "") -> ParsedResponse:
        body = response.lstrip()

        if body.startswith(NO_MISTAKE_MARKER):
            return ParsedResponse(
                has_mistake=False,
                text=body[len(NO_MISTAKE_MARKER):].strip(),
            )

        if body.startswith(MISTAKE_MARKER):
            return self._parse_mistake(body[len(MISTAKE_MARKER):].strip(), original_text)

        log.warning(f"Response does not follow the protocol, showing verbatim: {response[:60]!r}")
        return ParsedResponse(has_mistake=False, text=response)

    def _parse_mistake(self, remainder: str, original_text: str) -> ParsedResponse:
        english, _, detail = remainder.partition(DETAIL_MARKER)
        english = english.strip()
        detail = detail.strip()

        corrected = quoted_correction(english)

        segments = Segments(remainder=remainder, english=english, corrected=corrected)
        brief = self.brief_explanation(segments)

        mistake = MistakeRecord(
            id=self._next_id(),
            original_text=original_text,
            corrected_text=corrected,
            brief_explanation=brief,
            detailed_explanation=detail or None,
            awaiting_retry=True,
        )
        return ParsedResponse(has_mistake=True, text=english, mistake=mistake)

    def brief_explanation(self, segments: Segments) -> str:
        for name, strategy in self.strategies:
            found = strategy(segments)
            if found:
                log.debug(f"Brief explanation matched by {name}")
                return found
        return ""
