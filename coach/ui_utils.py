"""Display helpers for chat front ends.

Pure text transforms; nothing here touches stored message text.
"""

from __future__ import annotations

import re

from coach.models import Feature, MistakeRecord

_BOLD = re.compile(r"\*\*(.*?)\*\*")
_EMPHASIS = re.compile(r"\*(.*?)\*")

FEATURE_NAMES = {
    Feature.FREE_TALK: "Free Talk",
    Feature.VOCABULARY: "Vocabulary",
    Feature.GRAMMAR: "Grammar",
    Feature.MISTAKE_REVIEW: "Review",
}

FEATURE_DESCRIPTIONS = {
    Feature.FREE_TALK: "Want to talk about travel, hobbies, or your job?",
    Feature.VOCABULARY: "Let's expand your vocabulary! Ask about words or I'll teach you new ones.",
    Feature.GRAMMAR: "I'll help you with grammar rules and correct your sentences.",
    Feature.MISTAKE_REVIEW: "Share some text and I'll help you find and fix any mistakes.",
}

INPUT_PLACEHOLDERS = {
    Feature.FREE_TALK: "Type your English here...",
    Feature.VOCABULARY: "Type a word or ask for a new one...",
    Feature.GRAMMAR: "Ask a grammar question or provide a sentence...",
    Feature.MISTAKE_REVIEW: "Paste text to review for mistakes...",
}

RETRY_PLACEHOLDER = "Попробуйте сказать это снова..."
EXPLANATION_UNAVAILABLE = "Объяснение недоступно"


def render_markdown(text: str) -> str:
    """Convert bold/emphasis delimiters and line breaks to inline markup."""
    html = _BOLD.sub(r"<strong>\1</strong>", text)
    html = _EMPHASIS.sub(r"<em>\1</em>", html)
    return html.replace("\n", "<br />")


def input_placeholder(feature: Feature, awaiting_retry: bool = False) -> str:
    if awaiting_retry:
        return RETRY_PLACEHOLDER
    return INPUT_PLACEHOLDERS.get(feature, INPUT_PLACEHOLDERS[Feature.FREE_TALK])


def corrective_phrase(original: str, corrected: str) -> str:
    """'You mean' for near-same-length fixes, 'You should say' otherwise."""
    if abs(len(original.split()) - len(corrected.split())) <= 1:
        return "You mean"
    return "You should say"


def explanation_display(mistake: MistakeRecord) -> tuple[str, str]:
    """Pick what to show for a mistake: (source, text).

    source is "detailed", "brief" or "unavailable".
    """
    if mistake.detailed_explanation:
        return "detailed", mistake.detailed_explanation
    if mistake.brief_explanation:
        return "brief", mistake.brief_explanation
    return "unavailable", EXPLANATION_UNAVAILABLE
