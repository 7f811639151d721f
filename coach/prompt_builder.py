"""Assemble the system instruction and context sent to the language service."""

from __future__ import annotations

from typing import Sequence

from coach.config import settings
from coach.models import ContextEntry, Feature, HistoryRecord, PromptRequest
from coach.prompts import CONVERSATION_CONTEXT, CURRENT_INPUT, RETRY_NOTE, get_feature_prompt


class PromptBuilder:
    def __init__(
        self,
        tutor_name: str = settings.TUTOR_NAME,
        history_window: int = settings.HISTORY_WINDOW,
    ):
        self.tutor_name = tutor_name
        self.history_window = history_window

    def _format_history(self, history: Sequence[HistoryRecord]) -> str:
        recent = history[-self.history_window:] if self.history_window > 0 else []
        return "\n".join(
            f"{'Student' if r.sender == 'user' else 'Tutor'}: {r.text}" for r in recent
        )

    def build(
        self,
        feature: Feature,
        history: Sequence[HistoryRecord],
        current_text: str,
        is_retry: bool = False,
    ) -> PromptRequest:
        """Build the request for one turn.

        `history` is the persisted transcript for (user, feature), which
        normally already ends with the current user turn.
        """
        base = get_feature_prompt(feature, self.tutor_name)

        if history:
            parts = [base, CONVERSATION_CONTEXT.format(history=self._format_history(history))]
            if is_retry:
                parts.append(RETRY_NOTE)
            parts.append(CURRENT_INPUT.format(text=current_text, tutor_name=self.tutor_name))
            instruction = "\n\n".join(parts)
        else:
            instruction = f"{base}\n\n{RETRY_NOTE}" if is_retry else base

        if len(history) > 1:
            context = [ContextEntry(role=r.sender, text=r.text) for r in history]
        else:
            context = [ContextEntry(role="user", text=current_text)]

        return PromptRequest(system_instruction=instruction, context=context)
