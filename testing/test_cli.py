"""Tests for the interactive CLI commands."""

from __future__ import annotations

import pytest

from coach.main import format_message, handle_command, latest_mistake_id
from coach.models import Feature, Message, MistakeRecord
from coach.orchestrator import ConversationOrchestrator
from coach.services.history_store import HistoryStore

MISTAKE_REPLY = (
    "MISTAKE_DETECTED: You meant: 'She likes tea'. Add -s for she. Can you try saying it again?"
)


class FakeLLM:
    """LLM stub for deterministic tests."""

    configured = True

    def __init__(self, *replies):
        self.replies = list(replies)

    async def generate(self, request):
        return self.replies.pop(0)


def test_format_message_shows_correction_and_retry_hint():
    mistake = MistakeRecord(
        id=1, original_text="She like tea", corrected_text="She likes tea", brief_explanation="Add -s"
    )
    message = Message(sender="tutor", text="You meant: 'She likes tea'.", mistake=mistake)

    line = format_message(message, "Ava")

    assert line.startswith("Ava: You meant")
    assert 'You mean: "She likes tea"' in line
    assert "/explain" in line


@pytest.mark.asyncio
async def test_feature_and_explain_commands(tmp_path, capsys):
    session = ConversationOrchestrator(
        "u1", FakeLLM(MISTAKE_REPLY, "Подробно"), HistoryStore(tmp_path), tutor_name="Ava"
    )
    await session.submit("She like tea")

    assert await handle_command(session, "/explain") is True
    assert "Подробно" in capsys.readouterr().out
    assert latest_mistake_id(session) is not None

    assert await handle_command(session, "/feature grammar") is True
    assert session.state.current_feature == Feature.GRAMMAR
    assert "[Grammar] I'll help you with grammar rules" in capsys.readouterr().out
    assert latest_mistake_id(session) is None

    assert await handle_command(session, "/feature nope") is True
    assert "Unknown feature" in capsys.readouterr().out
    assert await handle_command(session, "/quit") is False
