"""Tests for the language service client, using a stand-in OpenAI client."""

from types import SimpleNamespace

import httpx
import openai
import pytest

from coach.config import settings
from coach.errors import ConfigurationMissing, EmptyGenerationResult, LanguageServiceError
from coach.models import ContextEntry, PromptRequest
from coach.services.llm import LLMService

REQUEST = PromptRequest(
    system_instruction="You are Ava.",
    context=[
        ContextEntry(role="user", text="Hi"),
        ContextEntry(role="tutor", text="NO_MISTAKE: Hello!"),
        ContextEntry(role="user", text="How are you?"),
    ],
)


class FakeCompletions:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        choices = []
        if self.reply is not None:
            choices = [SimpleNamespace(message=SimpleNamespace(content=self.reply))]
        return SimpleNamespace(choices=choices)


def service(completions: FakeCompletions) -> LLMService:
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return LLMService(model="test-model", client=client)


@pytest.mark.asyncio
async def test_generate_maps_roles_and_returns_text():
    completions = FakeCompletions(reply="NO_MISTAKE: Great!")

    text = await service(completions).generate(REQUEST)

    assert text == "NO_MISTAKE: Great!"
    call = completions.calls[0]
    assert call["model"] == "test-model"
    assert [m["role"] for m in call["messages"]] == ["system", "user", "assistant", "user"]
    assert call["messages"][0]["content"] == "You are Ava."


@pytest.mark.asyncio
async def test_status_error_becomes_language_service_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    error = openai.APIStatusError(
        "boom", response=httpx.Response(500, request=request), body=None
    )

    with pytest.raises(LanguageServiceError) as excinfo:
        await service(FakeCompletions(error=error)).generate(REQUEST)

    assert excinfo.value.status_code == 500
    assert "API Error: 500" in str(excinfo.value)


@pytest.mark.asyncio
async def test_connection_error_becomes_language_service_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    error = openai.APIConnectionError(request=request)

    with pytest.raises(LanguageServiceError, match="Network error"):
        await service(FakeCompletions(error=error)).generate(REQUEST)


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", [None, "", "   "])
async def test_empty_output_raises(reply):
    with pytest.raises(EmptyGenerationResult):
        await service(FakeCompletions(reply=reply)).generate(REQUEST)


@pytest.mark.asyncio
async def test_missing_api_key(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    llm = LLMService()

    assert llm.configured is False
    with pytest.raises(ConfigurationMissing):
        await llm.generate(REQUEST)
