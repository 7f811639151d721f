"""OpenAI language service client."""

from __future__ import annotations

import logging
from typing import Optional

from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI

from coach.config import settings
from coach.errors import ConfigurationMissing, EmptyGenerationResult, LanguageServiceError
from coach.models import PromptRequest

log = logging.getLogger(__name__)


class LLMService:
    """One stateless request/response call per turn. No streaming."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        # .env values sometimes contain accidental leading spaces.
        self.api_key = (api_key or settings.OPENAI_API_KEY or "").strip() or None
        self.model = model or settings.OPENAI_MODEL
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or self.api_key is not None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is not None:
            return self._client
        if not self.api_key:
            raise ConfigurationMissing("OPENAI_API_KEY is not set")
        self._client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )
        return self._client

    def _to_messages(self, request: PromptRequest) -> list[dict]:
        messages = []
        if request.system_instruction:
            messages.append({"role": "system", "content": request.system_instruction})
        for entry in request.context:
            role = "user" if entry.role == "user" else "assistant"
            messages.append({"role": role, "content": entry.text})
        return messages

    async def generate(self, request: PromptRequest) -> str:
        """Send one request and return the text payload."""
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=self._to_messages(request),
            )
        except APIStatusError as e:
            raise LanguageServiceError(
                f"API Error: {e.status_code} - {e.message}", status_code=e.status_code
            ) from e
        except APIConnectionError as e:
            raise LanguageServiceError(f"Network error: {e}") from e
        except APIError as e:
            raise LanguageServiceError(f"Malformed response: {e}") from e

        text = None
        if response.choices:
            text = response.choices[0].message.content
        if not text or not text.strip():
            raise EmptyGenerationResult("Could not get a valid response from the tutor.")
        return text
