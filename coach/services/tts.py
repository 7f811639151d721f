"""Text-to-speech for tutor replies.

Small ElevenLabs wrapper. `speak()` is fire-and-forget: synthesis runs as a
background task and failures are only logged.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional

import httpx

from coach.config import settings

log = logging.getLogger(__name__)


class ElevenLabsTTS:
    """Simple async ElevenLabs TTS client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        voice_id: Optional[str] = None,
        model_id: str = "eleven_multilingual_v2",
        output_format: str = "mp3_44100_128",
        on_audio: Optional[Callable[[str, bytes], None]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        # .env values sometimes contain accidental leading spaces; strip to be safe.
        self.api_key = (api_key or settings.ELEVENLABS_API_KEY or "").strip() or None
        self.base_url = (base_url or settings.ELEVENLABS_BASE_URL).strip()
        self.voice_id = (voice_id or settings.ELEVENLABS_VOICE_ID).strip()
        self.model_id = model_id
        self.output_format = output_format
        self.on_audio = on_audio or (save_audio if settings.SAVE_TTS_AUDIO else None)
        self._transport = transport
        self._tasks: set[asyncio.Task] = set()

        if not self.api_key:
            raise ValueError("ELEVENLABS_API_KEY is not set")
        if not self.voice_id:
            raise ValueError("ELEVENLABS_VOICE_ID is not set")

    async def synthesize(self, text: str, voice_settings: Optional[dict[str, Any]] = None) -> bytes:
        """Return raw audio bytes for the given text."""
        url = f"{self.base_url}/v1/text-to-speech/{self.voice_id}"
        headers = {
            "xi-api-key": self.api_key,
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
        }
        payload = {
            "text": text,
            "model_id": self.model_id,
            "output_format": self.output_format,
        }
        if voice_settings:
            payload["voice_settings"] = voice_settings

        async with httpx.AsyncClient(timeout=30, transport=self._transport) as client:
            response = await client.post(url, headers=headers, json=payload)
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                # ElevenLabs often returns useful JSON error details on failure.
                try:
                    detail = response.json()
                except ValueError:
                    detail = response.text
                raise httpx.HTTPStatusError(
                    f"{e} | ElevenLabs detail: {detail}",
                    request=e.request,
                    response=e.response,
                )
            return response.content

    def speak(self, text: str) -> None:
        """Synthesize in the background; no result is reported back."""
        if not text:
            return
        task = asyncio.get_running_loop().create_task(self._speak(text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _speak(self, text: str) -> None:
        try:
            audio = await self.synthesize(text)
        except httpx.HTTPError as e:
            log.warning(f"Speech synthesis failed: {e}")
            return
        if self.on_audio is not None:
            self.on_audio(text, audio)


def save_audio(text: str, audio: bytes, audio_dir: str | Path = "data/audio") -> Path:
    """Write synthesized audio to disk for debugging."""
    path = Path(audio_dir)
    path.mkdir(parents=True, exist_ok=True)
    target = path / f"reply_{int(time.time() * 1000)}.mp3"
    target.write_bytes(audio)
    log.debug(f"Saved {len(audio)} bytes of audio for {text[:30]!r} to {target}")
    return target


def build_speaker() -> Optional[ElevenLabsTTS]:
    """Return a speaker when ElevenLabs is configured, else None."""
    try:
        return ElevenLabsTTS()
    except ValueError:
        return None
