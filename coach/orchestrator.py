"""Conversation orchestrator: the tutoring session state machine.

Phases:
    Idle --switch_feature--> LoadingHistory --> Idle
    Idle --submit--> AwaitingResponse --> Idle | AwaitingRetry
    AwaitingRetry --submit(retry)--> AwaitingResponse
    any --failure--> Idle (with a visible notice)

All collaborators are injected, so tests can run the whole session against
fakes.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Literal, Optional, Protocol, Sequence

from coach.config import settings
from coach.errors import CaptureError, CoachError, UnsupportedCapability
from coach.models import (
    CaptureOutcome,
    ContextEntry,
    Feature,
    HistoryRecord,
    Message,
    MistakeRecord,
    ParsedResponse,
    PromptRequest,
    SessionPhase,
    SessionState,
)
from coach.prompt_builder import PromptBuilder
from coach.prompts import DETAILED_EXPLANATION, FALLBACK_EXPLANATION, GREETING
from coach.response_parser import ResponseParser, contains_protocol_marker
from coach.speech_capture import SpeechCaptureController

log = logging.getLogger(__name__)


class LanguageService(Protocol):
    async def generate(self, request: PromptRequest) -> str: ...


class HistoryGateway(Protocol):
    async def append(
        self,
        user_id: str,
        feature: Feature,
        sender: Literal["user", "tutor"],
        text: str,
        timestamp: Optional[datetime] = None,
    ) -> HistoryRecord: ...

    async def list_ordered(self, user_id: str, feature: Feature) -> list[HistoryRecord]: ...


class Speaker(Protocol):
    def speak(self, text: str) -> None: ...


def fallback_explanation(mistake: MistakeRecord) -> str:
    return FALLBACK_EXPLANATION.format(
        original=mistake.original_text,
        corrected=mistake.corrected_text,
        explanation=mistake.brief_explanation,
    )


class ConversationOrchestrator:
    def __init__(
        self,
        user_id: str,
        llm: LanguageService,
        store: HistoryGateway,
        *,
        parser: Optional[ResponseParser] = None,
        builder: Optional[PromptBuilder] = None,
        capture: Optional[SpeechCaptureController] = None,
        speaker: Optional[Speaker] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        feature: Feature = Feature.FREE_TALK,
        tutor_name: str = settings.TUTOR_NAME,
    ):
        self.user_id = user_id
        self.llm = llm
        self.store = store
        self.parser = parser or ResponseParser()
        self.builder = builder or PromptBuilder(tutor_name=tutor_name)
        self.capture = capture
        self.speaker = speaker
        self.clock = clock
        self.tutor_name = tutor_name
        self.state = SessionState(current_feature=Feature(feature))

        self._load_generation = 0
        # Re-parsed history keeps its mistake ids across reloads.
        self._reloaded_ids: dict[tuple, int] = {}
        self._tasks: set[asyncio.Task] = set()
        # Set whenever no reply and no history load is pending.
        self._settled = asyncio.Event()
        self._settled.set()

        if self.capture is not None:
            self.capture.on_outcome = self._on_capture_outcome

    # ------------------------------------------------------------------
    # Derived state

    @property
    def phase(self) -> SessionPhase:
        if self.state.loading:
            return SessionPhase.LOADING_HISTORY
        if self.state.sending:
            return SessionPhase.AWAITING_RESPONSE
        if self.state.retry_pending_id is not None:
            return SessionPhase.AWAITING_RETRY
        return SessionPhase.IDLE

    @property
    def messages(self) -> list[Message]:
        return self.state.messages

    @property
    def capturing(self) -> bool:
        return self.capture is not None and self.capture.capturing

    @property
    def input_enabled(self) -> bool:
        return not self.state.sending and not self.capturing

    def find_mistake(self, mistake_id: int) -> Optional[MistakeRecord]:
        for message in self.state.messages:
            if message.mistake is not None and message.mistake.id == mistake_id:
                return message.mistake
        return None

    # ------------------------------------------------------------------
    # History

    def _greeting(self) -> Message:
        return Message(sender="tutor", text=GREETING.format(tutor_name=self.tutor_name))

    def _messages_from_records(self, records: Sequence[HistoryRecord]) -> list[Message]:
        messages = []
        previous_user_text = ""
        for index, record in enumerate(records):
            if record.sender == "user":
                messages.append(Message(sender="user", text=record.text))
                previous_user_text = record.text
                continue
            if not contains_protocol_marker(record.text):
                messages.append(Message(sender="tutor", text=record.text))
                continue

            key = (record.feature, index, record.created_at)
            parsed = self.parser.parse(record.text, original_text=previous_user_text)
            mistake = parsed.mistake
            if mistake is not None:
                mistake.id = self._reloaded_ids.setdefault(key, mistake.id)
                mistake.awaiting_retry = False
            messages.append(Message(sender="tutor", text=parsed.text, mistake=mistake))
        return messages

    async def load_history(self) -> None:
        """Replace in-memory history with the persisted transcript.

        Only the most recent load may write; slower stale loads are dropped.
        """
        self._load_generation += 1
        generation = self._load_generation
        feature = self.state.current_feature
        self.state.loading = True
        self._sync_settled()
        try:
            records = await self.store.list_ordered(self.user_id, feature)
            messages = self._messages_from_records(records) or [self._greeting()]
        except Exception as e:
            log.error(f"Error loading chat history for {feature.value}: {e}")
            messages = [self._greeting()]

        if generation != self._load_generation:
            log.info(f"Discarding stale history load for {feature.value}")
            return
        self.state.messages = messages
        self.state.loading = False
        self._sync_settled()

    async def switch_feature(self, feature: Feature) -> None:
        feature = Feature(feature)
        log.info(f"Switching feature to {feature.value}")
        self.state.current_feature = feature
        self._close_pending_retry(retried=False)
        if self.capture is not None:
            self.capture.cancel()
        await self.load_history()

    # ------------------------------------------------------------------
    # Turns

    def _close_pending_retry(self, retried: bool) -> None:
        pending = self.state.retry_pending_id
        self.state.retry_pending_id = None
        if pending is None:
            return
        mistake = self.find_mistake(pending)
        if mistake is not None:
            mistake.awaiting_retry = False
            mistake.retried = retried

    def _sync_settled(self) -> None:
        if self.state.sending or self.state.loading:
            self._settled.clear()
        else:
            self._settled.set()

    def _replace_typing(self, replacement: Message) -> None:
        self.state.messages = [m for m in self.state.messages if not m.is_typing]
        self.state.messages.append(replacement)

    def _append_notice(self, text: str) -> None:
        self.state.messages.append(Message(sender="tutor", text=text))

    async def _persist(self, feature: Feature, sender: Literal["user", "tutor"], text: str) -> None:
        try:
            await self.store.append(self.user_id, feature, sender, text, self.clock())
        except Exception as e:
            log.error(f"Failed to persist {sender} turn: {e}")

    async def _history_for_prompt(self, feature: Feature) -> list[HistoryRecord]:
        try:
            return await self.store.list_ordered(self.user_id, feature)
        except Exception as e:
            log.error(f"Error fetching chat history, using in-memory transcript: {e}")
            now = self.clock()
            return [
                HistoryRecord(
                    user_id=self.user_id,
                    feature=feature,
                    sender=m.sender,
                    text=m.text,
                    created_at=now,
                )
                for m in self.state.messages
                if not m.is_typing
            ]

    async def submit(
        self,
        text: str,
        is_retry: Optional[bool] = None,
        auto_speak: bool = False,
    ) -> Optional[ParsedResponse]:
        """Send one learner turn and wait for the tutor's reply.

        Blank input and submissions while a reply or a history load is
        pending are ignored. `is_retry` defaults to whether a retry is
        pending. Returns the parsed reply, or None when nothing was sent
        or the turn failed.
        """
        if not text or not text.strip():
            return None
        if self.state.sending or self.state.loading:
            log.warning("Submission ignored: session is busy")
            return None

        if is_retry is None:
            is_retry = self.state.retry_pending_id is not None
        feature = self.state.current_feature
        generation = self._load_generation

        # Any next submission closes the pending retry, correct or not.
        self._close_pending_retry(retried=is_retry)
        self.state.sending = True
        self._sync_settled()
        self.state.messages.append(Message(sender="user", text=text))
        try:
            await self._persist(feature, "user", text)
            self.state.messages.append(
                Message(sender="tutor", text=f"{self.tutor_name} is typing...", is_typing=True)
            )

            history = await self._history_for_prompt(feature)
            request = self.builder.build(feature, history, text, is_retry=is_retry)
            raw = await self.llm.generate(request)
            parsed = self.parser.parse(raw, original_text=text)

            # Raw text keeps the protocol markers so reloads can re-parse it.
            await self._persist(feature, "tutor", raw)

            if generation != self._load_generation:
                log.info("Feature changed while waiting; reply stored but not shown")
                return parsed

            self._replace_typing(Message(sender="tutor", text=parsed.text, mistake=parsed.mistake))
            if parsed.mistake is not None:
                self.state.retry_pending_id = parsed.mistake.id
            if auto_speak and self.speaker is not None:
                self.speaker.speak(parsed.text)
            return parsed
        except CoachError as e:
            log.error(f"Error during submit: {e}")
            self._fail_turn(generation, f"Error: {e}")
        except Exception as e:
            log.exception(f"Unexpected error during submit: {e}")
            self._fail_turn(generation, "Error: Unknown error")
        finally:
            self.state.sending = False
            self._sync_settled()
        return None

    def _fail_turn(self, generation: int, notice: str) -> None:
        if generation != self._load_generation:
            return
        self._replace_typing(Message(sender="tutor", text=notice))

    # ------------------------------------------------------------------
    # Detailed explanations

    async def explain_mistake(self, mistake_id: int) -> Optional[str]:
        """Detailed (Russian) explanation, generated once and then reused."""
        mistake = self.find_mistake(mistake_id)
        if mistake is None:
            return None
        if not mistake.detailed_explanation:
            mistake.detailed_explanation = await self._generate_detailed(mistake)
        return mistake.detailed_explanation

    async def _generate_detailed(self, mistake: MistakeRecord) -> str:
        if not getattr(self.llm, "configured", True):
            return fallback_explanation(mistake)
        prompt = DETAILED_EXPLANATION.format(
            original=mistake.original_text,
            corrected=mistake.corrected_text,
            explanation=mistake.brief_explanation,
        )
        request = PromptRequest(
            system_instruction="",
            context=[ContextEntry(role="user", text=prompt)],
        )
        try:
            return await self.llm.generate(request)
        except CoachError as e:
            log.warning(f"Detailed explanation failed, using fallback: {e}")
            return fallback_explanation(mistake)

    # ------------------------------------------------------------------
    # Voice input

    async def start_capture(self) -> bool:
        """Begin listening. Failures become a tutor notice, never an exception."""
        if self.capture is None:
            self._append_notice(UnsupportedCapability.notice)
            return False
        try:
            await self.capture.start(self.state.current_feature)
        except CaptureError as e:
            log.warning(f"Could not start capture: {e}")
            self._append_notice(e.notice)
            return False
        return True

    def stop_capture(self) -> None:
        if self.capture is not None:
            self.capture.stop()

    def _on_capture_outcome(self, outcome: CaptureOutcome) -> None:
        if outcome.kind == "utterance":
            log.info(f"Submitting voice message: {outcome.text[:60]}")
            task = asyncio.get_running_loop().create_task(
                self._submit_voice(outcome.text, self._load_generation)
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        elif outcome.kind == "error":
            self._append_notice(outcome.notice or "Speech recognition failed.")
        else:
            log.info("Capture ended without an utterance")

    async def _submit_voice(self, text: str, generation: int) -> None:
        # Spoken turns queue behind a pending reply instead of being rejected.
        while self.state.sending or self.state.loading:
            await self._settled.wait()
        if generation != self._load_generation:
            log.info("Feature changed before the voice message was sent, dropping it")
            return
        await self.submit(text, auto_speak=True)

    async def drain(self) -> None:
        """Wait for voice-triggered submissions still in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
