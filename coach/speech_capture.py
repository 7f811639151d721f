"""Continuous speech capture with silence endpointing.

One controller owns one recognition session at a time. The transcription
host pushes events into it (on_start/on_result/on_error/on_end) and the
controller turns them into exactly one terminal CaptureOutcome:

    start -> fragments -> silence stop -> end -> grace delay -> outcome

Timers go through an injectable scheduler and clock so tests can drive
time by hand.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional, Protocol

from coach.config import settings
from coach.errors import (
    CaptureError,
    NoSpeechDetected,
    PermissionDenied,
    UnclassifiedCaptureError,
    UnsupportedCapability,
    capture_error_from_code,
)
from coach.models import CaptureOutcome, Feature, RecognitionConfig, TranscriptEvent
from coach.transcripts import final_text, interim_preview, jsgf_grammar

log = logging.getLogger(__name__)


# Closed vocabulary per feature, passed to the host as a best-effort bias.
RECOGNITION_HINTS: dict[Feature, list[str]] = {
    Feature.FREE_TALK: ["hello", "how", "what", "when", "where", "why", "please", "thank you"],
    Feature.VOCABULARY: ["word", "definition", "meaning", "example", "synonym", "antonym"],
    Feature.GRAMMAR: ["noun", "verb", "adjective", "adverb", "tense", "sentence", "question"],
    Feature.MISTAKE_REVIEW: ["correct", "wrong", "mistake", "error", "fix", "review"],
}


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


Scheduler = Callable[[float, Callable[[], None]], Cancellable]


class TranscriptionBackend(Protocol):
    """Host speech recognizer.

    After start() the host reports through the listener's on_result,
    on_error and on_end methods. stop() must eventually lead to on_end.
    """

    def is_available(self) -> bool: ...

    async def request_permission(self) -> bool: ...

    def start(self, config: RecognitionConfig, listener: "SpeechCaptureController") -> None: ...

    def stop(self) -> None: ...


def recognition_config(feature: Feature) -> RecognitionConfig:
    hints = RECOGNITION_HINTS.get(feature, RECOGNITION_HINTS[Feature.FREE_TALK])
    return RecognitionConfig(
        locale=settings.SPEECH_LOCALE,
        continuous=False,
        interim_results=True,
        max_alternatives=settings.SPEECH_MAX_ALTERNATIVES,
        hints=list(hints),
        grammar=jsgf_grammar(hints),
    )


class SpeechCaptureController:
    def __init__(
        self,
        backend: Optional[TranscriptionBackend],
        on_outcome: Optional[Callable[[CaptureOutcome], None]] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Optional[Scheduler] = None,
        silence_timeout_ms: int = settings.SILENCE_TIMEOUT_MS,
        idle_timer_ms: int = settings.IDLE_TIMER_MS,
        end_grace_ms: int = settings.END_GRACE_MS,
        no_speech_retry_ms: int = settings.NO_SPEECH_RETRY_MS,
        low_confidence_threshold: float = settings.LOW_CONFIDENCE_THRESHOLD,
        interim_confidence_floor: float = settings.INTERIM_CONFIDENCE_FLOOR,
    ):
        self.backend = backend
        self.on_outcome = on_outcome
        self._clock = clock
        self._scheduler = scheduler
        self.silence_timeout = silence_timeout_ms / 1000
        self.idle_timeout = idle_timer_ms / 1000
        self.end_grace = end_grace_ms / 1000
        self.no_speech_retry = no_speech_retry_ms / 1000
        self.low_confidence_threshold = low_confidence_threshold
        self.interim_confidence_floor = interim_confidence_floor

        # Per-session state
        self.capturing = False
        self.has_speech = False
        self.last_speech_at = 0.0
        self.accumulated_text = ""
        self.low_confidence = False
        self.preview = ""

        self._config: Optional[RecognitionConfig] = None
        self._idle_timer: Optional[Cancellable] = None
        self._idle_armed_at = 0.0
        self._grace_timer: Optional[Cancellable] = None
        self._restart_timer: Optional[Cancellable] = None
        self._auto_restarted = False
        self._finished = True
        self._waiter: Optional[asyncio.Future] = None

    # ------------------------------------------------------------------
    # Commands

    async def start(self, feature: Feature = Feature.FREE_TALK) -> None:
        """Acquire the microphone and begin one recognition session.

        Raises UnsupportedCapability when no host recognizer exists and
        PermissionDenied when the microphone is refused.
        """
        if self.capturing:
            log.info("Speech capture already active")
            return
        if self.backend is None or not self.backend.is_available():
            raise UnsupportedCapability("no speech transcription capability")
        try:
            granted = await self.backend.request_permission()
        except Exception as e:
            raise PermissionDenied(str(e)) from e
        if not granted:
            raise PermissionDenied("microphone permission refused")

        self._settle_grace()
        self._cancel_timers()
        self._config = recognition_config(feature)
        self._auto_restarted = False
        self._finished = False
        self._begin()

    async def capture(self, feature: Feature = Feature.FREE_TALK) -> CaptureOutcome:
        """Run start() and wait for the terminal outcome of the session."""
        if not self.capturing:
            self._settle_grace()
        if self._waiter is None or self._waiter.done():
            self._waiter = asyncio.get_running_loop().create_future()
        waiter = self._waiter
        if not self.capturing:
            try:
                await self.start(feature)
            except CaptureError as e:
                self._waiter = None
                return self._error_outcome(e)
        return await waiter

    def stop(self) -> None:
        """Ask the host to end the session; the outcome follows on_end."""
        if not self.capturing:
            return
        self._cancel(self._idle_timer)
        self._idle_timer = None
        self.backend.stop()

    def cancel(self) -> None:
        """Abandon the session: captured text is dropped, outcome is no_utterance."""
        was_capturing = self.capturing
        self._cancel_timers()
        self.capturing = False
        self.has_speech = False
        self.accumulated_text = ""
        self.low_confidence = False
        self.preview = ""
        self._finish(CaptureOutcome(kind="no_utterance"))
        if was_capturing:
            self.backend.stop()

    # ------------------------------------------------------------------
    # Host callbacks

    def on_result(self, event: TranscriptEvent) -> None:
        # Trailing fragments may still land during the grace delay.
        if self._finished or (not self.capturing and self._grace_timer is None):
            return

        self.last_speech_at = self._clock()
        self.has_speech = True

        text, low_confidence = final_text(event.results, self.low_confidence_threshold)
        if low_confidence:
            log.warning(f"Low confidence transcript accepted: {text!r}")
            self.low_confidence = True
        if text:
            self.accumulated_text += text

        if self.capturing:
            self._arm_idle_timer()
            preview = interim_preview(event.results, self.interim_confidence_floor)
            if preview.strip():
                self.preview = preview.strip()

    def on_error(self, code: str, message: str = "") -> None:
        if self._finished:
            return
        error = capture_error_from_code(code, message)

        if isinstance(error, NoSpeechDetected):
            if not self._auto_restarted:
                log.info("No speech detected, retrying once")
                self._auto_restarted = True
                self._restart_timer = self._schedule(self.no_speech_retry, self._auto_restart)
            else:
                log.info("No speech detected again")
            return

        log.warning(f"Speech capture error ({error.kind}): {error.detail}")
        self.capturing = False
        self.preview = ""
        self._cancel_timers()
        self._finish(self._error_outcome(error))

    def on_end(self) -> None:
        if self._finished:
            return
        self.capturing = False
        self.preview = ""
        self._cancel(self._idle_timer)
        self._idle_timer = None
        if self._restart_timer is not None:
            return
        self._grace_timer = self._schedule(self.end_grace, self._emit_final)

    # ------------------------------------------------------------------
    # Internals

    def _begin(self) -> None:
        self.has_speech = False
        self.last_speech_at = self._clock()
        self.accumulated_text = ""
        self.low_confidence = False
        self.preview = ""
        self.capturing = True
        try:
            self.backend.start(self._config, self)
        except CaptureError:
            self.capturing = False
            raise
        except Exception as e:
            self.capturing = False
            raise UnclassifiedCaptureError(f"Could not start speech recognition: {e}") from e

    def _arm_idle_timer(self) -> None:
        self._cancel(self._idle_timer)
        self._idle_armed_at = self._clock()
        self._idle_timer = self._schedule(self.idle_timeout, self._on_idle)

    def _on_idle(self) -> None:
        self._idle_timer = None
        now = self._clock()
        if not (self.capturing and self.has_speech):
            return
        if (
            now - self.last_speech_at >= self.silence_timeout
            and now - self._idle_armed_at >= self.idle_timeout
        ):
            log.info("Stopping capture after silence")
            self.stop()

    def _auto_restart(self) -> None:
        self._restart_timer = None
        if self._finished or self.capturing:
            return
        try:
            self._begin()
        except CaptureError as e:
            log.warning(f"Automatic capture restart failed: {e}")
            self._finish(self._error_outcome(e))

    def _emit_final(self) -> None:
        self._grace_timer = None
        text = self.accumulated_text.strip()
        if text and self.has_speech:
            outcome = CaptureOutcome(kind="utterance", text=text, low_confidence=self.low_confidence)
        else:
            log.info("No usable speech, nothing to submit")
            outcome = CaptureOutcome(kind="no_utterance")
        self.has_speech = False
        self.accumulated_text = ""
        self._finish(outcome)

    def _settle_grace(self) -> None:
        # A previous session still in its grace delay emits now.
        if self._grace_timer is not None:
            self._cancel(self._grace_timer)
            self._emit_final()

    def _finish(self, outcome: CaptureOutcome) -> None:
        if self._finished:
            return
        self._finished = True
        waiter, self._waiter = self._waiter, None
        if waiter is not None and not waiter.done():
            waiter.set_result(outcome)
        if self.on_outcome is not None:
            self.on_outcome(outcome)

    def _error_outcome(self, error: CaptureError) -> CaptureOutcome:
        return CaptureOutcome(kind="error", error_kind=error.kind, notice=error.notice)

    def _schedule(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        if self._scheduler is not None:
            return self._scheduler(delay, callback)
        return asyncio.get_running_loop().call_later(delay, callback)

    def _cancel_timers(self) -> None:
        for timer in (self._idle_timer, self._grace_timer, self._restart_timer):
            self._cancel(timer)
        self._idle_timer = self._grace_timer = self._restart_timer = None

    @staticmethod
    def _cancel(timer: Optional[Cancellable]) -> None:
        if timer is not None:
            timer.cancel()
