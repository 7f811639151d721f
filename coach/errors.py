"""Error taxonomy for the tutoring session."""

from __future__ import annotations


class CoachError(Exception):
    """Base class for every error raised by the session core."""


class ConfigurationMissing(CoachError):
    pass


class PersistenceFailure(CoachError):
    pass


class LanguageServiceError(CoachError):
    """Non-2xx or malformed response from the language service."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class EmptyGenerationResult(LanguageServiceError):
    pass


class CaptureError(CoachError):
    """Errors from the speech capture pipeline.

    `notice` is the text shown to the learner as a tutor message.
    """

    kind = "unclassified"
    notice = "Speech recognition failed. Please try again."

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.notice)
        self.detail = detail


class NetworkFailure(CaptureError):
    kind = "network"
    notice = (
        "Network error during speech recognition. "
        "Please check your connection and try again."
    )


class PermissionDenied(CaptureError):
    kind = "permission_denied"
    notice = (
        "Microphone access is required for voice input. "
        "Please enable microphone permissions and try again."
    )


class UnsupportedCapability(CaptureError):
    kind = "unsupported"
    notice = (
        "Speech recognition is not available here. "
        "Please type your message instead."
    )


class NoSpeechDetected(CaptureError):
    kind = "no_speech"
    notice = "No speech detected."


class AudioCaptureFailure(CaptureError):
    kind = "audio_capture"
    notice = "Audio capture error. Please check your microphone and try again."


class UnclassifiedCaptureError(CaptureError):
    pass


# Error codes reported by hosted speech recognizers.
CAPTURE_ERROR_CODES: dict[str, type[CaptureError]] = {
    "network": NetworkFailure,
    "not-allowed": PermissionDenied,
    "service-not-allowed": PermissionDenied,
    "no-speech": NoSpeechDetected,
    "audio-capture": AudioCaptureFailure,
}


def capture_error_from_code(code: str, detail: str = "") -> CaptureError:
    """Map a host error code to its CaptureError; unknown codes are unclassified."""
    error_cls = CAPTURE_ERROR_CODES.get(code, UnclassifiedCaptureError)
    return error_cls(detail or code)
