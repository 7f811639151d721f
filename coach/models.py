"""Pydantic models for type safety."""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Feature(str, Enum):
    FREE_TALK = "freeTalk"
    VOCABULARY = "vocabulary"
    GRAMMAR = "grammar"
    MISTAKE_REVIEW = "mistakeReview"


class SessionPhase(str, Enum):
    IDLE = "Idle"
    LOADING_HISTORY = "LoadingHistory"
    AWAITING_RESPONSE = "AwaitingResponse"
    AWAITING_RETRY = "AwaitingRetry"


class MistakeRecord(BaseModel):
    """One detected mistake. Only the response parser creates these."""
    id: int
    original_text: str = ""
    corrected_text: str = ""
    brief_explanation: str = ""
    detailed_explanation: Optional[str] = None  # Filled lazily on demand
    awaiting_retry: bool = True
    retried: bool = False


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    sender: Literal["user", "tutor"]
    text: str
    is_typing: bool = False
    mistake: Optional[MistakeRecord] = None

    @property
    def has_mistake(self) -> bool:
        return self.mistake is not None


class ParsedResponse(BaseModel):
    """Structured outcome of one tutor response."""
    has_mistake: bool
    text: str
    mistake: Optional[MistakeRecord] = None

    @property
    def corrected_text(self) -> str:
        return self.mistake.corrected_text if self.mistake else ""

    @property
    def brief_explanation(self) -> str:
        return self.mistake.brief_explanation if self.mistake else ""

    @property
    def detailed_explanation_ru(self) -> str:
        if not self.mistake:
            return ""
        return self.mistake.detailed_explanation or ""

    @property
    def mistake_id(self) -> Optional[int]:
        return self.mistake.id if self.mistake else None


class HistoryRecord(BaseModel):
    """One persisted turn, as stored by the history store."""
    user_id: str
    feature: Feature
    sender: Literal["user", "tutor"]
    text: str
    created_at: datetime


class ContextEntry(BaseModel):
    role: Literal["user", "tutor"]
    text: str


class PromptRequest(BaseModel):
    """Language-service-agnostic request."""
    system_instruction: str
    context: List[ContextEntry] = Field(default_factory=list)


class TranscriptAlternative(BaseModel):
    transcript: str
    confidence: Optional[float] = None  # Some hosts omit it on interim results


class TranscriptResult(BaseModel):
    is_final: bool
    alternatives: List[TranscriptAlternative] = Field(default_factory=list)


class TranscriptEvent(BaseModel):
    """One fragment event from the transcription host."""
    results: List[TranscriptResult] = Field(default_factory=list)


class RecognitionConfig(BaseModel):
    """Parameters handed to the transcription host when a capture starts."""
    locale: str = "en-US"
    continuous: bool = False
    interim_results: bool = True
    max_alternatives: int = 3
    hints: List[str] = Field(default_factory=list)
    grammar: Optional[str] = None


class CaptureOutcome(BaseModel):
    """The single terminal event of one capture session."""
    kind: Literal["utterance", "no_utterance", "error"]
    text: str = ""
    low_confidence: bool = False
    error_kind: Optional[str] = None
    notice: Optional[str] = None


class SessionState(BaseModel):
    """Mutable session state owned by the conversation orchestrator."""
    current_feature: Feature = Feature.FREE_TALK
    messages: List[Message] = Field(default_factory=list)
    sending: bool = False
    loading: bool = False
    retry_pending_id: Optional[int] = None
