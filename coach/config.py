"""Configuration from .env file."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Optional on purpose: explanations fall back to a template without it.
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_BASE_URL: str | None = None
    LLM_TIMEOUT_SECONDS: float = 60.0
    LOG_LEVEL: str = "INFO"

    DATA_DIR: str = "data"
    TUTOR_NAME: str = "Ava"
    HISTORY_WINDOW: int = 10  # Turns rendered into the system instruction

    # Speech recognition host parameters
    SPEECH_LOCALE: str = "en-US"
    SPEECH_MAX_ALTERNATIVES: int = 3

    # Endpointing (milliseconds)
    SILENCE_TIMEOUT_MS: int = 2000
    IDLE_TIMER_MS: int = 2500
    END_GRACE_MS: int = 200
    NO_SPEECH_RETRY_MS: int = 500

    INTERIM_CONFIDENCE_FLOOR: float = 0.3
    LOW_CONFIDENCE_THRESHOLD: float = 0.6

    ELEVENLABS_API_KEY: str | None = None
    ELEVENLABS_BASE_URL: str = "https://api.elevenlabs.io"
    ELEVENLABS_VOICE_ID: str = "21m00Tcm4TlvDq8ikWAM"

    # If true, spoken replies are also written to data/audio/ for debugging.
    SAVE_TTS_AUDIO: bool = False

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
