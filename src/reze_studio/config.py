from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file for convenience.
    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    # Keys
    gemini_api_key: str | None = Field(default=None, validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY"))
    openai_api_key: str | None = None

    # Which backend answers the assistant tab: "gemini" or "openai".
    chat_provider: str = "gemini"

    # Models
    gemini_image_model: str = "imagen-4.0-generate-001"
    gemini_edit_model: str = "gemini-2.5-flash-image"
    gemini_video_model: str = "veo-2.0-generate-001"
    gemini_chat_model: str = "gemini-2.5-flash"
    openai_text_model: str = "gpt-4.1-mini"

    # Video job timers (seconds)
    video_poll_interval_seconds: float = 10.0
    video_message_interval_seconds: float = 5.0
    # Status checks before a job is declared timed out; None polls forever.
    video_max_poll_attempts: int | None = 60

    # In-memory sessions: idle ones expire, and the oldest go first past the cap.
    session_idle_ttl_seconds: float | None = 3600.0
    max_sessions: int | None = 500

    session_cookie: str = "reze_session"
    log_level: str = "INFO"


settings = Settings()
