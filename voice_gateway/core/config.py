"""Application configuration."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: str
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.4
    openai_timeout_seconds: float = 20.0

    # Booking API
    booking_api_base_url: str = "https://book8-ai.vercel.app"
    booking_agent_api_key: Optional[str] = None
    booking_api_key_header: str = "x-book8-agent-key"

    # Business resolution
    resolver_url: Optional[str] = None
    resolver_timeout_seconds: float = 5.0
    default_business_id: Optional[str] = None
    business_profiles_file: Optional[str] = None

    # Call lifecycle notifications
    core_api_base_url: Optional[str] = None
    core_api_internal_secret: Optional[str] = None
    notification_timeout_seconds: float = 5.0

    # Voice
    tts_voice: str = "Polly.Matthew-Neural"
    tts_language: str = "en-US"
    reply_max_sentences: int = 2
    reply_max_chars: int = 220

    # Sessions and agent loop
    session_ttl_seconds: int = 20 * 60
    session_sweep_interval_seconds: int = 60
    tool_call_timeout_seconds: float = 10.0
    max_tool_rounds: int = 3
    history_max_messages: int = 24

    # Server
    base_url: Optional[str] = None
    enable_debug_endpoints: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
