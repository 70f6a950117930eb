from functools import lru_cache
from typing import List, Optional

import logging
import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # General
    environment: str = Field("local", alias="ENVIRONMENT")
    app_name: str = Field("chat-session-api", alias="APP_NAME")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Responder
    responder_backend: str = Field("demo", alias="RESPONDER_BACKEND")  # "demo" | "openai"
    openai_api_key: Optional[str] = Field(None, alias="OPENAI_API_KEY")
    llm_model: str = Field("gpt-4.1-mini", alias="LLM_MODEL")
    llm_temperature: float = Field(0.3, alias="LLM_TEMPERATURE")
    responder_system_prompt: str = Field(
        "You are a helpful assistant. Users may send text or upload files and folders; "
        "answer concisely and refer to uploaded items by name.",
        alias="RESPONDER_SYSTEM_PROMPT",
    )
    responder_timeout_seconds: float = Field(30.0, alias="RESPONDER_TIMEOUT_SECONDS")

    # Session behaviour
    response_min_delay_ms: int = Field(1500, alias="RESPONSE_MIN_DELAY_MS")
    strict_trigger_serialization: bool = Field(False, alias="STRICT_TRIGGER_SERIALIZATION")
    seed_greeting: bool = Field(True, alias="SEED_GREETING")
    greeting_text: str = Field(
        "Hello! You can send messages or drop folders here.",
        alias="GREETING_TEXT",
    )
    responder_error_text: str = Field(
        "Something went wrong; please try again.",
        alias="RESPONDER_ERROR_TEXT",
    )
    # Sessions idle for longer than this are ended by a background sweep; 0 disables it.
    session_idle_ttl_seconds: float = Field(3600.0, alias="SESSION_IDLE_TTL_SECONDS")
    session_sweep_interval_seconds: float = Field(60.0, alias="SESSION_SWEEP_INTERVAL_SECONDS")

    # Security
    cors_origins: List[str] = Field(default_factory=list, alias="CORS_ORIGINS")
    api_keys: List[str] = Field(default_factory=list, alias="API_KEYS")

    # Observability
    prometheus_enabled: bool = Field(True, alias="PROMETHEUS_ENABLED")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    @property
    def response_min_delay_seconds(self) -> float:
        return max(0, self.response_min_delay_ms) / 1000.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Centralised settings factory.

    If configuration cannot be loaded (e.g. invalid env for list fields),
    a small, sanitised snapshot of the relevant environment is logged before
    the exception is re-raised.
    """
    try:
        return Settings()  # type: ignore[call-arg]
    except Exception as exc:
        # Use stdlib logging here to avoid circular imports with the structured logger.
        logging.error("Failed to initialise Settings from environment.", exc_info=exc)
        logging.error(
            "Settings env snapshot (sanitised)",
            extra={
                "ENVIRONMENT": os.getenv("ENVIRONMENT"),
                "RESPONDER_BACKEND": os.getenv("RESPONDER_BACKEND"),
                "OPENAI_API_KEY_present": bool(os.getenv("OPENAI_API_KEY")),
                "RESPONSE_MIN_DELAY_MS_raw": os.getenv("RESPONSE_MIN_DELAY_MS"),
                # These are the fields that most often cause parsing issues:
                "CORS_ORIGINS_raw": os.getenv("CORS_ORIGINS"),
                "API_KEYS_raw": os.getenv("API_KEYS"),
            },
        )
        raise
