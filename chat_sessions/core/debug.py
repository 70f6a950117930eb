# chat_sessions/core/debug.py

from __future__ import annotations

from typing import Any, Dict

from chat_sessions.core.config import Settings
from chat_sessions.core.logging import get_logger


def _mask_secret(value: str | None) -> str:
    if not value:
        return "<empty>"
    # Expose only a small portion to confirm wiring without leaking full secrets.
    if len(value) <= 8:
        return "<redacted>"
    return f"{value[:3]}***{value[-3:]}"


def build_settings_debug_snapshot(settings: Settings) -> Dict[str, Any]:
    """
    Build a safe, non-sensitive snapshot of key runtime settings.
    """
    return {
        "environment": settings.environment,
        "app_name": settings.app_name,
        "log_level": settings.log_level,
        "responder_backend": settings.responder_backend,
        "llm_model": settings.llm_model,
        "openai_api_key_masked": _mask_secret(settings.openai_api_key),
        "responder_timeout_seconds": settings.responder_timeout_seconds,
        "response_min_delay_ms": settings.response_min_delay_ms,
        "strict_trigger_serialization": settings.strict_trigger_serialization,
        "seed_greeting": settings.seed_greeting,
        "session_idle_ttl_seconds": settings.session_idle_ttl_seconds,
        "api_keys_count": len(settings.api_keys),
        "cors_origins": settings.cors_origins,
        "prometheus_enabled": settings.prometheus_enabled,
    }


def log_settings_debug(settings: Settings) -> None:
    logger = get_logger("SettingsDebug")
    snapshot = build_settings_debug_snapshot(settings)
    logger.debug("Runtime settings snapshot", **snapshot)
