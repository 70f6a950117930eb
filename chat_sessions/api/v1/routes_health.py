from __future__ import annotations

from fastapi import APIRouter

from chat_sessions.core.config import get_settings
from chat_sessions.models.api.responses import HealthResponse
from chat_sessions.services.session_service import get_session_registry

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(
        status="ok",
        sessions=len(get_session_registry()),
        responder_backend=settings.responder_backend,
        api_version="v1",
    )
