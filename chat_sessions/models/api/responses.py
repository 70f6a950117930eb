from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from chat_sessions.models.domain.message import Message
from chat_sessions.models.domain.session import SessionInfo


class SessionResponse(SessionInfo):
    api_version: str


class TranscriptResponse(BaseModel):
    session_id: str
    messages: List[Message]
    is_composing: bool
    api_version: str


class SubmissionResponse(BaseModel):
    session_id: str
    # None when the submission was a no-op (blank text, empty batch).
    message: Optional[Message] = None
    accepted: bool
    api_version: str


class HealthResponse(BaseModel):
    status: str
    sessions: int
    responder_backend: str
    api_version: str
