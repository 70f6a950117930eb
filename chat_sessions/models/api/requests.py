from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from chat_sessions.models.domain.attachment import RawEntry


class CreateSessionRequest(BaseModel):
    greeting: Optional[bool] = None


class SubmitTextRequest(BaseModel):
    # Blank text is accepted here and dropped by the session.
    text: str = ""


class UploadBatchRequest(BaseModel):
    entries: List[RawEntry] = Field(default_factory=list)
