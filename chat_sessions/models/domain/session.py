from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ProtocolState(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"


class SessionInfo(BaseModel):
    session_id: str
    created_at: datetime
    state: ProtocolState
    is_composing: bool
    message_count: int
    pending_message_id: Optional[int] = None
    queued_triggers: int = 0
    closed: bool = False

    model_config = ConfigDict(from_attributes=True)
