from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


@dataclass(frozen=True)
class ResponderRequest:
    text: str
    attachment_summary: Optional[str] = None
    attachment_count: int = 0
    history: List[Dict[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class ResponderResponse:
    text: str


@dataclass
class PendingResponse:
    message_id: int
    request: ResponderRequest
    started_at: datetime
