from __future__ import annotations

import itertools
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from chat_sessions.core.utils import utc_now
from chat_sessions.models.domain.attachment import Attachment


class MessageOrigin(str, Enum):
    ASSISTANT = "assistant"
    USER = "user"


class Message(BaseModel):
    id: int
    origin: MessageOrigin
    text: str
    # None marks a plain text message; uploads always carry a tuple.
    attachments: Optional[Tuple[Attachment, ...]] = None
    created_at: datetime
    in_reply_to: Optional[int] = None
    is_error: bool = False

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @property
    def has_attachments(self) -> bool:
        return self.attachments is not None

    def attachment_summary(self) -> Optional[str]:
        if self.attachments is None:
            return None
        return ", ".join(attachment.describe() for attachment in self.attachments)


def upload_summary(count: int) -> str:
    return f"Uploaded {count} file(s)"


class MessageFactory:
    """
    Builds transcript messages for one session.

    Ids come from a per-session counter, so every message gets an id strictly
    greater than any id issued before it. An assistant reply is only created
    once its triggering user message exists, which keeps replies ordered after
    their trigger.
    """

    def __init__(self, start: int = 1) -> None:
        self._ids = itertools.count(start)

    def _next_id(self) -> int:
        return next(self._ids)

    def create_user_message(
        self,
        text: Optional[str] = None,
        *,
        attachments: Optional[Sequence[Attachment]] = None,
    ) -> Message:
        if attachments is not None:
            attachments = tuple(attachments)
            if not text:
                text = upload_summary(len(attachments))
        if not text:
            raise ValueError("A user message needs text or attachments.")
        return Message(
            id=self._next_id(),
            origin=MessageOrigin.USER,
            text=text,
            attachments=attachments,
            created_at=utc_now(),
        )

    def create_assistant_message(
        self,
        text: str,
        *,
        in_reply_to: Optional[int] = None,
        is_error: bool = False,
    ) -> Message:
        return Message(
            id=self._next_id(),
            origin=MessageOrigin.ASSISTANT,
            text=text,
            created_at=utc_now(),
            in_reply_to=in_reply_to,
            is_error=is_error,
        )
