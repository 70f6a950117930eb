from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from chat_sessions.core.logging import get_logger
from chat_sessions.models.domain.message import Message

AppendListener = Callable[[Message], None]


class TranscriptStore:
    """
    Append-only, ordered log of the messages of one session.

    ``append`` is the only mutator. Snapshots returned by ``all`` are tuples,
    so a caller holding an earlier snapshot never observes later appends.
    """

    def __init__(self, session_id: Optional[str] = None) -> None:
        self._messages: List[Message] = []
        self._listeners: List[AppendListener] = []
        self.logger = get_logger("TranscriptStore").bind(session_id=session_id)

    def append(self, message: Message) -> None:
        if self._messages and message.id <= self._messages[-1].id:
            raise ValueError(
                f"Message id {message.id} is not greater than last id {self._messages[-1].id}."
            )
        self._messages.append(message)
        self.logger.debug(
            "TranscriptStore.append",
            message_id=message.id,
            origin=message.origin.value,
            length=len(self._messages),
        )
        for listener in list(self._listeners):
            listener(message)

    def all(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def after(self, message_id: Optional[int]) -> Tuple[Message, ...]:
        if message_id is None:
            return self.all()
        return tuple(m for m in self._messages if m.id > message_id)

    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def add_listener(self, listener: AppendListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: AppendListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def __len__(self) -> int:
        return len(self._messages)
