from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from chat_sessions.core.config import get_settings
from chat_sessions.core.errors import InvalidInputError, SessionClosedError, SessionNotFoundError
from chat_sessions.core.logging import get_logger
from chat_sessions.core.utils import generate_uuid, utc_now
from chat_sessions.models.domain.attachment import RawEntry
from chat_sessions.models.domain.message import Message, MessageFactory
from chat_sessions.models.domain.session import ProtocolState, SessionInfo
from chat_sessions.responders.base import BaseResponder
from chat_sessions.responders.registry import get_responder
from chat_sessions.services.ingestion_service import IngestionPipeline
from chat_sessions.services.response_protocol import ResponseProtocol
from chat_sessions.services.transcript_store import TranscriptStore

SessionEvent = Dict[str, Any]


class ChatSession:
    """
    One conversation: its transcript, message ids, responder cycle and
    upload pipeline. Everything here lives only as long as the session.
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        *,
        responder: Optional[BaseResponder] = None,
        seed_greeting: Optional[bool] = None,
        timeout_seconds: Optional[float] = None,
        min_delay_seconds: Optional[float] = None,
        strict: Optional[bool] = None,
    ) -> None:
        settings = get_settings()
        self.session_id = session_id or generate_uuid()
        self.created_at: datetime = utc_now()
        self.last_activity: datetime = self.created_at
        self.logger = get_logger("ChatSession").bind(session_id=self.session_id)

        self._closed = False
        self._subscribers: List[asyncio.Queue] = []

        self.store = TranscriptStore(session_id=self.session_id)
        self.factory = MessageFactory()
        self.protocol = ResponseProtocol(
            self.store,
            self.factory,
            responder or get_responder(),
            session_id=self.session_id,
            timeout_seconds=timeout_seconds,
            min_delay_seconds=min_delay_seconds,
            strict=strict,
            on_state_change=self._on_state_change,
        )
        self.pipeline = IngestionPipeline(
            self.store,
            self.factory,
            self.protocol,
            session_id=self.session_id,
        )

        if settings.seed_greeting if seed_greeting is None else seed_greeting:
            self.store.append(self.factory.create_assistant_message(settings.greeting_text))
        self.store.add_listener(self._on_append)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def state(self) -> ProtocolState:
        return self.protocol.state

    @property
    def is_composing(self) -> bool:
        return self.protocol.state is ProtocolState.AWAITING_RESPONSE

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def touch(self) -> None:
        self.last_activity = utc_now()

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(self.session_id)
        self.touch()

    @staticmethod
    def _validate_text(text: Optional[str]) -> str:
        cleaned = (text or "").strip()
        if not cleaned:
            raise InvalidInputError()
        return cleaned

    async def submit_text(self, text: Optional[str]) -> Optional[Message]:
        """
        Append a user text message and request a reply.

        Blank input is dropped without surfacing an error; ``None`` is returned.
        """
        self._ensure_open()
        try:
            cleaned = self._validate_text(text)
        except InvalidInputError:
            self.logger.debug("ChatSession.blank_text_dropped")
            return None

        self.protocol.ensure_ready()
        message = self.factory.create_user_message(cleaned)
        self.store.append(message)
        self.logger.info("ChatSession.text_submitted", message_id=message.id)
        self.protocol.trigger(message)
        return message

    async def upload(self, raw_entries: Sequence[RawEntry]) -> Optional[Message]:
        self._ensure_open()
        return await self.pipeline.ingest(raw_entries)

    def transcript(self) -> Tuple[Message, ...]:
        return self.store.all()

    def messages_after(self, message_id: Optional[int]) -> Tuple[Message, ...]:
        return self.store.after(message_id)

    async def wait_idle(self) -> None:
        await self.protocol.wait_idle()

    def info(self) -> SessionInfo:
        pending = self.protocol.pending
        return SessionInfo(
            session_id=self.session_id,
            created_at=self.created_at,
            state=self.protocol.state,
            is_composing=self.is_composing,
            message_count=len(self.store),
            pending_message_id=pending.message_id if pending else None,
            queued_triggers=self.protocol.queued,
            closed=self._closed,
        )

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.protocol.close()
        self.store.remove_listener(self._on_append)
        self._publish({"event": "session_closed", "timestamp": utc_now().isoformat()})
        self._subscribers.clear()
        self.logger.info("ChatSession.closed", message_count=len(self.store))

    def _on_append(self, message: Message) -> None:
        self._publish({"event": "message_appended", "message": message.model_dump(mode="json")})

    def _on_state_change(self, state: ProtocolState, message_id: Optional[int]) -> None:
        self._publish(
            {
                "event": "status_changed",
                "status": state.value,
                "message_id": message_id,
                "timestamp": utc_now().isoformat(),
            }
        )

    def _publish(self, payload: SessionEvent) -> None:
        for queue in list(self._subscribers):
            queue.put_nowait(payload)


class SessionRegistry:
    """In-memory index of the live sessions of this process."""

    def __init__(self) -> None:
        self._sessions: Dict[str, ChatSession] = {}
        self.logger = get_logger("SessionRegistry")

    def create(self, *, seed_greeting: Optional[bool] = None, responder: Optional[BaseResponder] = None) -> ChatSession:
        session = ChatSession(seed_greeting=seed_greeting, responder=responder)
        self._sessions[session.session_id] = session
        self.logger.info("SessionRegistry.session_created", session_id=session.session_id)
        return session

    def get(self, session_id: str) -> ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        session.touch()
        return session

    def sweep_idle(self, max_idle_seconds: float, now: Optional[datetime] = None) -> List[str]:
        """
        End sessions with no activity for ``max_idle_seconds``.

        Sessions that are composing a reply or have an open event stream are
        kept. Returns the ids of the sessions that were ended.
        """
        now = now or utc_now()
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if not session.is_composing
            and session.subscriber_count == 0
            and (now - session.last_activity).total_seconds() >= max_idle_seconds
        ]
        for session_id in expired:
            self.end(session_id)
        if expired:
            self.logger.info("SessionRegistry.idle_swept", ended=len(expired), remaining=len(self._sessions))
        return expired

    def end(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)
        session.close()
        self.logger.info("SessionRegistry.session_ended", session_id=session_id)

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.end(session_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions


_session_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    global _session_registry
    if _session_registry is None:
        _session_registry = SessionRegistry()
    return _session_registry
