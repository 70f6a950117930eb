from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable, Deque, Dict, List, Optional

from prometheus_client import Counter, Histogram

from chat_sessions.core.config import get_settings
from chat_sessions.core.errors import (
    ConcurrentTriggerViolationError,
    ResponderError,
    ResponderTimeoutError,
)
from chat_sessions.core.logging import get_logger
from chat_sessions.core.utils import start_timer, stop_timer, utc_now
from chat_sessions.models.domain.message import Message, MessageFactory, MessageOrigin
from chat_sessions.models.domain.responder import (
    PendingResponse,
    ResponderRequest,
    ResponderResponse,
)
from chat_sessions.models.domain.session import ProtocolState
from chat_sessions.responders.base import BaseResponder
from chat_sessions.services.transcript_store import TranscriptStore

RESPONSES_TOTAL = Counter(
    "chat_responder_responses_total",
    "Responder resolutions by outcome",
    ["outcome"],
)

RESPONDER_LATENCY = Histogram(
    "chat_responder_latency_seconds",
    "Time spent waiting for the responder in seconds",
)

StateListener = Callable[[ProtocolState, Optional[int]], None]


class ResponseProtocol:
    """
    Serialized request/response cycle between one session and its responder.

    States: IDLE -> AWAITING_RESPONSE -> IDLE. ``trigger`` never blocks; the
    responder runs in a background task on the current event loop. Triggers
    arriving while a response is pending are queued and serviced in
    submission order, unless strict mode is on, in which case they raise
    ``ConcurrentTriggerViolationError``.

    Every trigger ends with exactly one assistant message appended: the
    responder's text on success, or a visible error message on failure.
    After ``close`` nothing more is appended.
    """

    def __init__(
        self,
        store: TranscriptStore,
        factory: MessageFactory,
        responder: BaseResponder,
        *,
        session_id: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        min_delay_seconds: Optional[float] = None,
        strict: Optional[bool] = None,
        error_text: Optional[str] = None,
        on_state_change: Optional[StateListener] = None,
    ) -> None:
        settings = get_settings()
        self.store = store
        self.factory = factory
        self.responder = responder
        self.timeout_seconds = (
            settings.responder_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.min_delay_seconds = (
            settings.response_min_delay_seconds if min_delay_seconds is None else min_delay_seconds
        )
        self.strict = settings.strict_trigger_serialization if strict is None else strict
        self.error_text = error_text or settings.responder_error_text
        self.on_state_change = on_state_change
        self.logger = get_logger("ResponseProtocol").bind(session_id=session_id)

        self._state = ProtocolState.IDLE
        self._pending: Optional[PendingResponse] = None
        self._queue: Deque[Message] = deque()
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def state(self) -> ProtocolState:
        return self._state

    @property
    def pending(self) -> Optional[PendingResponse]:
        return self._pending

    @property
    def queued(self) -> int:
        return len(self._queue)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def busy(self) -> bool:
        return self._state is ProtocolState.AWAITING_RESPONSE or bool(self._queue)

    def ensure_ready(self) -> None:
        """
        Raise in strict mode when a trigger would overlap the pending one.

        Callers check this before appending a user message so a rejected
        submission leaves the transcript untouched.
        """
        if self.strict and self.busy:
            pending_id = self._pending.message_id if self._pending else -1
            raise ConcurrentTriggerViolationError(pending_id)

    def trigger(self, message: Message) -> None:
        if self._closed:
            self.logger.warning("ResponseProtocol.trigger_after_close", message_id=message.id)
            return

        if self.busy:
            pending_id = self._pending.message_id if self._pending else -1
            if self.strict:
                raise ConcurrentTriggerViolationError(pending_id, message.id)
            self._queue.append(message)
            self.logger.info(
                "ResponseProtocol.trigger_queued",
                message_id=message.id,
                pending_message_id=pending_id,
                queued=len(self._queue),
            )
            return

        self._start(message)

    async def wait_idle(self) -> None:
        """Wait until no trigger is pending or queued."""
        await self._idle.wait()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        dropped = len(self._queue)
        self._queue.clear()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self.logger.info(
            "ResponseProtocol.closed",
            pending_message_id=self._pending.message_id if self._pending else None,
            dropped_triggers=dropped,
        )
        # A task cancelled before its first step never runs its finally block.
        self._task = None
        self._pending = None
        self._state = ProtocolState.IDLE
        self._idle.set()

    def _start(self, message: Message) -> None:
        request = self._build_request(message)
        self._pending = PendingResponse(message_id=message.id, request=request, started_at=utc_now())
        self._idle.clear()
        self._set_state(ProtocolState.AWAITING_RESPONSE, message.id)
        self.logger.info("ResponseProtocol.trigger_started", message_id=message.id)
        self._task = asyncio.get_running_loop().create_task(self._run(self._pending))

    def _build_request(self, message: Message) -> ResponderRequest:
        # Replies to earlier triggers carry higher ids than a queued message;
        # user messages after it are still waiting in the queue.
        history: List[Dict[str, str]] = [
            {"role": m.origin.value, "content": m.text}
            for m in self.store.all()
            if m.id != message.id
            and not m.is_error
            and not (m.origin is MessageOrigin.USER and m.id > message.id)
        ]
        return ResponderRequest(
            text=message.text,
            attachment_summary=message.attachment_summary(),
            attachment_count=len(message.attachments or ()),
            history=history,
        )

    async def _call_responder(self, request: ResponderRequest) -> ResponderResponse:
        try:
            with RESPONDER_LATENCY.time():
                response = await asyncio.wait_for(
                    self.responder.respond(request),
                    timeout=self.timeout_seconds,
                )
        except asyncio.TimeoutError as exc:
            raise ResponderTimeoutError() from exc
        except ResponderError:
            raise
        except Exception as exc:
            self.logger.error("ResponseProtocol.responder_failed", error=str(exc), exc_info=exc)
            raise ResponderError(str(exc) or "Responder request failed.") from exc

        if not response.text.strip():
            raise ResponderError("Responder returned an empty reply.")
        return response

    async def _run(self, pending: PendingResponse) -> None:
        timer_start = start_timer()
        try:
            try:
                response = await self._call_responder(pending.request)
                text, is_error, outcome = response.text, False, "success"
            except ResponderTimeoutError as exc:
                self.logger.warning(
                    "ResponseProtocol.responder_timeout",
                    message_id=pending.message_id,
                    timeout_seconds=self.timeout_seconds,
                    error=exc.message,
                )
                text, is_error, outcome = self.error_text, True, "timeout"
            except ResponderError as exc:
                self.logger.warning(
                    "ResponseProtocol.responder_error",
                    message_id=pending.message_id,
                    error=exc.message,
                )
                text, is_error, outcome = self.error_text, True, "error"

            remaining = self.min_delay_seconds - stop_timer(timer_start) / 1000.0
            if remaining > 0:
                await asyncio.sleep(remaining)

            if self._closed:
                RESPONSES_TOTAL.labels("discarded").inc()
                self.logger.info("ResponseProtocol.reply_discarded", message_id=pending.message_id)
                return

            reply = self.factory.create_assistant_message(
                text,
                in_reply_to=pending.message_id,
                is_error=is_error,
            )
            self.store.append(reply)
            RESPONSES_TOTAL.labels(outcome).inc()
            self.logger.info(
                "ResponseProtocol.reply_appended",
                message_id=pending.message_id,
                reply_id=reply.id,
                outcome=outcome,
                duration_ms=int(stop_timer(timer_start)),
            )
        finally:
            self._finish()

    def _finish(self) -> None:
        self._pending = None
        self._task = None
        if not self._closed and self._queue:
            self._start(self._queue.popleft())
            return
        self._set_state(ProtocolState.IDLE, None)
        self._idle.set()

    def _set_state(self, state: ProtocolState, message_id: Optional[int]) -> None:
        self._state = state
        if self.on_state_change is not None and not self._closed:
            self.on_state_change(state, message_id)
