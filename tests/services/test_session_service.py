from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from chat_sessions.core.errors import ConcurrentTriggerViolationError, SessionClosedError, SessionNotFoundError
from chat_sessions.models.domain.attachment import RawEntry
from chat_sessions.models.domain.message import MessageOrigin
from chat_sessions.models.domain.responder import ResponderRequest, ResponderResponse
from chat_sessions.models.domain.session import ProtocolState
from chat_sessions.responders.demo_responder import TEXT_REPLY, DemoResponder
from chat_sessions.core.utils import utc_now
from chat_sessions.services.session_service import ChatSession, SessionRegistry


class HangingResponder:
    name = "hanging"

    def __init__(self) -> None:
        self.calls = 0

    async def respond(self, request: ResponderRequest) -> ResponderResponse:
        self.calls += 1
        if self.calls == 1:
            await asyncio.sleep(10)
        return ResponderResponse(text="recovered")


@pytest.mark.asyncio
async def test_new_session_is_seeded_with_greeting():
    session = ChatSession(responder=DemoResponder())

    transcript = session.transcript()
    assert len(transcript) == 1
    assert transcript[0].origin is MessageOrigin.ASSISTANT
    assert transcript[0].text == "Hello! You can send messages or drop folders here."
    assert session.state is ProtocolState.IDLE


@pytest.mark.asyncio
async def test_submit_text_gains_user_message_then_reply():
    session = ChatSession(responder=DemoResponder())
    initial = len(session.transcript())

    message = await session.submit_text("  hello  ")
    assert message.text == "hello"
    assert session.is_composing is True

    await session.wait_idle()

    transcript = session.transcript()
    assert len(transcript) == initial + 2
    assert transcript[-2] == message
    assert transcript[-1].text == TEXT_REPLY
    assert session.is_composing is False


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
async def test_blank_text_is_dropped_silently(text):
    session = ChatSession(responder=DemoResponder(), seed_greeting=False)

    assert await session.submit_text(text) is None
    assert session.transcript() == ()
    assert session.state is ProtocolState.IDLE


@pytest.mark.asyncio
async def test_transcript_length_accounts_for_every_submission():
    session = ChatSession(responder=DemoResponder())

    await session.submit_text("one")
    await session.submit_text("   ")
    await session.upload([RawEntry(name="a"), RawEntry(name="b", media_type="text/plain")])
    await session.upload([])
    await session.submit_text("two")
    await session.wait_idle()

    transcript = session.transcript()
    # greeting + 3 accepted submissions + 3 replies
    assert len(transcript) == 7
    assert [m.origin for m in transcript[1:4]] == [MessageOrigin.USER] * 3
    replies = [m for m in transcript if m.in_reply_to is not None]
    assert [r.in_reply_to for r in replies] == [m.id for m in transcript[1:4]]
    assert [m.id for m in transcript] == sorted(m.id for m in transcript)


@pytest.mark.asyncio
async def test_timeout_leaves_session_usable():
    session = ChatSession(responder=HangingResponder(), timeout_seconds=0.05)
    initial = len(session.transcript())

    await session.submit_text("first")
    await session.wait_idle()

    error_reply = session.transcript()[-1]
    assert error_reply.is_error is True
    assert error_reply.origin is MessageOrigin.ASSISTANT
    assert session.state is ProtocolState.IDLE
    assert len(session.transcript()) == initial + 2

    await session.submit_text("second")
    await session.wait_idle()
    assert session.transcript()[-1].text == "recovered"


@pytest.mark.asyncio
async def test_closed_session_rejects_submissions_and_discards_reply():
    session = ChatSession(responder=HangingResponder())
    await session.submit_text("hello")
    session.close()
    await session.wait_idle()

    assert [m.text for m in session.transcript()][-1] == "hello"
    assert session.info().closed is True
    with pytest.raises(SessionClosedError):
        await session.submit_text("again")
    with pytest.raises(SessionClosedError):
        await session.upload([RawEntry(name="x")])


@pytest.mark.asyncio
async def test_subscribers_receive_appends_and_status_changes():
    session = ChatSession(responder=DemoResponder(), seed_greeting=False)
    queue = session.subscribe()

    message = await session.submit_text("hello")
    await session.wait_idle()

    events = []
    while not queue.empty():
        events.append(queue.get_nowait())

    assert [e["event"] for e in events] == [
        "message_appended",
        "status_changed",
        "message_appended",
        "status_changed",
    ]
    assert events[0]["message"]["id"] == message.id
    assert events[1]["status"] == "awaiting_response"
    assert events[2]["message"]["in_reply_to"] == message.id
    assert events[3]["status"] == "idle"


@pytest.mark.asyncio
async def test_session_info_reports_pending_state():
    session = ChatSession(responder=HangingResponder())
    message = await session.submit_text("hello")

    info = session.info()
    assert info.state is ProtocolState.AWAITING_RESPONSE
    assert info.is_composing is True
    assert info.pending_message_id == message.id
    assert info.message_count == 2
    session.close()


@pytest.mark.asyncio
async def test_registry_lifecycle():
    registry = SessionRegistry()
    session = registry.create(seed_greeting=False, responder=DemoResponder())

    assert registry.get(session.session_id) is session
    assert session.session_id in registry
    assert len(registry) == 1

    registry.end(session.session_id)
    assert session.closed is True
    assert len(registry) == 0
    with pytest.raises(SessionNotFoundError):
        registry.get(session.session_id)
    with pytest.raises(SessionNotFoundError):
        registry.end(session.session_id)


@pytest.mark.asyncio
async def test_strict_session_rejects_overlapping_submissions():
    session = ChatSession(responder=HangingResponder(), strict=True)
    await session.submit_text("first")
    length = len(session.transcript())

    with pytest.raises(ConcurrentTriggerViolationError):
        await session.submit_text("second")
    with pytest.raises(ConcurrentTriggerViolationError):
        await session.upload([RawEntry(name="a.txt", media_type="text/plain")])

    assert len(session.transcript()) == length
    assert session.transcript()[-1].text == "first"
    assert session.protocol.queued == 0
    session.close()


@pytest.mark.asyncio
async def test_sweep_ends_only_idle_sessions():
    registry = SessionRegistry()
    stale = registry.create(seed_greeting=False, responder=DemoResponder())
    fresh = registry.create(seed_greeting=False, responder=DemoResponder())
    composing = registry.create(seed_greeting=False, responder=HangingResponder())
    watched = registry.create(seed_greeting=False, responder=DemoResponder())

    await composing.submit_text("still waiting")
    queue = watched.subscribe()
    an_hour_ago = utc_now() - timedelta(hours=1)
    for session in (stale, composing, watched):
        session.last_activity = an_hour_ago
    registry.get(fresh.session_id)

    ended = registry.sweep_idle(600)

    assert ended == [stale.session_id]
    assert stale.closed is True
    assert stale.session_id not in registry
    assert len(registry) == 3

    watched.unsubscribe(queue)
    registry.close_all()


@pytest.mark.asyncio
async def test_registry_get_refreshes_activity():
    registry = SessionRegistry()
    session = registry.create(seed_greeting=False, responder=DemoResponder())
    session.last_activity = utc_now() - timedelta(hours=1)

    registry.get(session.session_id)

    assert registry.sweep_idle(600) == []
    assert session.session_id in registry
