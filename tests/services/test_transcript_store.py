from __future__ import annotations

import pytest

from chat_sessions.models.domain.message import MessageFactory
from chat_sessions.services.transcript_store import TranscriptStore


def test_snapshots_do_not_see_later_appends():
    store = TranscriptStore()
    factory = MessageFactory()
    store.append(factory.create_assistant_message("greeting"))

    snapshot = store.all()
    store.append(factory.create_user_message("hello"))

    assert len(snapshot) == 1
    assert len(store.all()) == 2
    assert isinstance(snapshot, tuple)


def test_all_is_idempotent_without_appends():
    store = TranscriptStore()
    factory = MessageFactory()
    store.append(factory.create_user_message("hello"))
    assert store.all() == store.all()


def test_after_returns_newer_messages_only():
    store = TranscriptStore()
    factory = MessageFactory()
    for text in ("one", "two", "three"):
        store.append(factory.create_user_message(text))

    assert [m.text for m in store.after(1)] == ["two", "three"]
    assert store.after(None) == store.all()
    assert store.after(3) == ()
    assert store.last().text == "three"


def test_append_rejects_out_of_order_ids():
    store = TranscriptStore()
    factory = MessageFactory()
    first = factory.create_user_message("first")
    second = factory.create_user_message("second")
    store.append(second)

    with pytest.raises(ValueError):
        store.append(first)
    assert len(store) == 1


def test_listeners_see_every_append():
    store = TranscriptStore()
    factory = MessageFactory()
    seen = []
    store.add_listener(seen.append)

    store.append(factory.create_user_message("hello"))
    store.remove_listener(seen.append)
    store.append(factory.create_user_message("again"))

    assert [m.text for m in seen] == ["hello"]
