from __future__ import annotations

from typing import Dict, List

import pytest

from chat_sessions.core.errors import ResponderError
from chat_sessions.llm.base_client import BaseLLMClient, LLMResult, LLMUsage
from chat_sessions.models.domain.responder import ResponderRequest
from chat_sessions.responders.demo_responder import TEXT_REPLY, DemoResponder
from chat_sessions.responders.llm_responder import LLMResponder
from chat_sessions.responders.registry import ResponderRegistry, get_responder


class DummyLLM(BaseLLMClient):
    def __init__(self, content: str = "Here is a summary.") -> None:
        self.content = content
        self.calls: List[List[Dict[str, str]]] = []

    async def chat(
        self,
        *,
        model: str,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
    ) -> LLMResult:
        self.calls.append(messages)
        return LLMResult(
            content=self.content,
            usage=LLMUsage(prompt_tokens=10, completion_tokens=20, total_tokens=30),
            model=model,
        )


@pytest.mark.asyncio
async def test_demo_responder_replies_to_text():
    response = await DemoResponder().respond(ResponderRequest(text="hello"))
    assert response.text == TEXT_REPLY


@pytest.mark.asyncio
async def test_demo_responder_counts_uploaded_files():
    request = ResponderRequest(
        text="Uploaded 2 file(s)",
        attachment_summary="a (folder), b (text/plain)",
        attachment_count=2,
    )
    response = await DemoResponder().respond(request)
    assert response.text == "Received 2 file(s). Here's what I found:"


@pytest.mark.asyncio
async def test_llm_responder_sends_history_and_attachments():
    llm = DummyLLM()
    responder = LLMResponder(llm=llm)
    request = ResponderRequest(
        text="Uploaded 1 file(s)",
        attachment_summary="notes.txt (text/plain)",
        attachment_count=1,
        history=[{"role": "assistant", "content": "Hello!"}],
    )

    response = await responder.respond(request)

    assert response.text == "Here is a summary."
    messages = llm.calls[0]
    assert messages[0]["role"] == "system"
    assert messages[1] == {"role": "assistant", "content": "Hello!"}
    assert messages[-1]["role"] == "user"
    assert "notes.txt (text/plain)" in messages[-1]["content"]


@pytest.mark.asyncio
async def test_llm_responder_rejects_empty_completion():
    responder = LLMResponder(llm=DummyLLM(content="  "))
    with pytest.raises(ResponderError):
        await responder.respond(ResponderRequest(text="hello"))


def test_registry_resolves_configured_backend():
    assert isinstance(get_responder(), DemoResponder)


def test_registry_rejects_unknown_backend():
    registry = ResponderRegistry()
    assert registry.names == ["demo", "openai"]
    with pytest.raises(KeyError):
        registry.get("carrier-pigeon")


def test_registry_caches_instances():
    registry = ResponderRegistry()
    registry.register("custom", DemoResponder)
    assert registry.get("custom") is registry.get("custom")
