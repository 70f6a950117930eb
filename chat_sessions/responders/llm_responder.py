from __future__ import annotations

from typing import Dict, List, Optional

from chat_sessions.core.config import get_settings
from chat_sessions.core.errors import ResponderError
from chat_sessions.core.logging import get_logger
from chat_sessions.llm.base_client import BaseLLMClient, LLMResult
from chat_sessions.llm.openai_client import get_openai_client
from chat_sessions.models.domain.responder import ResponderRequest, ResponderResponse
from chat_sessions.responders.base import BaseResponder


class LLMResponder(BaseResponder):
    name = "openai"

    def __init__(self, llm: Optional[BaseLLMClient] = None) -> None:
        self.settings = get_settings()
        self.llm = llm or get_openai_client()
        self.logger = get_logger("LLMResponder")

    def _build_messages(self, request: ResponderRequest) -> List[Dict[str, str]]:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": self.settings.responder_system_prompt},
        ]
        messages.extend(request.history)

        user_content = request.text
        if request.attachment_summary:
            user_content = f"{user_content}\n\nAttachments: {request.attachment_summary}"
        messages.append({"role": "user", "content": user_content})
        return messages

    async def respond(self, request: ResponderRequest) -> ResponderResponse:
        messages = self._build_messages(request)
        self.logger.info(
            "LLMResponder.respond.start",
            model=self.settings.llm_model,
            history_length=len(request.history),
            attachment_count=request.attachment_count,
        )

        result: LLMResult = await self.llm.chat(
            model=self.settings.llm_model,
            messages=messages,
            temperature=self.settings.llm_temperature,
        )

        content = result.content.strip()
        if not content:
            raise ResponderError("Empty response from model.")

        self.logger.info(
            "LLMResponder.respond.completed",
            model=result.model,
            prompt_tokens=result.usage.prompt_tokens,
            completion_tokens=result.usage.completion_tokens,
        )
        return ResponderResponse(text=content)
