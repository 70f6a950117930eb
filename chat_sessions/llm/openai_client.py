from __future__ import annotations

from typing import Dict, List, Optional

from openai import AsyncOpenAI

from chat_sessions.core.config import get_settings
from chat_sessions.core.errors import ResponderError
from chat_sessions.llm.base_client import BaseLLMClient, LLMResult, LLMUsage


class OpenAILLMClient(BaseLLMClient):
    def __init__(self, api_key: Optional[str] = None) -> None:
        settings = get_settings()
        key = api_key or settings.openai_api_key
        if not key:
            raise ResponderError("OPENAI_API_KEY is not configured.")
        # Timeouts are enforced by the response protocol; retries would only stretch them.
        self._client = AsyncOpenAI(api_key=key, max_retries=0)

    async def chat(
        self,
        *,
        model: str,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
    ) -> LLMResult:
        response = await self._client.chat.completions.create(
            model=model,
            messages=messages,  # type: ignore[arg-type]
            temperature=temperature,
        )
        choice = response.choices[0]
        content = choice.message.content or ""

        usage = LLMUsage(
            prompt_tokens=getattr(response.usage, "prompt_tokens", 0),
            completion_tokens=getattr(response.usage, "completion_tokens", 0),
            total_tokens=getattr(response.usage, "total_tokens", 0),
        )
        return LLMResult(content=content, usage=usage, model=response.model or model)


_llm_client: Optional[OpenAILLMClient] = None


def get_openai_client() -> OpenAILLMClient:
    global _llm_client
    if _llm_client is None:
        _llm_client = OpenAILLMClient()
    return _llm_client
