from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from smartdesk.config import Settings
from smartdesk.errors import AppError, UpstreamQuotaExceeded, UpstreamUnavailable


class LLMNotConfigured(RuntimeError):
    pass


@dataclass
class ToolCall:
    name: str
    arguments: str


@dataclass
class LLMReply:
    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)


class LLMClient:
    """Thin async wrapper over an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: Optional[str] = None,
        http_client=None,
        max_retries: int = 2,
    ):
        self.model = model
        self.client = None
        if api_key:
            self.client = AsyncOpenAI(
                api_key=api_key, base_url=base_url, http_client=http_client, max_retries=max_retries
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(settings.llm_api_key, settings.llm_model, settings.llm_base_url)

    def _require_client(self) -> AsyncOpenAI:
        if self.client is None:
            raise LLMNotConfigured("LLM API key is missing")
        return self.client

    async def chat_completion(self, messages: List[Dict[str, str]], temperature: float = 0.3) -> str:
        client = self._require_client()
        response = await client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
        )
        return response.choices[0].message.content or ""

    async def complete_with_tools(
        self,
        messages: List[Dict[str, str]],
        tools: List[Dict[str, Any]],
        temperature: float = 0.3,
    ) -> LLMReply:
        client = self._require_client()
        response = await client.chat.completions.create(
            model=self.model,
            messages=messages,
            tools=tools,
            temperature=temperature,
        )
        message = response.choices[0].message
        calls = [
            ToolCall(name=call.function.name, arguments=call.function.arguments or "{}")
            for call in (message.tool_calls or [])
            if getattr(call, "function", None) is not None
        ]
        return LLMReply(text=message.content or "", tool_calls=calls)

    async def close(self):
        if self.client is not None:
            await self.client.close()


def upstream_error(exc: Exception) -> AppError:
    """Map a failed model call onto the quota or unavailable outcome."""
    if isinstance(exc, openai.RateLimitError):
        return UpstreamQuotaExceeded()
    if isinstance(exc, openai.APIStatusError) and exc.status_code == 429:
        return UpstreamQuotaExceeded()
    text = str(exc).lower()
    if "429" in text or "quota" in text:
        return UpstreamQuotaExceeded()
    return UpstreamUnavailable()
