"""OpenAI provider adapter (chat completions with function calling)."""

from __future__ import annotations

import contextlib
import time
from typing import TYPE_CHECKING, Any

import openai

from moviechat.core.errors import (
    ModelNotFoundError,
    ProviderAuthError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from moviechat.providers.base import ModelResponse, TokenUsage, ToolCallData

if TYPE_CHECKING:
    from moviechat.providers.base import PromptMessage

PROVIDER_ID = "openai"


def _map_error(e: openai.APIError) -> Exception:
    """Map OpenAI SDK errors to the moviechat error hierarchy."""
    if isinstance(e, openai.AuthenticationError):
        return ProviderAuthError(PROVIDER_ID, str(e))
    if isinstance(e, openai.RateLimitError):
        retry_after = None
        if hasattr(e, "response") and e.response is not None:
            raw = e.response.headers.get("retry-after")
            if raw is not None:
                with contextlib.suppress(ValueError):
                    retry_after = float(raw)
        return ProviderRateLimitError(PROVIDER_ID, retry_after=retry_after)
    if isinstance(e, openai.APITimeoutError):
        return ProviderTimeoutError(PROVIDER_ID, str(e))
    if isinstance(e, openai.InternalServerError):
        return ProviderOverloadedError(PROVIDER_ID, str(e))
    if isinstance(e, openai.NotFoundError):
        return ModelNotFoundError(PROVIDER_ID, str(e))
    # Connection failures and unknown API errors are treated as transient
    return ProviderOverloadedError(PROVIDER_ID, str(e))


def _build_messages(messages: list[PromptMessage]) -> list[dict[str, Any]]:
    """Convert PromptMessages to OpenAI chat message format."""
    api_messages: list[dict[str, Any]] = []
    for msg in messages:
        entry: dict[str, Any] = {"role": msg.role, "content": msg.content}
        if msg.tool_call_id is not None:
            entry["tool_call_id"] = msg.tool_call_id
        if msg.tool_calls:
            entry["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": tc.arguments},
                }
                for tc in msg.tool_calls
            ]
            entry["content"] = msg.content or None
        api_messages.append(entry)
    return api_messages


def _build_tools(tools: list[dict[str, object]]) -> list[dict[str, object]]:
    """Wrap generic tool definitions in OpenAI's function envelope."""
    return [{"type": "function", "function": tool} for tool in tools]


class OpenAIProvider:
    """Provider adapter for OpenAI (and OpenAI-compatible) chat models."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        else:
            kwargs: dict[str, Any] = {}
            if api_key is not None:
                kwargs["api_key"] = api_key
            if base_url is not None:
                kwargs["base_url"] = base_url
            self._client = openai.AsyncOpenAI(**kwargs)

    @property
    def provider_id(self) -> str:
        return PROVIDER_ID

    async def send(
        self,
        messages: list[PromptMessage],
        model_id: str,
        *,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        response_format: str | None = None,
        tools: list[dict[str, object]] | None = None,
    ) -> ModelResponse:
        kwargs: dict[str, Any] = {
            "model": model_id,
            "max_completion_tokens": max_tokens,
            "messages": _build_messages(messages),
            "temperature": temperature,
        }
        if response_format == "json":
            kwargs["response_format"] = {"type": "json_object"}
        if tools:
            kwargs["tools"] = _build_tools(tools)

        start = time.monotonic()
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            raise _map_error(e) from e

        latency_ms = (time.monotonic() - start) * 1000

        tool_calls_data: list[ToolCallData] | None = None
        if response.choices:
            message = response.choices[0].message
            content = message.content or ""
            finish_reason = response.choices[0].finish_reason or "stop"
            if message.tool_calls:
                tool_calls_data = [
                    ToolCallData(
                        id=tc.id,
                        name=tc.function.name,
                        arguments=tc.function.arguments,
                    )
                    for tc in message.tool_calls
                ]
        else:
            content = ""
            finish_reason = "stop"

        if response.usage:
            usage = TokenUsage(
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens,
            )
        else:
            usage = TokenUsage(input_tokens=0, output_tokens=0)

        return ModelResponse(
            content=content,
            model_id=model_id,
            usage=usage,
            finish_reason=finish_reason,
            latency_ms=latency_ms,
            raw_response=response,
            tool_calls=tool_calls_data,
        )

    async def health_check(self) -> bool:
        try:
            await self._client.models.list()
        except Exception:
            return False
        return True
