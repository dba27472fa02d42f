"""Provider adapter interface and data classes.

All provider adapters implement the ``ModelProvider`` protocol.
Data classes are immutable where possible (frozen dataclasses with slots).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class TokenUsage:
    """Token counts from a single model call."""

    input_tokens: int
    output_tokens: int

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed (input + output)."""
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True, slots=True)
class ToolCallData:
    """A tool call from a model response."""

    id: str
    name: str
    arguments: str  # JSON string of arguments


@dataclass(frozen=True, slots=True)
class PromptMessage:
    """A single message in a prompt sequence.

    ``tool_calls`` is set on assistant messages that requested tools;
    ``tool_call_id`` is set on ``tool`` messages carrying a tool result.
    """

    role: str  # "system", "user", "assistant", "tool"
    content: str
    tool_call_id: str | None = None
    tool_calls: tuple[ToolCallData, ...] = ()


@dataclass(slots=True)
class ModelResponse:
    """Complete response from a model call."""

    content: str
    model_id: str
    usage: TokenUsage
    finish_reason: str  # "stop", "length", "tool_calls"
    latency_ms: float
    raw_response: object = field(default=None, repr=False)
    tool_calls: list[ToolCallData] | None = None


@runtime_checkable
class ModelProvider(Protocol):
    """Protocol that all provider adapters must satisfy.

    Implementations are stateless: they hold connection config but no
    conversation state. The agent conversation owns the history.
    """

    @property
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'openai')."""
        ...

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
        """Send a prompt and wait for complete response.

        Args:
            messages: Prompt messages.
            model_id: Model to use.
            max_tokens: Max output tokens.
            temperature: Sampling temperature.
            response_format: If ``"json"``, request JSON output mode.
            tools: Tool definitions (``name``, ``description``,
                ``parameters``) for function calling.

        Raises ProviderError on failure.
        """
        ...

    async def health_check(self) -> bool:
        """Verify the provider is reachable and credentials are valid.

        Returns True if healthy, False otherwise. Must not raise.
        """
        ...
