"""Model provider adapters."""

from moviechat.providers.base import (
    ModelProvider,
    ModelResponse,
    PromptMessage,
    TokenUsage,
    ToolCallData,
)

__all__ = [
    "ModelProvider",
    "ModelResponse",
    "PromptMessage",
    "TokenUsage",
    "ToolCallData",
]
