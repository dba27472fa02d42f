"""Exception hierarchy for moviechat.

Every module imports from here. The hierarchy is:

    MovieChatError
    ├── ProviderError(provider_id)
    │   ├── ProviderAuthError
    │   ├── ProviderRateLimitError(retry_after)
    │   ├── ProviderTimeoutError
    │   ├── ProviderOverloadedError
    │   └── ModelNotFoundError
    ├── ConversationError
    │   ├── StepLimitExceededError(limit)
    │   ├── TalkTimeoutError(timeout)
    │   ├── UnresolvedActionsError(tool_ids)
    │   └── UnknownToolCallError(tool_id)
    ├── ConfigError
    └── StorageError
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class MovieChatError(Exception):
    """Base exception for all moviechat errors."""


# ─── Provider Errors ──────────────────────────────────────────


class ProviderError(MovieChatError):
    """Base for model provider errors (the agent is unreachable)."""

    def __init__(self, provider_id: str, message: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"[{provider_id}] {message}")


class ProviderAuthError(ProviderError):
    """Invalid or missing API key."""


class ProviderRateLimitError(ProviderError):
    """Rate limit exceeded. Includes retry_after if available."""

    def __init__(self, provider_id: str, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        msg = "Rate limited"
        if retry_after is not None:
            msg += f" (retry after {retry_after}s)"
        super().__init__(provider_id, msg)


class ProviderTimeoutError(ProviderError):
    """Model call timed out."""


class ProviderOverloadedError(ProviderError):
    """Provider is overloaded (529, 503)."""


class ModelNotFoundError(ProviderError):
    """Requested model not available from this provider."""


# ─── Conversation Errors ──────────────────────────────────────


class ConversationError(MovieChatError):
    """Base for conversation loop errors."""


class StepLimitExceededError(ConversationError):
    """The agent kept requesting work past the configured round cap."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Conversation exceeded step limit ({limit} rounds)")


class TalkTimeoutError(ConversationError):
    """A single talk call did not finish in time."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Conversation turn timed out after {timeout:g}s")


class UnresolvedActionsError(ConversationError):
    """The agent was asked to continue while action results are missing."""

    def __init__(self, tool_ids: Iterable[str]) -> None:
        self.tool_ids = sorted(tool_ids)
        super().__init__(
            f"Missing action results for: {', '.join(self.tool_ids)}"
        )


class UnknownToolCallError(ConversationError):
    """An action result was submitted for a tool id that is not pending."""

    def __init__(self, tool_id: str) -> None:
        self.tool_id = tool_id
        super().__init__(f"No pending action request with id: {tool_id}")


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(MovieChatError):
    """Invalid configuration."""


# ─── Storage Errors ───────────────────────────────────────────


class StorageError(MovieChatError):
    """Database or seeding error."""
