"""Core errors and shared utilities."""

from moviechat.core.errors import (
    ConfigError,
    ConversationError,
    ModelNotFoundError,
    MovieChatError,
    ProviderAuthError,
    ProviderError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    StepLimitExceededError,
    StorageError,
    TalkTimeoutError,
    UnknownToolCallError,
    UnresolvedActionsError,
)
from moviechat.core.retry import RetryConfig, is_retryable, retry_with_backoff

__all__ = [
    "ConfigError",
    "ConversationError",
    "ModelNotFoundError",
    "MovieChatError",
    "ProviderAuthError",
    "ProviderError",
    "ProviderOverloadedError",
    "ProviderRateLimitError",
    "ProviderTimeoutError",
    "RetryConfig",
    "StepLimitExceededError",
    "StorageError",
    "TalkTimeoutError",
    "UnknownToolCallError",
    "UnresolvedActionsError",
    "is_retryable",
    "retry_with_backoff",
]
