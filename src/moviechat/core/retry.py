"""Retry with exponential backoff for agent round-trips.

A model call that fails before the provider produced a response can be
re-issued safely: the conversation history is only extended once a
response arrives.  Rate limits, timeouts and overload are transient;
everything else (auth, unknown model, bad request) propagates at once.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from moviechat.core.errors import (
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from moviechat.config.schema import AgentConfig

T = TypeVar("T")

logger = logging.getLogger(__name__)

_TRANSIENT: tuple[type[Exception], ...] = (
    ProviderRateLimitError,
    ProviderTimeoutError,
    ProviderOverloadedError,
)


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """How often and how patiently a model call is re-issued."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    jitter: bool = True

    @classmethod
    def from_agent(cls, agent: AgentConfig) -> RetryConfig:
        return cls(
            max_retries=agent.max_retries,
            base_delay=agent.retry_base_delay,
            max_delay=agent.retry_max_delay,
        )

    def delay_for(self, retry: int, error: Exception) -> float:
        """Seconds to wait before the *retry*-th re-issue (1-based).

        A rate limit's ``retry_after`` wins over the exponential schedule.
        """
        if isinstance(error, ProviderRateLimitError) and error.retry_after is not None:
            return min(error.retry_after, self.max_delay)
        delay = min(self.base_delay * 2 ** (retry - 1), self.max_delay)
        if self.jitter:
            delay *= random.uniform(0.5, 1.5)
        return delay


def is_retryable(error: Exception) -> bool:
    return isinstance(error, _TRANSIENT)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    what: str = "Model call",
) -> T:
    """Await ``fn()``, re-issuing it after transient provider errors.

    Args:
        fn: Zero-arg callable performing one model round-trip.
        config: Retry policy; defaults to :class:`RetryConfig`.
        what: Label for the warning logged before each retry.

    Raises:
        The last transient error once retries are exhausted, or any
        non-transient error immediately.
    """
    cfg = config or RetryConfig()
    retry = 0
    while True:
        try:
            return await fn()
        except _TRANSIENT as e:
            if retry >= cfg.max_retries:
                raise
            retry += 1
            delay = cfg.delay_for(retry, e)
            logger.warning(
                "%s failed (%s), retry %d/%d in %.1fs",
                what,
                e,
                retry,
                cfg.max_retries,
                delay,
            )
            await asyncio.sleep(delay)
