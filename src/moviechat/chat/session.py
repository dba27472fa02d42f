"""Chat session: the long-lived per-chat object behind the CLI."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from moviechat.agent.conversation import LLMConversation
from moviechat.chat.loop import ConversationLoop
from moviechat.core.errors import TalkTimeoutError
from moviechat.store.queries import build_query_tools
from moviechat.tools.actions import default_action_tools
from moviechat.tools.base import ActionContext
from moviechat.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from moviechat.agent.base import AgentConversation, Answer
    from moviechat.config.schema import MovieChatConfig
    from moviechat.providers.base import ModelProvider
    from moviechat.tools.base import ActionRequest, ActionResult

logger = logging.getLogger(__name__)


def default_registry() -> ToolRegistry:
    """Registry holding the standard action tools."""
    registry = ToolRegistry()
    for tool in default_action_tools():
        registry.register(tool)
    return registry


class ChatSession:
    """Owns one conversation and serializes talks on it.

    Only one :meth:`talk` runs at a time; a second caller waits for the
    first to finish.
    """

    def __init__(
        self,
        conversation: AgentConversation,
        loop: ConversationLoop,
        *,
        timeout: float = 0.0,
    ) -> None:
        self._conversation = conversation
        self._loop = loop
        self._timeout = timeout
        self._lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        provider: ModelProvider,
        session_factory: async_sessionmaker[AsyncSession],
        config: MovieChatConfig,
        *,
        chat_id: str,
        user_id: int,
        registry: ToolRegistry | None = None,
        observer: Callable[[ActionRequest, ActionResult], None] | None = None,
    ) -> ChatSession:
        """Open (or create) chat *chat_id* wired to the standard tools."""
        registry = registry or default_registry()
        conversation = await LLMConversation.open(
            provider,
            session_factory,
            config.agent,
            chat_id=chat_id,
            user_id=user_id,
            action_tools=registry.list_definitions(),
            query_tools=build_query_tools(),
        )
        loop = ConversationLoop(
            conversation,
            registry,
            ActionContext(user_id=conversation.user_id, session_factory=session_factory),
            max_rounds=config.chat.max_action_rounds,
            observer=observer,
        )
        return cls(conversation, loop, timeout=config.chat.talk_timeout)

    @property
    def conversation(self) -> AgentConversation:
        return self._conversation

    async def talk(self, prompt: str) -> Answer:
        """Run one user turn and return the agent's answer.

        Raises:
            ValueError: If *prompt* is empty or whitespace.
            TalkTimeoutError: If the turn exceeds the configured timeout.
        """
        if not prompt.strip():
            msg = "Prompt cannot be empty"
            raise ValueError(msg)
        async with self._lock:
            if not self._timeout:
                return await self._loop.talk(prompt)
            try:
                async with asyncio.timeout(self._timeout):
                    return await self._loop.talk(prompt)
            except TimeoutError as e:
                logger.warning("Talk timed out after %gs", self._timeout)
                raise TalkTimeoutError(self._timeout) from e

    async def remove(self) -> None:
        """Delete the persisted conversation."""
        async with self._lock:
            await self._conversation.delete()
