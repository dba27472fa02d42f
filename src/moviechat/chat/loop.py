"""Conversation loop: drive one user turn to its final answer.

Rounds are strictly sequential.  Within a round every pending request is
dispatched and its result submitted before the next request is touched,
and the agent is only called again once the whole round is resolved.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from moviechat.core.errors import StepLimitExceededError

if TYPE_CHECKING:
    from collections.abc import Callable

    from moviechat.agent.base import AgentConversation, Answer
    from moviechat.tools.base import ActionContext, ActionRequest, ActionResult
    from moviechat.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ConversationLoop:
    """Runs turns of an agent conversation, dispatching requested actions.

    Args:
        conversation: The agent capability.
        registry: Action tools available for dispatch.
        context: Calling user and unit-of-work factory for handlers.
        max_rounds: Cap on action-required rounds per talk; 0 disables it.
        observer: Called with every (request, result) pair.
    """

    def __init__(
        self,
        conversation: AgentConversation,
        registry: ToolRegistry,
        context: ActionContext,
        *,
        max_rounds: int = 10,
        observer: Callable[[ActionRequest, ActionResult], None] | None = None,
    ) -> None:
        if max_rounds < 0:
            msg = f"max_rounds must be >= 0, got {max_rounds}"
            raise ValueError(msg)
        self._conversation = conversation
        self._registry = registry
        self._context = context
        self._max_rounds = max_rounds
        self._observer = observer

    async def talk(self, prompt: str) -> Answer:
        """Submit *prompt* and resolve action rounds until the agent answers.

        Raises:
            StepLimitExceededError: If the agent asks for more than
                ``max_rounds`` action rounds.
            ProviderError: If the agent cannot be reached.
        """
        turn = await self._conversation.submit_prompt(prompt)
        rounds = 0
        while not turn.is_answered:
            rounds += 1
            if self._max_rounds and rounds > self._max_rounds:
                logger.warning(
                    "Agent exceeded %d action rounds, aborting turn", self._max_rounds
                )
                raise StepLimitExceededError(self._max_rounds)
            logger.debug("Action round %d: %d request(s)", rounds, len(turn.requests))
            for request in turn.requests:
                result = await self._registry.dispatch(request, self._context)
                await self._conversation.submit_action_result(request.tool_id, result)
                if self._observer is not None:
                    self._observer(request, result)
            turn = await self._conversation.continue_turn()

        assert turn.answer is not None
        return turn.answer
