"""LLM-backed agent conversation with persisted history.

The conversation advertises every tool to the model as a function.
Query tool calls are executed right here against the store and their
rows are fed back to the model; every other call (an action tool, or a
name nobody registered) is surfaced to the caller as an
:class:`ActionRequest` in an action-required :class:`Turn`.

History lives in the ``chat_messages`` table, one row per message, so
reopening a chat id continues the same conversation.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from moviechat.agent.answer import parse_answer
from moviechat.agent.base import Answer, Turn
from moviechat.core.errors import (
    StepLimitExceededError,
    UnknownToolCallError,
    UnresolvedActionsError,
)
from moviechat.core.retry import RetryConfig, retry_with_backoff
from moviechat.providers.base import PromptMessage, ToolCallData
from moviechat.store.repository import MovieRepository
from moviechat.tools.base import ActionRequest, ActionResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from moviechat.config.schema import AgentConfig
    from moviechat.providers.base import ModelProvider, ModelResponse
    from moviechat.store.models import ChatMessage
    from moviechat.store.queries import QueryTool
    from moviechat.tools.base import ToolDefinition

logger = logging.getLogger(__name__)

INTERRUPTED = ActionResult.fail("The action was interrupted before it completed")


def _answer_instructions() -> str:
    return (
        "Always finish with a JSON object (no surrounding text) of the form: "
        + json.dumps(Answer.SAMPLE)
    )


def _encode_tool_calls(calls: Sequence[ToolCallData]) -> str | None:
    if not calls:
        return None
    return json.dumps(
        [{"id": c.id, "name": c.name, "arguments": c.arguments} for c in calls]
    )


def _decode_message(row: ChatMessage) -> PromptMessage:
    calls: tuple[ToolCallData, ...] = ()
    if row.tool_calls:
        calls = tuple(
            ToolCallData(id=c["id"], name=c["name"], arguments=c["arguments"])
            for c in json.loads(row.tool_calls)
        )
    return PromptMessage(
        role=row.role,
        content=row.content,
        tool_call_id=row.tool_call_id,
        tool_calls=calls,
    )


class LLMConversation:
    """Agent conversation driven by a :class:`ModelProvider`.

    Use :meth:`open` to load (or create) the chat before talking.
    """

    def __init__(
        self,
        provider: ModelProvider,
        session_factory: async_sessionmaker[AsyncSession],
        config: AgentConfig,
        *,
        chat_id: str,
        user_id: int,
        action_tools: Sequence[ToolDefinition] = (),
        query_tools: Sequence[QueryTool] = (),
        retry: RetryConfig | None = None,
    ) -> None:
        self._provider = provider
        self._session_factory = session_factory
        self._config = config
        self._chat_id = chat_id
        self._user_id = user_id
        self._query_tools = {t.name: t for t in query_tools}
        self._functions: list[dict[str, object]] = [
            {
                "name": t.name,
                "description": t.description,
                "parameters": t.parameters_schema,
            }
            for t in query_tools
        ] + [t.to_function() for t in action_tools]
        self._retry = retry or RetryConfig.from_agent(config)
        self._history: list[PromptMessage] = []
        self._pending: dict[str, ActionRequest] = {}

    # ── Lifecycle ────────────────────────────────────────────────

    @classmethod
    async def open(
        cls,
        provider: ModelProvider,
        session_factory: async_sessionmaker[AsyncSession],
        config: AgentConfig,
        *,
        chat_id: str,
        user_id: int,
        action_tools: Sequence[ToolDefinition] = (),
        query_tools: Sequence[QueryTool] = (),
        retry: RetryConfig | None = None,
    ) -> LLMConversation:
        """Load chat *chat_id*, creating it for *user_id* if it is new.

        An existing chat keeps the user it was created for.
        """
        conversation = cls(
            provider,
            session_factory,
            config,
            chat_id=chat_id,
            user_id=user_id,
            action_tools=action_tools,
            query_tools=query_tools,
            retry=retry,
        )
        await conversation._load()
        return conversation

    async def _load(self) -> None:
        async with self._session_factory() as session:
            repo = MovieRepository(session)
            chat = await repo.get_chat(self._chat_id)
            if chat is None:
                await repo.create_chat(self._chat_id, self._user_id)
                await session.commit()
                logger.info("Created chat %s for user %s", self._chat_id, self._user_id)
                return
            if chat.user_id != self._user_id:
                logger.warning(
                    "Chat %s belongs to user %s, ignoring user %s",
                    self._chat_id,
                    chat.user_id,
                    self._user_id,
                )
                self._user_id = chat.user_id
            self._history = [_decode_message(m) for m in chat.messages]

        # Tool calls left without a result by an interrupted turn
        answered = {m.tool_call_id for m in self._history if m.tool_call_id}
        for message in self._history:
            for call in message.tool_calls:
                if call.id not in answered:
                    self._pending[call.id] = ActionRequest(
                        call.id, call.name, call.arguments
                    )
        logger.info(
            "Loaded chat %s (%d messages)", self._chat_id, len(self._history)
        )

    @property
    def chat_id(self) -> str:
        return self._chat_id

    @property
    def user_id(self) -> int:
        return self._user_id

    @property
    def history(self) -> list[PromptMessage]:
        return list(self._history)

    @property
    def pending(self) -> list[ActionRequest]:
        return list(self._pending.values())

    # ── AgentConversation ────────────────────────────────────────

    async def submit_prompt(self, text: str) -> Turn:
        """Start a new turn.

        Requests still pending from an interrupted turn are closed with a
        failure result first, so the history stays well-formed.
        """
        for tool_id in list(self._pending):
            await self.submit_action_result(tool_id, INTERRUPTED)
        await self._append(PromptMessage(role="user", content=text))
        return await self._run()

    async def submit_action_result(self, tool_id: str, result: ActionResult) -> None:
        """Record the result for a pending request.

        Raises:
            UnknownToolCallError: If *tool_id* is not pending.
        """
        if tool_id not in self._pending:
            raise UnknownToolCallError(tool_id)
        await self._append(
            PromptMessage(role="tool", content=result.to_json(), tool_call_id=tool_id)
        )
        del self._pending[tool_id]

    async def continue_turn(self) -> Turn:
        """Call the model again after the pending round was resolved.

        Raises:
            UnresolvedActionsError: If any pending request has no result yet.
        """
        if self._pending:
            raise UnresolvedActionsError(self._pending)
        return await self._run()

    async def delete(self) -> None:
        async with self._session_factory() as session:
            await MovieRepository(session).delete_chat(self._chat_id)
            await session.commit()
        self._history.clear()
        self._pending.clear()
        logger.info("Deleted chat %s", self._chat_id)

    # ── Internals ────────────────────────────────────────────────

    def _prompt(self) -> list[PromptMessage]:
        system = f"{self._config.system_prompt}\n\n{_answer_instructions()}"
        return [PromptMessage(role="system", content=system), *self._history]

    async def _send(self) -> ModelResponse:
        async def call() -> ModelResponse:
            return await self._provider.send(
                self._prompt(),
                self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                response_format="json",
                tools=self._functions or None,
            )

        response = await retry_with_backoff(
            call, self._retry, what=f"Model call for chat {self._chat_id}"
        )
        logger.debug(
            "Model call used %d tokens (%d in, %d out)",
            response.usage.total_tokens,
            response.usage.input_tokens,
            response.usage.output_tokens,
        )
        return response

    async def _run(self) -> Turn:
        """Call the model until it answers or requests actions."""
        for _round in range(self._config.max_query_rounds):
            response = await self._send()
            calls = response.tool_calls or []
            await self._append(
                PromptMessage(
                    role="assistant",
                    content=response.content,
                    tool_calls=tuple(calls),
                )
            )
            if not calls:
                return Turn.answered(parse_answer(response.content))

            requests: list[ActionRequest] = []
            for call in calls:
                if call.name in self._query_tools:
                    content = await self._run_query(call)
                    await self._append(
                        PromptMessage(role="tool", content=content, tool_call_id=call.id)
                    )
                else:
                    request = ActionRequest(call.id, call.name, call.arguments)
                    self._pending[call.id] = request
                    requests.append(request)
            if requests:
                return Turn.action_required(requests)

        raise StepLimitExceededError(self._config.max_query_rounds)

    async def _run_query(self, call: ToolCallData) -> str:
        tool = self._query_tools[call.name]
        try:
            arguments: Any = json.loads(call.arguments) if call.arguments.strip() else {}
            if not isinstance(arguments, dict):
                msg = "arguments must be a JSON object"
                raise ValueError(msg)
            async with self._session_factory() as session:
                rows = await tool.execute(session, self._user_id, arguments)
        except Exception as exc:
            logger.warning("Query %s (id=%s) failed: %s", call.name, call.id, exc)
            return json.dumps({"error": f"Query {call.name} failed: {exc}"})
        logger.debug("Query %s returned %d rows", call.name, len(rows))
        return json.dumps(rows, default=str)

    async def _append(self, message: PromptMessage) -> None:
        async with self._session_factory() as session:
            await MovieRepository(session).add_chat_message(
                self._chat_id,
                len(self._history),
                message.role,
                message.content,
                tool_call_id=message.tool_call_id,
                tool_calls=_encode_tool_calls(message.tool_calls),
            )
            await session.commit()
        self._history.append(message)
