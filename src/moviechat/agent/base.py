"""Turn and answer types, and the agent conversation protocol.

A :class:`Turn` is either *answered* (carries the final :class:`Answer`)
or *action required* (carries one or more pending action requests that
must all receive a result before the conversation may continue).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from collections.abc import Iterable

    from moviechat.tools.base import ActionRequest, ActionResult


class Answer(BaseModel):
    """Structured final answer of a turn."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    answer: str = ""
    movie_ids: list[int | str] = Field(default_factory=list, alias="moviesIds")
    movie_names: list[str] = Field(default_factory=list, alias="moviesNames")

    SAMPLE: ClassVar[dict[str, Any]] = {
        "answer": "Answer to the user question",
        "moviesIds": ["The movies ids relevant to the query or response"],
        "moviesNames": ["The movies names relevant to the query or response"],
    }

    @field_validator("answer", mode="before")
    @classmethod
    def _null_answer(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("movie_ids", "movie_names", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value


class TurnStatus(enum.Enum):
    ANSWERED = "answered"
    ACTION_REQUIRED = "action_required"


@dataclass(frozen=True, slots=True)
class Turn:
    """One step of conversation progress."""

    status: TurnStatus
    answer: Answer | None = None
    requests: tuple[ActionRequest, ...] = ()

    @classmethod
    def answered(cls, answer: Answer) -> Turn:
        return cls(status=TurnStatus.ANSWERED, answer=answer)

    @classmethod
    def action_required(cls, requests: Iterable[ActionRequest]) -> Turn:
        """Build an action-required turn.

        Raises:
            ValueError: If *requests* is empty.
        """
        pending = tuple(requests)
        if not pending:
            msg = "An action-required turn needs at least one request"
            raise ValueError(msg)
        return cls(status=TurnStatus.ACTION_REQUIRED, requests=pending)

    @property
    def is_answered(self) -> bool:
        return self.status is TurnStatus.ANSWERED


@runtime_checkable
class AgentConversation(Protocol):
    """The external agent capability a conversation loop drives."""

    async def submit_prompt(self, text: str) -> Turn:
        """Add a user prompt and run the agent until it answers or asks for actions."""
        ...

    async def submit_action_result(self, tool_id: str, result: ActionResult) -> None:
        """Record the result of one pending action request."""
        ...

    async def continue_turn(self) -> Turn:
        """Run the agent again once every pending request has a result."""
        ...

    async def delete(self) -> None:
        """Remove the persisted conversation."""
        ...
