"""Action tool protocol and data types.

Defines the ``ActionTool`` protocol that every mutating tool must
satisfy, plus the request/result pair exchanged with the agent and the
context a handler runs in.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from moviechat.tools.arguments import ActionArguments


class ToolKind(enum.Enum):
    """Query tools are read-only; action tools mutate the catalogue."""

    QUERY = "query"
    ACTION = "action"


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """Schema definition for a tool, suitable for passing to providers."""

    name: str
    description: str
    parameters_schema: dict[str, Any]
    kind: ToolKind = ToolKind.ACTION
    parameters_sample: dict[str, Any] | None = None

    def to_function(self) -> dict[str, object]:
        """Render as a provider function definition."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters_schema,
        }


@dataclass(frozen=True, slots=True)
class ActionRequest:
    """One agent-issued action tool invocation within a turn.

    ``arguments`` is the raw JSON payload as produced by the agent.
    """

    tool_id: str
    name: str
    arguments: str = "{}"


@dataclass(frozen=True, slots=True)
class ActionResult:
    """Outcome of executing one ActionRequest."""

    is_successful: bool
    message: str

    @classmethod
    def ok(cls, message: str) -> ActionResult:
        return cls(is_successful=True, message=message)

    @classmethod
    def fail(cls, message: str) -> ActionResult:
        return cls(is_successful=False, message=message)

    def to_json(self) -> str:
        """Serialize in the shape the agent reads back."""
        return json.dumps({"isSuccessful": self.is_successful, "answer": self.message})


@dataclass(frozen=True, slots=True)
class ActionContext:
    """What a handler may touch: the calling user and a unit-of-work factory."""

    user_id: int
    session_factory: async_sessionmaker[AsyncSession]


@runtime_checkable
class ActionTool(Protocol):
    """Protocol that all action tool implementations must satisfy."""

    @property
    def name(self) -> str:
        """Unique name for this tool."""
        ...

    @property
    def description(self) -> str:
        """What the tool does, written for the agent."""
        ...

    @property
    def arguments_model(self) -> type[ActionArguments]:
        """Pydantic model the raw arguments are validated against."""
        ...

    async def execute(
        self, context: ActionContext, arguments: ActionArguments
    ) -> ActionResult:
        """Validate, look up, mutate and commit.

        Business-rule failures are returned as unsuccessful results;
        anything raised is handled by the dispatch boundary.
        """
        ...
