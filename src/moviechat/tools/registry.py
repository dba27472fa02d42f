"""Action tool registry and the per-request dispatch boundary.

Tools are registered once at startup.  :meth:`ToolRegistry.dispatch`
turns exactly one :class:`ActionRequest` into exactly one
:class:`ActionResult`; it never raises for an unknown tool, malformed
arguments or a failing handler.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from moviechat.tools.arguments import parse_action_arguments
from moviechat.tools.base import ActionResult, ToolDefinition, ToolKind

if TYPE_CHECKING:
    from moviechat.tools.base import ActionContext, ActionRequest, ActionTool

logger = logging.getLogger(__name__)

BOUNDARY_PREFIX = "database error: "
MAX_BOUNDARY_MESSAGE = 100


def boundary_message(exc: BaseException) -> str:
    """Failure text for an error caught at the dispatch boundary (<= 100 chars)."""
    text = " ".join(str(exc).split()) or type(exc).__name__
    return (BOUNDARY_PREFIX + text)[:MAX_BOUNDARY_MESSAGE]


class ToolRegistry:
    """Registry of action tools.

    Supports registration, lookup by name, listing definitions
    (for passing to provider APIs), and dispatching action requests.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ActionTool] = {}

    def register(self, tool: ActionTool) -> None:
        """Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            msg = f"Tool already registered: {tool.name}"
            raise ValueError(msg)
        self._tools[tool.name] = tool

    def get(self, name: str) -> ActionTool:
        """Get a tool by name.

        Raises:
            KeyError: If the tool is not found.
        """
        if name not in self._tools:
            msg = f"Tool not found: {name}"
            raise KeyError(msg)
        return self._tools[name]

    def list_definitions(self) -> list[ToolDefinition]:
        """Return definitions for all registered tools."""
        return [
            ToolDefinition(
                name=t.name,
                description=t.description,
                parameters_schema=t.arguments_model.parameters_schema(),
                kind=ToolKind.ACTION,
                parameters_sample=dict(t.arguments_model.SAMPLE),
            )
            for t in self._tools.values()
        ]

    async def dispatch(
        self, request: ActionRequest, context: ActionContext
    ) -> ActionResult:
        """Execute one action request inside the failure boundary."""
        if request.name not in self._tools:
            logger.info(
                "Unrecognized tool %r requested (id=%s)", request.name, request.tool_id
            )
            return ActionResult.fail(f"Tool '{request.name}' is unrecognized")

        tool = self._tools[request.name]
        logger.debug(
            "Dispatching %s (id=%s) for user %s: %s",
            request.name,
            request.tool_id,
            context.user_id,
            request.arguments,
        )
        try:
            arguments = parse_action_arguments(request.name, request.arguments)
            result = await tool.execute(context, arguments)
        except Exception as exc:
            logger.warning(
                "Action %s (id=%s) failed: %s",
                request.name,
                request.tool_id,
                exc,
                exc_info=True,
            )
            return ActionResult.fail(boundary_message(exc))
        logger.debug(
            "Action %s (id=%s) -> success=%s: %s",
            request.name,
            request.tool_id,
            result.is_successful,
            result.message,
        )
        return result

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def list_names(self) -> list[str]:
        """Return names of all registered tools."""
        return list(self._tools.keys())
