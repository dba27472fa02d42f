"""Action tools, their argument models and the dispatch registry."""

from moviechat.tools.actions import (
    AddTagsTool,
    ChangeUserNameTool,
    RateMovieTool,
    default_action_tools,
)
from moviechat.tools.arguments import (
    ActionArguments,
    AddTags,
    ChangeUserName,
    RateMovie,
    parse_action_arguments,
)
from moviechat.tools.base import (
    ActionContext,
    ActionRequest,
    ActionResult,
    ActionTool,
    ToolDefinition,
    ToolKind,
)
from moviechat.tools.registry import ToolRegistry, boundary_message

__all__ = [
    "ActionArguments",
    "ActionContext",
    "ActionRequest",
    "ActionResult",
    "ActionTool",
    "AddTags",
    "AddTagsTool",
    "ChangeUserName",
    "ChangeUserNameTool",
    "RateMovie",
    "RateMovieTool",
    "ToolDefinition",
    "ToolKind",
    "ToolRegistry",
    "boundary_message",
    "default_action_tools",
    "parse_action_arguments",
]
