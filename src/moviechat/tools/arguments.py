"""Action argument models: a closed union discriminated by tool name.

The agent sends loosely-typed JSON payloads keyed by tool name.  They are
resolved here, at the dispatch boundary, into exactly one of the models
below; anything that does not validate raises.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ActionArguments(BaseModel):
    """Base for every action argument model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    SAMPLE: ClassVar[dict[str, Any]] = {}

    @classmethod
    def parameters_schema(cls) -> dict[str, Any]:
        """JSON Schema for the agent, without the internal ``tool`` tag."""
        schema = cls.model_json_schema(by_alias=True)
        schema.get("properties", {}).pop("tool", None)
        if "required" in schema:
            schema["required"] = [r for r in schema["required"] if r != "tool"]
        schema.pop("title", None)
        return schema


class RateMovie(ActionArguments):
    tool: Literal["RateMovie"] = "RateMovie"
    movie_name: str = Field(
        alias="movieName",
        description="The name of the movie the user wants to rate",
    )
    rate_value: float = Field(
        alias="rateValue",
        description="Rate value between 0 and 5 (fractions allowed)",
    )

    SAMPLE: ClassVar[dict[str, Any]] = {
        "movieName": "The name of the movie the user wants to rate",
        "rateValue": 4.5,
    }


class AddTags(ActionArguments):
    tool: Literal["AddTags"] = "AddTags"
    movie_name: str = Field(
        alias="movieName",
        description="The name of the movie to tag",
    )
    tags: list[str] = Field(
        default_factory=list,
        description="Tags describing the movie's themes, style or content",
    )

    SAMPLE: ClassVar[dict[str, Any]] = {
        "movieName": "The name of the movie the user wants to tag",
        "tags": ["Scary", "Disgusting"],
    }


class ChangeUserName(ActionArguments):
    tool: Literal["ChangeUserName"] = "ChangeUserName"
    old_user_name: str = Field(
        alias="oldUserName",
        description="The user's current name, for validation",
    )
    new_user_name: str = Field(alias="newUserName", description="The new name")

    SAMPLE: ClassVar[dict[str, Any]] = {
        "oldUserName": "James Parker",
        "newUserName": "James Smith",
    }


AnyActionArguments = Annotated[
    RateMovie | AddTags | ChangeUserName,
    Field(discriminator="tool"),
]

_ADAPTER: TypeAdapter[RateMovie | AddTags | ChangeUserName] = TypeAdapter(
    AnyActionArguments
)


def parse_action_arguments(name: str, raw: str) -> ActionArguments:
    """Resolve a raw JSON payload for tool *name* into its argument model.

    Raises:
        ValueError: If *raw* is not a JSON object.
        pydantic.ValidationError: If the payload does not match the tool's
            model, or *name* is not an action tool.
    """
    payload = json.loads(raw) if raw and raw.strip() else {}
    if not isinstance(payload, dict):
        msg = f"Arguments for {name} must be a JSON object"
        raise ValueError(msg)
    payload["tool"] = name
    return _ADAPTER.validate_python(payload)
