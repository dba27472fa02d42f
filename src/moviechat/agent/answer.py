"""Parse the agent's final message into an :class:`Answer`.

Models asked for JSON still wrap it in prose or markdown fences now and
then, so extraction tries a direct parse, then a fenced block, then the
first bare ``{...}`` object.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError

from moviechat.agent.base import Answer

_JSON_BLOCK_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_BARE_JSON_RE = re.compile(r"\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}", re.DOTALL)


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        result = json.loads(text)
    except json.JSONDecodeError:
        return None
    return result if isinstance(result, dict) else None


def extract_json(text: str) -> dict[str, Any] | None:
    """Return the first JSON object found in *text*, or None."""
    stripped = text.strip()
    if not stripped:
        return None
    found = _loads_object(stripped)
    if found is not None:
        return found
    match = _JSON_BLOCK_RE.search(text)
    if match:
        found = _loads_object(match.group(1))
        if found is not None:
            return found
    match = _BARE_JSON_RE.search(text)
    if match:
        return _loads_object(match.group(0))
    return None


def parse_answer(text: str) -> Answer:
    """Parse model output; plain text becomes ``Answer(answer=text)``."""
    data = extract_json(text)
    if data is not None:
        try:
            return Answer.model_validate(data)
        except ValidationError:
            pass
    return Answer(answer=text.strip())
