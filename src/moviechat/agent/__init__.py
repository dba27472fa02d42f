"""Agent capability: turns, answers and the LLM-backed conversation."""

from moviechat.agent.answer import extract_json, parse_answer
from moviechat.agent.base import AgentConversation, Answer, Turn, TurnStatus
from moviechat.agent.conversation import LLMConversation

__all__ = [
    "AgentConversation",
    "Answer",
    "LLMConversation",
    "Turn",
    "TurnStatus",
    "extract_json",
    "parse_answer",
]
