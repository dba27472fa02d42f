"""Conversation loop and chat sessions."""

from moviechat.chat.loop import ConversationLoop
from moviechat.chat.session import ChatSession, default_registry

__all__ = ["ChatSession", "ConversationLoop", "default_registry"]
