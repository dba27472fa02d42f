"""Configuration loading and validation."""

from moviechat.config.loader import load_config
from moviechat.config.schema import (
    AgentConfig,
    ChatConfig,
    DatabaseConfig,
    LoggingConfig,
    MovieChatConfig,
    ProviderConfig,
    SeedConfig,
)

__all__ = [
    "AgentConfig",
    "ChatConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "MovieChatConfig",
    "ProviderConfig",
    "SeedConfig",
    "load_config",
]
