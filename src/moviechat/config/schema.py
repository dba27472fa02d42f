"""Pydantic models for moviechat configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_SYSTEM_PROMPT = (
    "You are a movie recommender AI agent. You can query a movie database to "
    "learn a user's taste and recommend unwatched movies. "
    "Use the provided tools only. When listing movies, include their movie id. "
    "Each movie has genres, and can have user-provided tags and user ratings. "
    "The only valid genres are: Action, Adventure, Animation, Children, Comedy, "
    "Crime, Documentary, Drama, Fantasy, Film-Noir, Horror, IMAX, Musical, "
    "Mystery, Romance, Sci-Fi, Thriller, War, Western. "
    "Each user has a watched list and can rate movies, add tags to movies or "
    "change their own name through the action tools."
)


class ProviderConfig(BaseModel):
    """Connection settings for the OpenAI-compatible model provider."""

    api_key: str | None = None
    api_key_env: str | None = "OPENAI_API_KEY"
    base_url: str | None = None


class AgentConfig(BaseModel):
    """Model and prompt settings for the chat agent."""

    model: str = "gpt-4o"
    temperature: float = 0.2
    max_tokens: int = 4096
    max_query_rounds: int = Field(default=10, ge=1)
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0.0)  # seconds
    retry_max_delay: float = Field(default=60.0, ge=0.0)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


class ChatConfig(BaseModel):
    """Conversation loop limits."""

    max_action_rounds: int = Field(default=10, ge=0)  # 0 = unlimited
    talk_timeout: float = Field(default=0.0, ge=0.0)  # seconds, 0 = none
    default_user_id: int = 1


class SeedConfig(BaseModel):
    """CSV seeding settings."""

    csv_dir: str = "Csvs"
    ratings_limit: int = Field(default=0, ge=0)  # 0 = load everything
    name_seed: int | None = None


class DatabaseConfig(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///~/.local/share/moviechat/moviechat.db"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    file: str = ""


class MovieChatConfig(BaseModel):
    """Top-level configuration for moviechat."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    seed: SeedConfig = Field(default_factory=SeedConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
