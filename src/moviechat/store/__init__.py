"""Movie catalogue persistence, read-only query tools and CSV seeding."""

from moviechat.store.models import (
    Base,
    Chat,
    ChatMessage,
    Movie,
    MovieGenre,
    MovieTag,
    Rating,
    User,
    WatchedMovie,
)
from moviechat.store.names import NameGenerator
from moviechat.store.queries import QueryParams, QueryTool, build_query_tools
from moviechat.store.repository import MovieRepository, tag_key, title_key
from moviechat.store.seed import SeedReport, seed_database

__all__ = [
    "Base",
    "Chat",
    "ChatMessage",
    "Movie",
    "MovieGenre",
    "MovieRepository",
    "MovieTag",
    "NameGenerator",
    "QueryParams",
    "QueryTool",
    "Rating",
    "SeedReport",
    "User",
    "WatchedMovie",
    "build_query_tools",
    "seed_database",
    "tag_key",
    "title_key",
]
