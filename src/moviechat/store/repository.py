"""Movie repository: catalogue lookups, rating/tag/user mutations, chats.

All mutating methods add objects to the session and flush, but do NOT
commit.  The caller controls transaction boundaries via
``session.commit()``; closing a session without committing discards
every change made through it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from moviechat.core.errors import StorageError
from moviechat.store.models import (
    Chat,
    ChatMessage,
    Movie,
    MovieGenre,
    MovieTag,
    Rating,
    User,
    WatchedMovie,
    _utcnow,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession


def tag_key(tag: str) -> str:
    """Normalized form used for case-insensitive tag comparison."""
    return tag.strip().casefold()


def title_key(title: str) -> str:
    """Normalized form used for case-insensitive title lookup."""
    return title.strip().casefold()


class MovieRepository:
    """Async repository over one unit of work (an ``AsyncSession``)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ── Movies ───────────────────────────────────────────────────

    async def find_movies_by_title(self, name: str) -> list[Movie]:
        """Return every movie whose title equals *name*, ignoring case."""
        stmt = (
            select(Movie)
            .where(Movie.title_key == title_key(name))
            .options(selectinload(Movie.tags), selectinload(Movie.genres))
            .order_by(Movie.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_movie(self, movie_id: int) -> Movie | None:
        """Load a movie with its genres and tags."""
        stmt = (
            select(Movie)
            .where(Movie.id == movie_id)
            .options(selectinload(Movie.tags), selectinload(Movie.genres))
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_movie(
        self,
        movie_id: int,
        title: str,
        *,
        year: int | None = None,
        genres: Iterable[str] = (),
    ) -> Movie:
        """Insert a movie with its genres."""
        movie = Movie(
            id=movie_id, title=title, title_key=title_key(title), year=year
        )
        movie.genres = [MovieGenre(genre=g) for g in dict.fromkeys(genres)]
        movie.tags = []
        self._session.add(movie)
        await self._session.flush()
        return movie

    async def count_movies(self) -> int:
        result = await self._session.execute(select(func.count(Movie.id)))
        return int(result.scalar_one())

    async def add_tags(self, movie: Movie, tags: Iterable[str]) -> list[str]:
        """Union *tags* into the movie's tag set.

        Comparison is case-insensitive; the first spelling seen is kept.
        Returns the tags that were actually added.
        """
        existing = {t.tag_key for t in movie.tags}
        added: list[str] = []
        for raw in tags:
            key = tag_key(raw)
            if not key or key in existing:
                continue
            movie.tags.append(MovieTag(tag=raw.strip(), tag_key=key))
            existing.add(key)
            added.append(raw.strip())
        await self._session.flush()
        return added

    # ── Users ────────────────────────────────────────────────────

    async def get_user(self, user_id: int) -> User | None:
        """Load a user with the watched list."""
        stmt = (
            select(User).where(User.id == user_id).options(selectinload(User.watched))
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_user(
        self, user_id: int, name: str, *, watched: Iterable[int] = ()
    ) -> User:
        user = User(id=user_id, name=name)
        user.watched = [WatchedMovie(movie_id=m) for m in dict.fromkeys(watched)]
        self._session.add(user)
        await self._session.flush()
        return user

    async def mark_watched(self, user: User, movie_id: int) -> bool:
        """Add a movie to the user's watched set. Returns False if present."""
        if movie_id in user.watched_movie_ids:
            return False
        user.watched.append(WatchedMovie(movie_id=movie_id))
        await self._session.flush()
        return True

    async def rename_user(self, user: User, new_name: str) -> User:
        user.name = new_name
        await self._session.flush()
        return user

    # ── Ratings ──────────────────────────────────────────────────

    async def add_rating(
        self,
        user_id: int,
        movie_id: int,
        value: float,
        *,
        created_at: datetime | None = None,
    ) -> Rating:
        """Record a new rating event."""
        rating = Rating(
            user_id=user_id,
            movie_id=movie_id,
            value=value,
            created_at=created_at or _utcnow(),
        )
        self._session.add(rating)
        await self._session.flush()
        return rating

    async def get_ratings(
        self, user_id: int, *, movie_id: int | None = None
    ) -> list[Rating]:
        """Rating events of a user, oldest first."""
        stmt = select(Rating).where(Rating.user_id == user_id)
        if movie_id is not None:
            stmt = stmt.where(Rating.movie_id == movie_id)
        stmt = stmt.order_by(Rating.created_at, Rating.id)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # ── Chats ────────────────────────────────────────────────────

    async def get_chat(self, chat_id: str) -> Chat | None:
        """Load a chat with its full message history."""
        stmt = (
            select(Chat).where(Chat.id == chat_id).options(selectinload(Chat.messages))
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_chat(self, chat_id: str, user_id: int) -> Chat:
        chat = Chat(id=chat_id, user_id=user_id)
        chat.messages = []
        self._session.add(chat)
        await self._session.flush()
        return chat

    async def add_chat_message(
        self,
        chat_id: str,
        seq: int,
        role: str,
        content: str,
        *,
        tool_call_id: str | None = None,
        tool_calls: str | None = None,
    ) -> ChatMessage:
        """Append one message to a chat history."""
        message = ChatMessage(
            chat_id=chat_id,
            seq=seq,
            role=role,
            content=content,
            tool_call_id=tool_call_id,
            tool_calls=tool_calls,
        )
        self._session.add(message)
        chat = await self._session.get(Chat, chat_id)
        if chat is not None:
            chat.updated_at = _utcnow()
        await self._session.flush()
        return message

    async def list_chats(self, *, limit: int = 20, offset: int = 0) -> list[Chat]:
        """List chats, most recently active first."""
        stmt = (
            select(Chat)
            .order_by(Chat.updated_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def delete_chat(self, chat_id: str) -> None:
        """Delete a chat and its history (via cascade).

        Raises StorageError if the chat does not exist.
        """
        chat = await self.get_chat(chat_id)
        if chat is None:
            msg = f"Chat not found: {chat_id}"
            raise StorageError(msg)
        await self._session.delete(chat)
        await self._session.flush()
