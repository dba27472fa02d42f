"""SQLAlchemy models for the movie catalogue and persisted chats.

Catalogue: Movie, MovieGenre, MovieTag, User, WatchedMovie, Rating.
Conversations: Chat, ChatMessage.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    """Current UTC time for timestamps."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base for all moviechat models."""


# ── Catalogue ────────────────────────────────────────────────────


class Movie(Base):
    """A rateable, taggable movie."""

    __tablename__ = "movies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(500))
    title_key: Mapped[str] = mapped_column(String(500), index=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)

    genres: Mapped[list[MovieGenre]] = relationship(
        back_populates="movie",
        cascade="all, delete-orphan",
    )
    tags: Mapped[list[MovieTag]] = relationship(
        back_populates="movie",
        cascade="all, delete-orphan",
    )
    ratings: Mapped[list[Rating]] = relationship(back_populates="movie")

    @property
    def tag_names(self) -> list[str]:
        return [t.tag for t in self.tags]


class MovieGenre(Base):
    """One genre of a movie."""

    __tablename__ = "movie_genres"
    __table_args__ = (UniqueConstraint("movie_id", "genre"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    movie_id: Mapped[int] = mapped_column(ForeignKey("movies.id"), index=True)
    genre: Mapped[str] = mapped_column(String(50), index=True)

    movie: Mapped[Movie] = relationship(back_populates="genres")


class MovieTag(Base):
    """A free-text tag; ``tag_key`` keeps the per-movie set case-insensitive."""

    __tablename__ = "movie_tags"
    __table_args__ = (UniqueConstraint("movie_id", "tag_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    movie_id: Mapped[int] = mapped_column(ForeignKey("movies.id"), index=True)
    tag: Mapped[str] = mapped_column(String(200))
    tag_key: Mapped[str] = mapped_column(String(200), index=True)

    movie: Mapped[Movie] = relationship(back_populates="tags")


class User(Base):
    """A chat user with a display name and a watched list."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200))

    watched: Mapped[list[WatchedMovie]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def watched_movie_ids(self) -> set[int]:
        return {w.movie_id for w in self.watched}


class WatchedMovie(Base):
    """Membership of a movie in a user's watched set."""

    __tablename__ = "watched_movies"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), primary_key=True)
    movie_id: Mapped[int] = mapped_column(ForeignKey("movies.id"), primary_key=True)

    user: Mapped[User] = relationship(back_populates="watched")


class Rating(Base):
    """A single rating event. Users may rate the same movie many times."""

    __tablename__ = "ratings"
    __table_args__ = (
        Index("ix_ratings_user_movie", "user_id", "movie_id"),
        Index("ix_ratings_movie", "movie_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    movie_id: Mapped[int] = mapped_column(ForeignKey("movies.id"))
    value: Mapped[float] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    movie: Mapped[Movie] = relationship(back_populates="ratings")


# ── Conversations ────────────────────────────────────────────────


class Chat(Base):
    """A persisted agent conversation, keyed by a caller-chosen id."""

    __tablename__ = "chats"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )

    messages: Mapped[list[ChatMessage]] = relationship(
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="ChatMessage.seq",
    )


class ChatMessage(Base):
    """One message of a chat history, in model-native form."""

    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("ix_chat_messages_chat_seq", "chat_id", "seq", unique=True),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chat_id: Mapped[str] = mapped_column(ForeignKey("chats.id"), index=True)
    seq: Mapped[int] = mapped_column(Integer)
    role: Mapped[str] = mapped_column(String(20))
    content: Mapped[str] = mapped_column(Text, default="")
    tool_call_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, default=None
    )
    tool_calls: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    chat: Mapped[Chat] = relationship(back_populates="messages")
