"""Shared test fixtures for moviechat."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from moviechat.store.models import Base
from moviechat.store.repository import MovieRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


@pytest.fixture
async def session_factory() -> async_sessionmaker[AsyncSession]:  # type: ignore[misc]
    """In-memory SQLite session factory with FK enforcement.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_fks(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncSession:  # type: ignore[misc]
    async with session_factory() as session:
        yield session


def _ts(day: int) -> datetime:
    return datetime(2024, 1, day, 12, 0, tzinfo=UTC)


@pytest.fixture
async def catalog(session_factory: async_sessionmaker[AsyncSession]) -> dict[str, Any]:
    """A small committed catalogue.

    Movies: Inception (1), Heat 1995 (2), Heat 1986 (3), Alien (4).
    Users: 1 "James Parker" (watched 1, 4), 2 "bob" (watched 2).
    """
    async with session_factory() as session:
        repo = MovieRepository(session)
        inception = await repo.add_movie(
            1, "Inception", year=2010, genres=["Action", "Sci-Fi"]
        )
        await repo.add_movie(2, "Heat", year=1995, genres=["Crime", "Thriller"])
        await repo.add_movie(3, "Heat", year=1986, genres=["Action"])
        alien = await repo.add_movie(4, "Alien", year=1979, genres=["Horror", "Sci-Fi"])
        await repo.add_tags(inception, ["dreams", "mind-bending"])
        await repo.add_tags(alien, ["space"])

        await repo.create_user(1, "James Parker", watched=[1, 4])
        await repo.create_user(2, "bob", watched=[2])

        await repo.add_rating(1, 1, 4.0, created_at=_ts(1))
        await repo.add_rating(1, 1, 5.0, created_at=_ts(3))
        await repo.add_rating(1, 4, 3.0, created_at=_ts(2))
        await repo.add_rating(2, 2, 4.5, created_at=_ts(1))
        await repo.add_rating(2, 1, 3.0, created_at=_ts(4))
        await session.commit()

    return {"user_id": 1, "other_user_id": 2}
