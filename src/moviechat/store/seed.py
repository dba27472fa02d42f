"""Load the MovieLens-style CSV dataset into an empty database.

Expected files in the CSV directory:

* ``movies.csv``   -- ``movieId,title,genres``; title is ``Name (YYYY)``
* ``ratings*.csv`` -- ``userId,movieId,rating,timestamp`` (split files allowed)
* ``tags.csv``     -- ``userId,movieId,tag,timestamp`` (optional)

Users are created from the rating rows: each user's watched set is the
set of movies they rated, and display names come from a name generator.
"""

from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert

from moviechat.core.errors import StorageError
from moviechat.store.models import (
    Movie,
    MovieGenre,
    MovieTag,
    Rating,
    User,
    WatchedMovie,
)
from moviechat.store.names import NameGenerator
from moviechat.store.repository import MovieRepository, tag_key, title_key

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

_TITLE_RE = re.compile(r"^(.*) \((\d{4})\)$")
_NO_GENRES = "(no genres listed)"
_BATCH = 10_000


@dataclass(frozen=True, slots=True)
class SeedReport:
    """Row counts loaded by :func:`seed_database`."""

    movies: int
    ratings: int
    users: int
    tags: int


def parse_title(raw: str) -> tuple[str, int] | None:
    """Split ``"Heat (1995)"`` into ``("Heat", 1995)``; None without a year."""
    match = _TITLE_RE.match(raw.strip())
    if match is None:
        return None
    return match.group(1).strip(), int(match.group(2))


def parse_genres(raw: str) -> list[str]:
    genres = [g.strip() for g in raw.split("|")]
    return [g for g in dict.fromkeys(genres) if g and g != _NO_GENRES]


def _rows(path: Path) -> Iterator[dict[str, str]]:
    with path.open(newline="", encoding="utf-8") as fh:
        yield from csv.DictReader(fh)


async def _flush_batch(
    session: AsyncSession, model: type[Any], batch: list[dict[str, Any]]
) -> None:
    if batch:
        await session.execute(insert(model), batch)
        batch.clear()


async def _load_movies(session: AsyncSession, path: Path) -> set[int]:
    logger.info("Loading movies from %s", path)
    movie_ids: set[int] = set()
    movies: list[dict[str, Any]] = []
    genres: list[dict[str, Any]] = []
    for row in _rows(path):
        parsed = parse_title(row["title"])
        if parsed is None:
            continue
        movie_id = int(row["movieId"])
        if movie_id in movie_ids:
            continue
        title, year = parsed
        movie_ids.add(movie_id)
        movies.append(
            {
                "id": movie_id,
                "title": title,
                "title_key": title_key(title),
                "year": year,
            }
        )
        genres.extend(
            {"movie_id": movie_id, "genre": g} for g in parse_genres(row["genres"])
        )
        if len(movies) >= _BATCH:
            await _flush_batch(session, Movie, movies)
            await _flush_batch(session, MovieGenre, genres)
            logger.info("Saved %d movies...", len(movie_ids))
    await _flush_batch(session, Movie, movies)
    await _flush_batch(session, MovieGenre, genres)
    logger.info("Done! Total movies saved: %d", len(movie_ids))
    return movie_ids


def _rating_rows(
    paths: list[Path], movie_ids: set[int], limit: int
) -> Iterator[dict[str, str]]:
    """Rating rows for known movies, at most *limit* of them (0 = all)."""
    count = 0
    for path in paths:
        for row in _rows(path):
            if limit and count >= limit:
                return
            if int(row["movieId"]) not in movie_ids:
                continue
            count += 1
            yield row


def _collect_watched(
    paths: list[Path], movie_ids: set[int], limit: int
) -> dict[int, set[int]]:
    watched: dict[int, set[int]] = {}
    for row in _rating_rows(paths, movie_ids, limit):
        watched.setdefault(int(row["userId"]), set()).add(int(row["movieId"]))
    return watched


async def _load_ratings(
    session: AsyncSession,
    paths: list[Path],
    movie_ids: set[int],
    limit: int,
) -> int:
    logger.info("Loading ratings from %s", ", ".join(p.name for p in paths))
    batch: list[dict[str, Any]] = []
    count = 0
    for row in _rating_rows(paths, movie_ids, limit):
        batch.append(
            {
                "user_id": int(row["userId"]),
                "movie_id": int(row["movieId"]),
                "value": float(row["rating"]),
                "created_at": datetime.fromtimestamp(int(row["timestamp"]), UTC),
            }
        )
        count += 1
        if len(batch) >= _BATCH:
            await _flush_batch(session, Rating, batch)
        if count % 500_000 == 0:
            logger.info("Saved %d ratings...", count)
    await _flush_batch(session, Rating, batch)
    logger.info("Done! Total ratings saved: %d", count)
    return count


async def _load_users(
    session: AsyncSession,
    watched: dict[int, set[int]],
    name_for: Callable[[], str],
) -> int:
    users: list[dict[str, Any]] = []
    links: list[dict[str, Any]] = []
    for user_id in sorted(watched):
        users.append({"id": user_id, "name": name_for()})
        links.extend(
            {"user_id": user_id, "movie_id": m} for m in sorted(watched[user_id])
        )
        if len(users) >= _BATCH:
            await _flush_batch(session, User, users)
    await _flush_batch(session, User, users)
    for start in range(0, len(links), _BATCH):
        await session.execute(insert(WatchedMovie), links[start : start + _BATCH])
    logger.info("Done! Total users saved: %d", len(watched))
    return len(watched)


async def _load_tags(session: AsyncSession, path: Path, movie_ids: set[int]) -> int:
    logger.info("Loading tags from %s", path)
    seen: set[tuple[int, str]] = set()
    batch: list[dict[str, Any]] = []
    for row in _rows(path):
        movie_id = int(row["movieId"])
        tag = (row.get("tag") or "").strip()
        key = tag_key(tag)
        if movie_id not in movie_ids or not key or (movie_id, key) in seen:
            continue
        seen.add((movie_id, key))
        batch.append({"movie_id": movie_id, "tag": tag, "tag_key": key})
        if len(batch) >= _BATCH:
            await _flush_batch(session, MovieTag, batch)
    await _flush_batch(session, MovieTag, batch)
    logger.info("Done! Total tags saved: %d", len(seen))
    return len(seen)


async def seed_database(
    session_factory: async_sessionmaker[AsyncSession],
    csv_dir: str | Path,
    *,
    ratings_limit: int = 0,
    name_generator: Callable[[], str] | None = None,
) -> SeedReport | None:
    """Load the CSV dataset if the database holds no movies yet.

    Returns None when the database was already seeded.  Everything is
    committed in one transaction; a failure leaves the database empty.

    Raises:
        StorageError: If the CSV directory or ``movies.csv`` is missing,
            or a row cannot be parsed.
    """
    directory = Path(csv_dir).expanduser()
    movies_csv = directory / "movies.csv"
    if not movies_csv.is_file():
        msg = f"movies.csv not found in {directory}"
        raise StorageError(msg)

    names = name_generator or NameGenerator()
    async with session_factory() as session:
        if await MovieRepository(session).count_movies() > 0:
            logger.info("Database already seeded, skipping")
            return None
        try:
            movie_ids = await _load_movies(session, movies_csv)
            rating_files = sorted(directory.glob("ratings*.csv"))
            # Users must exist before the ratings that reference them
            watched = _collect_watched(rating_files, movie_ids, ratings_limit)
            user_count = await _load_users(session, watched, names)
            rating_count = await _load_ratings(
                session, rating_files, movie_ids, ratings_limit
            )
            tags_csv = directory / "tags.csv"
            tag_count = (
                await _load_tags(session, tags_csv, movie_ids)
                if tags_csv.is_file()
                else 0
            )
        except (KeyError, ValueError) as exc:
            msg = f"Malformed CSV data: {exc}"
            raise StorageError(msg) from exc
        await session.commit()

    return SeedReport(
        movies=len(movie_ids),
        ratings=rating_count,
        users=user_count,
        tags=tag_count,
    )
