"""Read-only query tools: a fixed menu of parameterized queries.

The agent picks a tool by name and fills in its parameters following the
sample object; it never writes queries itself.  Every template runs over
aggregates derived from the ``ratings`` table:

* movie stats: views (rating count), ratings sum and average rating per movie
* last rates: the most recent rating of each movie per user
* tag / genre affinity: count, sum and average score per user and label

The calling user's id is bound by the conversation, not by the agent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import and_, func, or_, select

from moviechat.store.models import Movie, MovieGenre, MovieTag, Rating, User
from moviechat.store.repository import tag_key, title_key

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

MAX_PAGE_SIZE = 100

Row = dict[str, Any]


class QueryParams(BaseModel):
    """Union of every parameter a query tool may accept."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    skip: int = Field(default=0, ge=0)
    page_size: int = Field(default=10, ge=1, alias="pageSize")
    text: str = ""
    genre: str = ""
    genres: list[str] = Field(default_factory=list)
    movie_ids: list[int] = Field(default_factory=list, alias="movieIds")
    min_views: int = Field(default=0, alias="minViews")
    min_rating: float = Field(default=0.0, alias="minRating")
    max_rating: float = Field(default=5.0, alias="maxRating")

    @property
    def limit(self) -> int:
        return min(self.page_size, MAX_PAGE_SIZE)


@dataclass(frozen=True, slots=True)
class QueryTool:
    """A named read-only query with a description and a sample parameter object."""

    name: str
    description: str
    parameters_sample: dict[str, Any]
    run: Callable[[AsyncSession, int, QueryParams], Awaitable[list[Row]]]

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return schema_from_sample(self.parameters_sample)

    async def execute(
        self, session: AsyncSession, user_id: int, arguments: dict[str, Any]
    ) -> list[Row]:
        params = QueryParams.model_validate(arguments)
        return await self.run(session, user_id, params)


def schema_from_sample(sample: dict[str, Any]) -> dict[str, Any]:
    """Derive a JSON Schema object from a sample parameter object."""
    properties: dict[str, Any] = {}
    for key, value in sample.items():
        if isinstance(value, bool):
            prop: dict[str, Any] = {"type": "boolean"}
        elif isinstance(value, int):
            prop = {"type": "integer"}
        elif isinstance(value, float):
            prop = {"type": "number"}
        elif isinstance(value, list):
            item_type = "integer" if value and isinstance(value[0], int) else "string"
            prop = {"type": "array", "items": {"type": item_type}}
        else:
            prop = {"type": "string"}
        prop["description"] = f"e.g. {value!r}"
        properties[key] = prop
    return {"type": "object", "properties": properties, "required": list(sample)}


# ── Aggregates ───────────────────────────────────────────────────


def _movie_stats():  # type: ignore[no-untyped-def]
    return (
        select(
            Rating.movie_id.label("movie_id"),
            func.count(Rating.id).label("views"),
            func.sum(Rating.value).label("ratings_sum"),
            func.avg(Rating.value).label("average_rating"),
        )
        .group_by(Rating.movie_id)
        .subquery("movie_stats")
    )


def _last_rates(user_id: int):  # type: ignore[no-untyped-def]
    ranked = (
        select(
            Rating.movie_id,
            Rating.value,
            Rating.created_at,
            func.row_number()
            .over(
                partition_by=Rating.movie_id,
                order_by=(Rating.created_at.desc(), Rating.id.desc()),
            )
            .label("rn"),
        )
        .where(Rating.user_id == user_id)
        .subquery("ranked")
    )
    return (
        select(
            ranked.c.movie_id,
            Movie.title,
            ranked.c.value.label("rate_value"),
            ranked.c.created_at,
        )
        .select_from(ranked)
        .join(Movie, Movie.id == ranked.c.movie_id)
        .where(ranked.c.rn == 1)
    )


async def _labels(
    session: AsyncSession, movie_ids: Sequence[int]
) -> tuple[dict[int, list[str]], dict[int, list[str]]]:
    """Fetch genres and tags for a page of movies."""
    genres: dict[int, list[str]] = {m: [] for m in movie_ids}
    tags: dict[int, list[str]] = {m: [] for m in movie_ids}
    if not movie_ids:
        return genres, tags
    for movie_id, genre in await session.execute(
        select(MovieGenre.movie_id, MovieGenre.genre).where(
            MovieGenre.movie_id.in_(movie_ids)
        )
    ):
        genres[movie_id].append(genre)
    for movie_id, tag in await session.execute(
        select(MovieTag.movie_id, MovieTag.tag).where(MovieTag.movie_id.in_(movie_ids))
    ):
        tags[movie_id].append(tag)
    return genres, tags


# ── Movie stats templates ────────────────────────────────────────

_ORDER_COLUMNS = {"AverageRating": "average_rating", "Views": "views"}


def _stats_query(
    where: Callable[[Any, QueryParams], Any] | None,
    order: Sequence[tuple[str, str]],
) -> Callable[[AsyncSession, int, QueryParams], Awaitable[list[Row]]]:
    """Build a movie-stats query template.

    *order* is a sequence of ``(column, "asc"|"desc")`` pairs where column
    is ``AverageRating`` or ``Views``.
    """

    async def run(session: AsyncSession, user_id: int, params: QueryParams) -> list[Row]:
        stats = _movie_stats()
        stmt: Select[Any] = select(
            stats.c.movie_id,
            Movie.title,
            Movie.year,
            stats.c.views,
            stats.c.average_rating,
        ).select_from(stats).join(Movie, Movie.id == stats.c.movie_id)
        if where is not None:
            stmt = stmt.where(where(stats, params))
        for column, direction in order:
            col = stats.c[_ORDER_COLUMNS[column]]
            stmt = stmt.order_by(col.desc() if direction == "desc" else col.asc())
        stmt = stmt.order_by(stats.c.movie_id).offset(params.skip).limit(params.limit)

        rows = (await session.execute(stmt)).all()
        genres, tags = await _labels(session, [r.movie_id for r in rows])
        return [
            {
                "movie_id": r.movie_id,
                "title": r.title,
                "year": r.year,
                "views": r.views,
                "average_rating": round(float(r.average_rating), 2),
                "genres": genres[r.movie_id],
                "tags": tags[r.movie_id],
            }
            for r in rows
        ]

    return run


def _genre_is(stats: Any, params: QueryParams) -> Any:
    return stats.c.movie_id.in_(
        select(MovieGenre.movie_id).where(
            func.lower(MovieGenre.genre) == params.genre.lower()
        )
    )


def _genre_in(stats: Any, params: QueryParams) -> Any:
    wanted = [g.lower() for g in params.genres]
    return stats.c.movie_id.in_(
        select(MovieGenre.movie_id).where(func.lower(MovieGenre.genre).in_(wanted))
    )


def _title_matches(stats: Any, params: QueryParams) -> Any:
    return Movie.title_key.like(f"%{title_key(params.text)}%")


def _tags_match(stats: Any, params: QueryParams) -> Any:
    return stats.c.movie_id.in_(
        select(MovieTag.movie_id).where(
            MovieTag.tag_key.like(f"%{tag_key(params.text)}%")
        )
    )


def _title_or_tags_match(stats: Any, params: QueryParams) -> Any:
    return or_(_title_matches(stats, params), _tags_match(stats, params))


def _quality(stats: Any, params: QueryParams) -> Any:
    return and_(
        stats.c.views >= params.min_views,
        stats.c.average_rating >= params.min_rating,
    )


def _popular_but_underrated(stats: Any, params: QueryParams) -> Any:
    return and_(
        stats.c.views >= params.min_views,
        stats.c.average_rating <= params.max_rating,
    )


# ── User templates ───────────────────────────────────────────────


async def _user_profile(
    session: AsyncSession, user_id: int, params: QueryParams
) -> list[Row]:
    user = await session.get(User, user_id)
    if user is None:
        return []
    await session.refresh(user, ["watched"])
    watched = sorted(user.watched_movie_ids)
    return [
        {
            "user_id": user.id,
            "name": user.name,
            "watched_count": len(watched),
            "watched_movies": watched,
        }
    ]


async def _user_last_ratings(
    session: AsyncSession, user_id: int, params: QueryParams
) -> list[Row]:
    last = _last_rates(user_id).subquery("last_rates")
    stmt = select(last).order_by(last.c.created_at.desc(), last.c.movie_id)
    if params.movie_ids:
        stmt = stmt.where(last.c.movie_id.in_(params.movie_ids))
    stmt = stmt.offset(params.skip).limit(params.limit)
    return [
        {
            "movie_id": r.movie_id,
            "title": r.title,
            "rate_value": r.rate_value,
            "timestamp": r.created_at.isoformat() if r.created_at else None,
        }
        for r in (await session.execute(stmt)).all()
    ]


async def _user_last_ratings_by_ids(
    session: AsyncSession, user_id: int, params: QueryParams
) -> list[Row]:
    if not params.movie_ids:
        return []
    return await _user_last_ratings(session, user_id, params)


def _affinity(label_model: type[MovieTag] | type[MovieGenre], column: str) -> Any:
    async def run(session: AsyncSession, user_id: int, params: QueryParams) -> list[Row]:
        label = getattr(label_model, column)
        score = func.avg(Rating.value).label("score")
        stmt = (
            select(
                func.min(label).label("label"),
                func.count(Rating.id).label("ratings"),
                func.sum(Rating.value).label("sum"),
                score,
            )
            .select_from(Rating)
            .join(label_model, label_model.movie_id == Rating.movie_id)
            .where(Rating.user_id == user_id)
            .group_by(func.lower(label))
            .order_by(score.desc(), func.count(Rating.id).desc())
            .offset(params.skip)
            .limit(params.limit)
        )
        key = "tag" if label_model is MovieTag else "genre"
        return [
            {key: r.label, "score": round(float(r.score), 2), "count": r.ratings}
            for r in (await session.execute(stmt)).all()
        ]

    return run


# ── The menu ─────────────────────────────────────────────────────

_PAGE = {"skip": 0, "pageSize": 10}
_DIRECTION_WORDS = {"desc": "descending", "asc": "ascending"}
_COLUMN_WORDS = {"AverageRating": "average rating (score)", "Views": "views"}


def _ordered_variants(
    prefix: str,
    description: str,
    sample: dict[str, Any],
    where: Callable[[Any, QueryParams], Any] | None,
) -> list[QueryTool]:
    """One tool per (order column, direction), named ``<prefix><Col><Dir>``."""
    tools: list[QueryTool] = []
    for column in ("AverageRating", "Views"):
        for direction in ("desc", "asc"):
            secondary = "Views" if column == "AverageRating" else "AverageRating"
            tools.append(
                QueryTool(
                    name=f"{prefix}{column}{direction.capitalize()}",
                    description=(
                        f"{description} Results are ordered by "
                        f"{_COLUMN_WORDS[column]} in {_DIRECTION_WORDS[direction]} "
                        "order. Supports pagination via skip and pageSize."
                    ),
                    parameters_sample=sample,
                    run=_stats_query(
                        where, [(column, direction), (secondary, "desc")]
                    ),
                )
            )
    return tools


def build_query_tools() -> list[QueryTool]:
    """Return the fixed query tool menu."""
    tools = [
        QueryTool(
            name="GetUserProfile",
            description=(
                "Get the profile of the current user: name and the ids of the "
                "movies in the user's watched list."
            ),
            parameters_sample={},
            run=_user_profile,
        ),
        QueryTool(
            name="GetUserLastRatings",
            description=(
                "Get the most recent rating the current user gave each watched "
                "movie, newest first. Supports pagination via skip and pageSize."
            ),
            parameters_sample={"skip": 0, "pageSize": 20},
            run=_user_last_ratings,
        ),
        QueryTool(
            name="GetUserLastRatingsByMovieIds",
            description=(
                "Get the current user's latest rating (score) for specific "
                "movies, given a list of movie ids."
            ),
            parameters_sample={"movieIds": [1, 2]},
            run=_user_last_ratings_by_ids,
        ),
        QueryTool(
            name="GetUserAffinitiesByTags",
            description=(
                "Get the current user's tag affinities: for each tag on movies "
                "the user rated, the average rating (score) and number of "
                "ratings, ordered by score descending."
            ),
            parameters_sample=_PAGE,
            run=_affinity(MovieTag, "tag"),
        ),
        QueryTool(
            name="GetUserAffinitiesByGenres",
            description=(
                "Get the current user's genre affinities: for each genre of "
                "movies the user rated, the average rating (score) and number "
                "of ratings, ordered by score descending."
            ),
            parameters_sample=_PAGE,
            run=_affinity(MovieGenre, "genre"),
        ),
    ]
    tools += _ordered_variants(
        "GetMovieStatsBy",
        "Get aggregated statistics (views, average rating, genres, tags) "
        "over all rated movies.",
        _PAGE,
        None,
    )
    tools += _ordered_variants(
        "GetMovieStatsByGenreOrderBy",
        "Get aggregated statistics for movies of one genre.",
        {"genre": "Action", "skip": 0, "pageSize": 5},
        _genre_is,
    )
    tools += _ordered_variants(
        "SearchMovieStatsByTitleOrderBy",
        "Search for movies whose title contains the given text.",
        {"text": "rex", "skip": 0, "pageSize": 5},
        _title_matches,
    )
    tools += _ordered_variants(
        "SearchMovieStatsByTagsOrderBy",
        "Search for movies with a tag containing the given text.",
        {"text": "dinosaurs", "skip": 0, "pageSize": 5},
        _tags_match,
    )
    tools += _ordered_variants(
        "SearchMovieStatsByTitleOrTagsOrderBy",
        "Search for movies whose title OR tags contain the given text.",
        {"text": "avengers", "skip": 0, "pageSize": 10},
        _title_or_tags_match,
    )
    quality_sample = {"minViews": 100, "minRating": 3.8, "skip": 0, "pageSize": 10}
    genres_sample = {"genres": ["Action", "Sci-Fi", "Thriller"], "skip": 0, "pageSize": 15}
    tools += [
        QueryTool(
            name="GetTopRatedWithQualityThreshold",
            description=(
                "Retrieve top-rated movies that meet minimum views and rating "
                "thresholds, ordered by average rating descending and then "
                "views descending."
            ),
            parameters_sample=quality_sample,
            run=_stats_query(_quality, [("AverageRating", "desc"), ("Views", "desc")]),
        ),
        QueryTool(
            name="GetTopRatedWithQualityThresholdAsc",
            description=(
                "Retrieve movies that meet minimum views and rating thresholds, "
                "ordered by average rating ascending and then views descending."
            ),
            parameters_sample=quality_sample,
            run=_stats_query(_quality, [("AverageRating", "asc"), ("Views", "desc")]),
        ),
        QueryTool(
            name="GetByGenresInListOrderByAverageRatingDesc",
            description=(
                "Retrieve movies belonging to any genre of a list, ordered by "
                "average rating descending and then views descending."
            ),
            parameters_sample=genres_sample,
            run=_stats_query(_genre_in, [("AverageRating", "desc"), ("Views", "desc")]),
        ),
        QueryTool(
            name="GetByGenresInListOrderByAverageRatingAsc",
            description=(
                "Retrieve movies belonging to any genre of a list, ordered by "
                "average rating ascending and then views ascending."
            ),
            parameters_sample=genres_sample,
            run=_stats_query(_genre_in, [("AverageRating", "asc"), ("Views", "asc")]),
        ),
        QueryTool(
            name="PopularButUnderrated",
            description=(
                "Find popular movies with high view counts but modest ratings, "
                "ordered by views descending and rating ascending."
            ),
            parameters_sample={"minViews": 500, "maxRating": 3.9, "skip": 0, "pageSize": 10},
            run=_stats_query(
                _popular_but_underrated, [("Views", "desc"), ("AverageRating", "asc")]
            ),
        ),
    ]
    return tools
