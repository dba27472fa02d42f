"""Tests for the RateMovie, AddTags and ChangeUserName handlers."""

from __future__ import annotations

import pytest

from moviechat.store.repository import MovieRepository
from moviechat.tools.actions import (
    AddTagsTool,
    ChangeUserNameTool,
    RateMovieTool,
    default_action_tools,
)
from moviechat.tools.arguments import AddTags, ChangeUserName, RateMovie
from moviechat.tools.base import ActionContext, ActionTool


@pytest.fixture
def context(session_factory, catalog) -> ActionContext:
    return ActionContext(user_id=catalog["user_id"], session_factory=session_factory)


def rate(name: str, value: float) -> RateMovie:
    return RateMovie(movie_name=name, rate_value=value)


async def _ratings(session_factory, user_id: int, movie_id: int) -> list[float]:
    async with session_factory() as session:
        ratings = await MovieRepository(session).get_ratings(user_id, movie_id=movie_id)
        return [r.value for r in ratings]


async def _user(session_factory, user_id: int):
    async with session_factory() as session:
        return await MovieRepository(session).get_user(user_id)


class TestProtocol:
    def test_default_tools_satisfy_protocol(self):
        tools = default_action_tools()
        assert [t.name for t in tools] == ["RateMovie", "AddTags", "ChangeUserName"]
        for tool in tools:
            assert isinstance(tool, ActionTool)
            assert tool.description


# ── RateMovie ────────────────────────────────────────────────────


class TestRateMovie:
    @pytest.mark.parametrize("value", [-0.1, 5.1])
    async def test_out_of_range_rejected(self, context, session_factory, value):
        result = await RateMovieTool().execute(context, rate("Inception", value))
        assert result.is_successful is False
        assert result.message == (
            f'Can\'t rate "Inception" with the rate value {value} - '
            "rate value has to be between 0 to 5"
        )
        assert await _ratings(session_factory, 1, 1) == [4.0, 5.0]

    @pytest.mark.parametrize("value", [0, 5, 4.5])
    async def test_boundaries_accepted(self, context, value):
        result = await RateMovieTool().execute(context, rate("Inception", value))
        assert result.is_successful is True

    async def test_records_rating_and_watched(self, context, session_factory):
        result = await RateMovieTool().execute(context, rate("heat", 3.5))
        assert result.is_successful is True
        assert result.message == (
            "Found 2 movies with the name 'heat' and rated them by score '3.5'"
        )
        assert await _ratings(session_factory, 1, 2) == [3.5]
        assert await _ratings(session_factory, 1, 3) == [3.5]
        user = await _user(session_factory, 1)
        assert user.watched_movie_ids == {1, 2, 3, 4}

    async def test_rating_again_appends(self, context, session_factory):
        await RateMovieTool().execute(context, rate("Inception", 2))
        assert await _ratings(session_factory, 1, 1) == [4.0, 5.0, 2.0]
        user = await _user(session_factory, 1)
        assert user.watched_movie_ids == {1, 4}

    async def test_integer_value_message(self, context):
        result = await RateMovieTool().execute(context, rate("Inception", 5))
        assert result.message.endswith("rated them by score '5'")

    async def test_unknown_movie(self, context):
        result = await RateMovieTool().execute(context, rate("Nope", 3))
        assert result.is_successful is False
        assert result.message == (
            'Movie with the name "Nope" doesn\'t exist in the database'
        )

    async def test_non_ascii_title_matches_any_case(self, context, session_factory):
        async with session_factory() as session:
            await MovieRepository(session).add_movie(10, "Ödipussi", year=1988)
            await session.commit()
        result = await RateMovieTool().execute(context, rate("ödipussi", 4))
        assert result.is_successful is True
        assert result.message == (
            "Found 1 movies with the name 'ödipussi' and rated them by score '4'"
        )
        assert await _ratings(session_factory, 1, 10) == [4.0]

    async def test_unknown_user(self, session_factory, catalog):
        ctx = ActionContext(user_id=404, session_factory=session_factory)
        result = await RateMovieTool().execute(ctx, rate("Inception", 3))
        assert result.is_successful is False
        assert result.message == "User '404' doesn't exist in the database"
        assert await _ratings(session_factory, 404, 1) == []


# ── AddTags ──────────────────────────────────────────────────────


class TestAddTags:
    async def test_case_insensitive_dedup(self, context, session_factory):
        args = AddTags(movie_name="Alien", tags=["Scary", "scary"])
        result = await AddTagsTool().execute(context, args)
        assert result.is_successful is True
        assert result.message == (
            "Found 1 movies with the name 'Alien' and added them the tags [Scary]"
        )
        async with session_factory() as session:
            movie = await MovieRepository(session).get_movie(4)
            assert sorted(movie.tag_names) == ["Scary", "space"]

    async def test_idempotent(self, context, session_factory):
        args = AddTags(movie_name="Alien", tags=["Scary"])
        await AddTagsTool().execute(context, args)
        await AddTagsTool().execute(context, AddTags(movie_name="alien", tags=["SCARY"]))
        async with session_factory() as session:
            movie = await MovieRepository(session).get_movie(4)
            assert len(movie.tags) == 2

    async def test_all_matches_tagged(self, context, session_factory):
        args = AddTags(movie_name="Heat", tags=["heist", "Pacino"])
        result = await AddTagsTool().execute(context, args)
        assert result.message == (
            "Found 2 movies with the name 'Heat' and added them the tags "
            "[heist, Pacino]"
        )
        async with session_factory() as session:
            repo = MovieRepository(session)
            for movie_id in (2, 3):
                movie = await repo.get_movie(movie_id)
                assert sorted(movie.tag_names) == ["Pacino", "heist"]

    async def test_unknown_movie(self, context):
        result = await AddTagsTool().execute(
            context, AddTags(movie_name="Nope", tags=["x"])
        )
        assert result.is_successful is False
        assert "doesn't exist" in result.message

    async def test_no_tags_is_a_no_op(self, context, session_factory):
        result = await AddTagsTool().execute(
            context, AddTags(movie_name="Alien", tags=["  "])
        )
        assert result.is_successful is True
        assert result.message == (
            "Found 1 movies with the name 'Alien' and added them the tags []"
        )
        async with session_factory() as session:
            movie = await MovieRepository(session).get_movie(4)
            assert movie.tag_names == ["space"]

    async def test_no_tags_unknown_movie(self, context):
        result = await AddTagsTool().execute(context, AddTags(movie_name="Nope", tags=[]))
        assert result.is_successful is False
        assert result.message == (
            'Movie with the name "Nope" doesn\'t exist in the database'
        )


# ── ChangeUserName ───────────────────────────────────────────────


class TestChangeUserName:
    async def test_case_insensitive_match(self, context, session_factory):
        args = ChangeUserName(old_user_name="james parker", new_user_name="James Smith")
        result = await ChangeUserNameTool().execute(context, args)
        assert result.is_successful is True
        assert result.message == (
            "Name of user '1' changed from 'james parker' to 'James Smith'"
        )
        assert (await _user(session_factory, 1)).name == "James Smith"

    async def test_mismatch_leaves_name(self, context, session_factory):
        args = ChangeUserName(old_user_name="Someone Else", new_user_name="X")
        result = await ChangeUserNameTool().execute(context, args)
        assert result.is_successful is False
        assert result.message == "Your old name isn't 'Someone Else'"
        assert (await _user(session_factory, 1)).name == "James Parker"

    async def test_unknown_user(self, session_factory, catalog):
        ctx = ActionContext(user_id=77, session_factory=session_factory)
        args = ChangeUserName(old_user_name="a", new_user_name="b")
        result = await ChangeUserNameTool().execute(ctx, args)
        assert result.is_successful is False
        assert result.message == "User '77' doesn't exist in the database"
