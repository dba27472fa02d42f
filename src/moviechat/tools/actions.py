"""The mutating action tools: rate a movie, tag a movie, rename the user.

Each handler opens its own unit of work from the context's session
factory, commits on success and otherwise closes the session without
committing, which discards anything it flushed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from moviechat.store.repository import MovieRepository, tag_key
from moviechat.tools.arguments import AddTags, ChangeUserName, RateMovie
from moviechat.tools.base import ActionResult

if TYPE_CHECKING:
    from moviechat.tools.arguments import ActionArguments
    from moviechat.tools.base import ActionContext

MIN_RATE = 0.0
MAX_RATE = 5.0


def _not_found(movie_name: str) -> ActionResult:
    return ActionResult.fail(
        f'Movie with the name "{movie_name}" doesn\'t exist in the database'
    )


def _user_missing(user_id: int) -> ActionResult:
    return ActionResult.fail(f"User '{user_id}' doesn't exist in the database")


class RateMovieTool:
    """Record a rating for every movie matching a title.

    Implements the :class:`ActionTool` protocol.
    """

    @property
    def name(self) -> str:
        return "RateMovie"

    @property
    def description(self) -> str:
        return (
            "Add a movie rating for the current user you are talking with. "
            "Requires the movie name and a rate value between 0 and 5 "
            "(can be fractional, doesn't have to be an integer)."
        )

    @property
    def arguments_model(self) -> type[ActionArguments]:
        return RateMovie

    async def execute(
        self, context: ActionContext, arguments: ActionArguments
    ) -> ActionResult:
        assert isinstance(arguments, RateMovie)
        name, value = arguments.movie_name, arguments.rate_value
        if not MIN_RATE <= value <= MAX_RATE:
            return ActionResult.fail(
                f'Can\'t rate "{name}" with the rate value {value:g} - '
                "rate value has to be between 0 to 5"
            )

        async with context.session_factory() as session:
            repo = MovieRepository(session)
            movies = await repo.find_movies_by_title(name)
            if not movies:
                return _not_found(name)
            user = await repo.get_user(context.user_id)
            if user is None:
                return _user_missing(context.user_id)
            for movie in movies:
                await repo.add_rating(user.id, movie.id, value)
                await repo.mark_watched(user, movie.id)
            await session.commit()

        return ActionResult.ok(
            f"Found {len(movies)} movies with the name '{name}' "
            f"and rated them by score '{value:g}'"
        )


class AddTagsTool:
    """Union tags into every movie matching a title.

    Implements the :class:`ActionTool` protocol.
    """

    @property
    def name(self) -> str:
        return "AddTags"

    @property
    def description(self) -> str:
        return (
            "Adds one or more user-provided tags to a specified movie. Tags "
            "should describe the movie's characteristics, such as themes, "
            "style, or content. Only perform this action if the tags are "
            "relevant to the movie; otherwise, do not apply them and inform "
            "the user that the tags are not suitable."
        )

    @property
    def arguments_model(self) -> type[ActionArguments]:
        return AddTags

    async def execute(
        self, context: ActionContext, arguments: ActionArguments
    ) -> ActionResult:
        assert isinstance(arguments, AddTags)
        name = arguments.movie_name
        tags: dict[str, str] = {}
        for raw in arguments.tags:
            if tag_key(raw):
                tags.setdefault(tag_key(raw), raw.strip())

        async with context.session_factory() as session:
            repo = MovieRepository(session)
            movies = await repo.find_movies_by_title(name)
            if not movies:
                return _not_found(name)
            for movie in movies:
                await repo.add_tags(movie, tags.values())
            await session.commit()

        return ActionResult.ok(
            f"Found {len(movies)} movies with the name '{name}' "
            f"and added them the tags [{', '.join(tags.values())}]"
        )


class ChangeUserNameTool:
    """Rename the calling user after checking their current name.

    Implements the :class:`ActionTool` protocol.
    """

    @property
    def name(self) -> str:
        return "ChangeUserName"

    @property
    def description(self) -> str:
        return (
            "Updates the name of the current user interacting with the AI "
            "agent. The old name must also be sent, for validation."
        )

    @property
    def arguments_model(self) -> type[ActionArguments]:
        return ChangeUserName

    async def execute(
        self, context: ActionContext, arguments: ActionArguments
    ) -> ActionResult:
        assert isinstance(arguments, ChangeUserName)
        old, new = arguments.old_user_name, arguments.new_user_name

        async with context.session_factory() as session:
            repo = MovieRepository(session)
            user = await repo.get_user(context.user_id)
            if user is None:
                return _user_missing(context.user_id)
            if user.name.casefold() != old.casefold():
                return ActionResult.fail(f"Your old name isn't '{old}'")
            await repo.rename_user(user, new)
            await session.commit()

        return ActionResult.ok(
            f"Name of user '{context.user_id}' changed from '{old}' to '{new}'"
        )


def default_action_tools() -> list[RateMovieTool | AddTagsTool | ChangeUserNameTool]:
    """The action tools every chat session registers."""
    return [RateMovieTool(), AddTagsTool(), ChangeUserNameTool()]
