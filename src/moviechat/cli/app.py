"""Main CLI application.

Click commands for moviechat: seed, chat, chats, tools.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

import click

from moviechat import __version__
from moviechat.config.loader import load_config
from moviechat.core.errors import ConfigError, MovieChatError, ProviderError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from moviechat.chat.session import ChatSession
    from moviechat.cli.display import ChatDisplay
    from moviechat.config.schema import MovieChatConfig
    from moviechat.providers.base import ModelProvider

EXIT_COMMAND = "exit"
EXIT_AND_REMOVE_COMMAND = "exit and remove chat"


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> MovieChatConfig:
    """Load config with user-friendly error handling."""
    try:
        return load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy


def _configure_logging(config: MovieChatConfig) -> None:
    """Route moviechat logs to a file or to stderr via rich."""
    handler: logging.Handler
    if config.logging.file:
        path = Path(config.logging.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    else:
        from rich.console import Console
        from rich.logging import RichHandler

        handler = RichHandler(console=Console(stderr=True), show_path=False)

    root = logging.getLogger("moviechat")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(config.logging.level.upper())


async def _create_db(
    config: MovieChatConfig,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create async engine and sessionmaker from config."""
    from sqlalchemy import event
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from moviechat.store.models import Base

    url = config.database.url
    if "~" in url:
        url = url.replace("~", str(Path.home()))

    # Ensure parent directory exists for sqlite
    if url.startswith("sqlite"):
        db_path = url.split("///")[-1] if "///" in url else ""
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    engine_kwargs: dict[str, object] = {}
    if url.startswith("sqlite"):
        if ":memory:" in url or url.endswith("://"):
            # In-memory SQLite needs StaticPool so all queries share
            # the same connection (and thus the same in-memory DB).
            from sqlalchemy.pool import StaticPool

            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            from sqlalchemy.pool import NullPool

            engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs["pool_pre_ping"] = True

    engine = create_async_engine(url, **engine_kwargs)

    # Enable foreign keys for SQLite
    if url.startswith("sqlite"):

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_fks(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    return factory, engine


def _create_provider(config: MovieChatConfig) -> ModelProvider:
    """Instantiate the model provider from config."""
    from moviechat.providers.openai import OpenAIProvider

    if config.provider.api_key is None:
        env = config.provider.api_key_env or "provider.api_key"
        msg = f"No API key configured: set {env} or provider.api_key in the config"
        raise ConfigError(msg)
    return OpenAIProvider(
        api_key=config.provider.api_key,
        base_url=config.provider.base_url,
    )


# ── CLI group ────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="moviechat")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """moviechat - Chat with an AI movie recommender.

    The agent reads your ratings and tastes from the movie database and
    can rate movies, tag movies and rename you on request.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── seed ─────────────────────────────────────────────────────────


@cli.command()
@click.argument("csv_dir", required=False, type=click.Path(file_okay=False))
@click.option(
    "--ratings-limit",
    type=int,
    default=None,
    help="Load at most N ratings (0 = all).",
)
@click.option(
    "--name-seed",
    type=int,
    default=None,
    help="Random seed for generated user names.",
)
@click.pass_context
def seed(
    ctx: click.Context,
    csv_dir: str | None,
    ratings_limit: int | None,
    name_seed: int | None,
) -> None:
    """Load the movie dataset from CSV_DIR into an empty database."""
    config = _load_config(ctx.obj["config_path"])
    _configure_logging(config)
    try:
        asyncio.run(
            _seed_async(
                config,
                csv_dir or config.seed.csv_dir,
                config.seed.ratings_limit if ratings_limit is None else ratings_limit,
                config.seed.name_seed if name_seed is None else name_seed,
            )
        )
    except MovieChatError as e:
        _error(str(e))


async def _seed_async(
    config: MovieChatConfig,
    csv_dir: str,
    ratings_limit: int,
    name_seed: int | None,
) -> None:
    """Async implementation for the seed command."""
    from moviechat.store.names import NameGenerator
    from moviechat.store.seed import seed_database

    factory, engine = await _create_db(config)
    try:
        report = await seed_database(
            factory,
            csv_dir,
            ratings_limit=ratings_limit,
            name_generator=NameGenerator(seed=name_seed),
        )
    finally:
        await engine.dispose()

    if report is None:
        click.echo("Database already seeded, nothing to do.")
        return
    click.echo(
        f"Seeded {report.movies} movies, {report.ratings} ratings, "
        f"{report.users} users, {report.tags} tags."
    )


# ── chat ─────────────────────────────────────────────────────────


@cli.command()
@click.option("--chat-id", default=None, help="Chat to open or create.")
@click.option("--user-id", type=int, default=None, help="User you are chatting as.")
@click.pass_context
def chat(ctx: click.Context, chat_id: str | None, user_id: int | None) -> None:
    """Start an interactive chat with the movie agent."""
    config = _load_config(ctx.obj["config_path"])
    _configure_logging(config)

    if chat_id is None:
        chat_id = click.prompt(
            "Chat id (blank for a new chat)", default="", show_default=False
        )
    chat_id = chat_id.strip() or uuid.uuid4().hex
    if user_id is None:
        user_id = click.prompt("User id", type=int, default=config.chat.default_user_id)

    try:
        provider = _create_provider(config)
        asyncio.run(_chat_async(config, provider, chat_id, user_id))
    except MovieChatError as e:
        _error(str(e))


def _prompt_reader() -> Callable[[str], Awaitable[str]]:
    """Line reader with in-memory history (arrow keys recall prompts)."""
    from prompt_toolkit import PromptSession
    from prompt_toolkit.history import InMemoryHistory

    session: PromptSession[str] = PromptSession(history=InMemoryHistory())
    return session.prompt_async


async def _chat_async(
    config: MovieChatConfig,
    provider: ModelProvider,
    chat_id: str,
    user_id: int,
    *,
    read_line: Callable[[str], Awaitable[str]] | None = None,
    display: ChatDisplay | None = None,
) -> None:
    """Async implementation for the chat command."""
    from moviechat.chat.session import ChatSession
    from moviechat.cli.display import ChatDisplay

    display = display or ChatDisplay()
    if not await provider.health_check():
        msg = "Health check failed: provider unreachable or API key rejected"
        raise ProviderError(provider.provider_id, msg)
    factory, engine = await _create_db(config)
    try:
        session = await ChatSession.open(
            provider,
            factory,
            config,
            chat_id=chat_id,
            user_id=user_id,
            observer=display.record_action,
        )
        display.banner(chat_id, user_id)
        await _repl(session, display, read_line or _prompt_reader())
    finally:
        await engine.dispose()


async def _repl(
    session: ChatSession,
    display: ChatDisplay,
    read_line: Callable[[str], Awaitable[str]],
) -> None:
    """Read prompts until the user exits; each prompt is one talk."""
    while True:
        try:
            line = await read_line("> ")
        except (EOFError, KeyboardInterrupt):
            break

        command = line.strip().lower()
        if command == EXIT_COMMAND:
            break
        if command == EXIT_AND_REMOVE_COMMAND:
            await session.remove()
            click.echo("Chat removed.")
            break
        if not command:
            click.echo("Prompt cannot be empty, try again")
            continue

        try:
            with display.thinking():
                answer = await session.talk(line.strip())
        except MovieChatError as e:
            display.show_actions()
            display.show_error(str(e))
            continue
        display.show_actions()
        display.show_answer(answer)


# ── chats ────────────────────────────────────────────────────────


@cli.command()
@click.option("--limit", type=int, default=20, help="Max results.")
@click.pass_context
def chats(ctx: click.Context, limit: int) -> None:
    """List persisted chats, most recently active first."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_chats_async(config, limit))
    except MovieChatError as e:
        _error(str(e))


async def _chats_async(config: MovieChatConfig, limit: int) -> None:
    """Async implementation for the chats command."""
    from moviechat.store.repository import MovieRepository

    factory, engine = await _create_db(config)
    async with factory() as session:
        chat_list = await MovieRepository(session).list_chats(limit=limit)
    await engine.dispose()

    if not chat_list:
        click.echo("No chats found.")
        return

    for c in chat_list:
        updated = c.updated_at.strftime("%Y-%m-%d %H:%M")
        click.echo(f"  {c.id}  user {c.user_id}  {updated}")


# ── tools ────────────────────────────────────────────────────────


@cli.command()
def tools() -> None:
    """List the query and action tools offered to the agent."""
    from moviechat.chat.session import default_registry
    from moviechat.cli.display import ChatDisplay
    from moviechat.store.queries import build_query_tools
    from moviechat.tools.base import ToolDefinition, ToolKind

    definitions = [
        ToolDefinition(
            name=q.name,
            description=q.description,
            parameters_schema=q.parameters_schema,
            kind=ToolKind.QUERY,
            parameters_sample=q.parameters_sample,
        )
        for q in build_query_tools()
    ]
    definitions += default_registry().list_definitions()
    ChatDisplay().show_tools(definitions)
