"""Tests for the CLI commands and the chat REPL."""

from __future__ import annotations

import io
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner
from rich.console import Console

from moviechat.agent.base import Answer
from moviechat.cli.app import _chat_async, _create_provider, _repl, cli
from moviechat.cli.display import ChatDisplay
from moviechat.config.schema import MovieChatConfig
from moviechat.core.errors import ConfigError, ProviderError, ProviderTimeoutError
from moviechat.tools.base import ActionRequest, ActionResult
from tests.fixtures.providers import ScriptedProvider, answer, call, tool_calls


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _mem_config(**overrides: Any) -> MovieChatConfig:
    return MovieChatConfig(database={"url": "sqlite+aiosqlite://"}, **overrides)  # type: ignore[arg-type]


def _display() -> tuple[ChatDisplay, io.StringIO]:
    buf = io.StringIO()
    return ChatDisplay(Console(file=buf, width=120, no_color=True)), buf


def _reader(lines: list[str]):
    """Async line reader replaying *lines*, then EOF."""
    pending = list(lines)

    async def read_line(prompt: str) -> str:
        if not pending:
            raise EOFError
        return pending.pop(0)

    return read_line


class _FakeSession:
    def __init__(self, outcomes: list[Answer | Exception]) -> None:
        self._outcomes = list(outcomes)
        self.prompts: list[str] = []
        self.removed = False

    async def talk(self, prompt: str) -> Answer:
        self.prompts.append(prompt)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def remove(self) -> None:
        self.removed = True


# ── CLI group ────────────────────────────────────────────────────


class TestCliGroup:
    def test_no_command_shows_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli)
        assert result.exit_code == 0
        assert "AI movie recommender" in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "moviechat" in result.output
        assert "0.1.0" in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        for command in ("seed", "chat", "chats", "tools"):
            assert command in result.output


# ── seed ─────────────────────────────────────────────────────────


class TestSeedCommand:
    def test_seeds_csv_dir(self, runner: CliRunner, tmp_path) -> None:
        (tmp_path / "movies.csv").write_text(
            "movieId,title,genres\n1,Heat (1995),Crime\n"
        )
        (tmp_path / "ratings.csv").write_text(
            "userId,movieId,rating,timestamp\n1,1,4.0,964982703\n"
        )
        with patch("moviechat.cli.app.load_config", return_value=_mem_config()):
            result = runner.invoke(cli, ["seed", str(tmp_path), "--name-seed", "1"])
        assert result.exit_code == 0, result.output
        assert "Seeded 1 movies, 1 ratings, 1 users, 0 tags." in result.output

    def test_missing_dataset(self, runner: CliRunner, tmp_path) -> None:
        with patch("moviechat.cli.app.load_config", return_value=_mem_config()):
            result = runner.invoke(cli, ["seed", str(tmp_path)])
        assert result.exit_code == 1
        assert "movies.csv not found" in result.output

    @patch("moviechat.cli.app.asyncio.run")
    @patch("moviechat.cli.app.load_config")
    def test_config_defaults_used(
        self, mock_config: Any, mock_run: Any, runner: CliRunner
    ) -> None:
        mock_config.return_value = MovieChatConfig(
            seed={"csv_dir": "/data", "ratings_limit": 50}  # type: ignore[arg-type]
        )
        with patch("moviechat.cli.app._seed_async", new=MagicMock()) as seed_async:
            result = runner.invoke(cli, ["seed"])
        assert result.exit_code == 0
        args = seed_async.call_args.args
        assert args[1:] == ("/data", 50, None)


# ── chat ─────────────────────────────────────────────────────────


class TestChatCommand:
    def test_missing_api_key(self, runner: CliRunner) -> None:
        with patch("moviechat.cli.app.load_config", return_value=_mem_config()):
            result = runner.invoke(cli, ["chat", "--chat-id", "c", "--user-id", "1"])
        assert result.exit_code == 1
        assert "No API key configured" in result.output

    @patch("moviechat.cli.app.asyncio.run")
    @patch("moviechat.cli.app.load_config")
    def test_prompts_for_ids(
        self, mock_config: Any, mock_run: Any, runner: CliRunner
    ) -> None:
        mock_config.return_value = _mem_config(provider={"api_key": "sk-test"})
        with patch("moviechat.cli.app._chat_async", new=MagicMock()) as chat_async:
            result = runner.invoke(cli, ["chat"], input="\n7\n")
        assert result.exit_code == 0, result.output
        _, _, chat_id, user_id = chat_async.call_args.args
        assert len(chat_id) == 32
        assert user_id == 7

    @patch("moviechat.cli.app.asyncio.run")
    @patch("moviechat.cli.app.load_config")
    def test_provider_error_exits(
        self, mock_config: Any, mock_run: Any, runner: CliRunner
    ) -> None:
        mock_config.return_value = _mem_config(provider={"api_key": "sk-test"})
        mock_run.side_effect = ProviderTimeoutError("openai", "slow")
        with patch("moviechat.cli.app._chat_async", new=MagicMock()):
            result = runner.invoke(cli, ["chat", "--chat-id", "c", "--user-id", "1"])
        assert result.exit_code == 1
        assert "slow" in result.output


class TestCreateProvider:
    def test_requires_key(self) -> None:
        with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
            _create_provider(MovieChatConfig())

    def test_builds_openai(self) -> None:
        config = MovieChatConfig(provider={"api_key": "sk-test"})  # type: ignore[arg-type]
        assert _create_provider(config).provider_id == "openai"


# ── REPL ─────────────────────────────────────────────────────────


class TestRepl:
    async def test_talks_until_exit(self, capsys) -> None:
        session = _FakeSession([Answer(answer="Try Heat", movie_ids=[2])])
        display, buf = _display()
        await _repl(session, display, _reader(["recommend", "exit", "ignored"]))
        assert session.prompts == ["recommend"]
        assert "Try Heat" in buf.getvalue()
        assert "Movie ids: [2]" in buf.getvalue()

    async def test_empty_prompt_reprompts(self, capsys) -> None:
        session = _FakeSession([Answer(answer="ok")])
        display, _ = _display()
        await _repl(session, display, _reader(["   ", "hi"]))
        assert "Prompt cannot be empty, try again" in capsys.readouterr().out
        assert session.prompts == ["hi"]

    async def test_exit_and_remove(self, capsys) -> None:
        session = _FakeSession([])
        display, _ = _display()
        await _repl(session, display, _reader(["Exit and remove chat"]))
        assert session.removed is True
        assert "Chat removed." in capsys.readouterr().out

    async def test_error_shown_and_loop_continues(self) -> None:
        session = _FakeSession(
            [ProviderTimeoutError("openai", "slow"), Answer(answer="second try")]
        )
        display, buf = _display()
        await _repl(session, display, _reader(["one", "two"]))
        out = buf.getvalue()
        assert "Error: [openai] slow" in out
        assert "second try" in out

    async def test_actions_printed_before_answer(self) -> None:
        session = _FakeSession([Answer(answer="Rated")])
        display, buf = _display()
        display.record_action(
            ActionRequest("t1", "RateMovie", '{"movieName": "Heat"}'),
            ActionResult.ok("Found 1 movies"),
        )
        await _repl(session, display, _reader(["rate heat"]))
        out = buf.getvalue()
        assert out.index("Actions") < out.index("Rated")


class TestChatAsync:
    async def test_end_to_end_with_scripted_provider(self) -> None:
        provider = ScriptedProvider(
            [
                tool_calls(call("a1", "ChangeUserName", oldUserName="x", newUserName="y")),
                answer("Could not rename you"),
            ]
        )
        display, buf = _display()
        await _chat_async(
            _mem_config(),
            provider,
            "repl-chat",
            1,
            read_line=_reader(["rename me"]),
            display=display,
        )
        out = buf.getvalue()
        assert "Chat repl-chat" in out
        assert "ChangeUserName" in out
        assert "[failed]" in out
        assert "Could not rename you" in out


# ── chats / tools ────────────────────────────────────────────────


class TestListingCommands:
    def test_chats_empty(self, runner: CliRunner) -> None:
        with patch("moviechat.cli.app.load_config", return_value=_mem_config()):
            result = runner.invoke(cli, ["chats"])
        assert result.exit_code == 0
        assert "No chats found." in result.output

    def test_tools(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["tools"], env={"COLUMNS": "250"})
        assert result.exit_code == 0
        for name in ("GetUserProfile", "PopularButUnderrated", "RateMovie", "AddTags"):
            assert name in result.output
        assert "query" in result.output
        assert "action" in result.output


class _UnreachableProvider(ScriptedProvider):
    async def health_check(self) -> bool:
        return False


class TestHealthCheck:
    async def test_unhealthy_provider_stops_before_repl(self) -> None:
        provider = _UnreachableProvider([answer("never")])
        display, buf = _display()
        with pytest.raises(ProviderError, match="Health check failed"):
            await _chat_async(
                _mem_config(),
                provider,
                "c",
                1,
                read_line=_reader(["hi"]),
                display=display,
            )
        assert provider.call_log == []
        assert "Chat c" not in buf.getvalue()
