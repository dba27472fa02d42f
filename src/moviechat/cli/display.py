"""Rich display for the chat REPL.

Renders agent answers, the actions performed during a turn and the
tool menu.  Accepts an optional :class:`~rich.console.Console` for
dependency injection in tests.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rich.status import Status

    from moviechat.agent.base import Answer
    from moviechat.tools.base import ActionRequest, ActionResult, ToolDefinition

_TRUNCATE_LEN = 120


def _truncate(text: str, limit: int = _TRUNCATE_LEN) -> str:
    """Truncate text to *limit* characters with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


class ChatDisplay:
    """Rich display for an interactive chat session."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._actions: list[tuple[ActionRequest, ActionResult]] = []

    def banner(self, chat_id: str, user_id: int) -> None:
        title = f"[bold]Chat {escape(chat_id)}[/bold] (user {user_id})"
        self._console.rule(title, style="cyan")
        self._console.print(
            "Type [bold]exit[/bold] to quit, or [bold]exit and remove chat[/bold] "
            "to quit and delete this conversation.",
            style="dim",
        )

    def thinking(self) -> Status:
        """Spinner shown while the agent works on a turn."""
        label = "[bold cyan]Thinking...[/bold cyan]"
        return self._console.status(label, spinner="dots")

    # ── Actions ──────────────────────────────────────────────────

    def record_action(self, request: ActionRequest, result: ActionResult) -> None:
        """Observer callback: remember one dispatched action."""
        self._actions.append((request, result))

    def show_actions(self) -> None:
        """Print the actions recorded since the last call, if any."""
        if not self._actions:
            return
        lines = Text()
        for i, (request, result) in enumerate(self._actions):
            if i:
                lines.append("\n")
            mark, style = ("ok", "green") if result.is_successful else ("failed", "red")
            lines.append(f"{request.name}", style="bold")
            lines.append(f" {_truncate(request.arguments, 80)}\n", style="dim")
            lines.append(f"  [{mark}] ", style=style)
            lines.append(result.message)
        self._console.print(
            Panel(lines, title="[bold]Actions[/bold]", border_style="yellow")
        )
        self._actions.clear()

    # ── Answer ───────────────────────────────────────────────────

    def show_answer(self, answer: Answer) -> None:
        self._console.print(
            Panel(
                Text(answer.answer or "(no answer)"),
                title="[bold green]Answer[/bold green]",
                border_style="green",
            )
        )
        if answer.movie_ids:
            ids = ", ".join(str(i) for i in answer.movie_ids)
            self._console.print(f"Movie ids: [{ids}]", markup=False)
        if answer.movie_names:
            names = ", ".join(answer.movie_names)
            self._console.print(f"Movie names: [{names}]", markup=False)

    def show_error(self, message: str) -> None:
        self._console.print(f"[bold red]Error:[/bold red] {escape(message)}")

    # ── Tool menu ────────────────────────────────────────────────

    def show_tools(self, definitions: Sequence[ToolDefinition]) -> None:
        table = Table(title="Tools", show_lines=True)
        table.add_column("Name", style="bold")
        table.add_column("Kind")
        table.add_column("Description")
        table.add_column("Sample parameters", style="dim")
        for d in definitions:
            table.add_row(
                d.name,
                d.kind.value,
                _truncate(d.description),
                Text(json.dumps(d.parameters_sample or {})),
            )
        self._console.print(table)
