"""Rich display for a streamed chat turn.

Renders text as it arrives, one line per tool call and per tool result,
then the tool data as panels once the turn ends. Accepts an optional
:class:`~rich.console.Console` for dependency injection in tests.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pokechat.client.decoder import MessageView, ToolCallView, ToolOutcome
    from pokechat.client.http import ChatOutcome

_TRUNCATE_LEN = 120


def _truncate(text: str, limit: int = _TRUNCATE_LEN) -> str:
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


def _format_input(value: Any) -> str:
    return _truncate(json.dumps(value, ensure_ascii=False, default=str))


class ChatDisplay:
    """Incremental renderer fed with message-view snapshots."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._shown_chars = 0
        self._shown_calls = 0
        self._resolved: set[int] = set()
        self._mid_line = False

    def update(self, view: MessageView) -> None:
        """Render whatever *view* adds over the previous snapshot."""
        for index in range(self._shown_calls, len(view.tool_calls)):
            self._show_call(view.tool_calls[index])
        self._shown_calls = len(view.tool_calls)

        for index, call in enumerate(view.tool_calls):
            if call.result is not None and index not in self._resolved:
                self._resolved.add(index)
                self._show_result(call, call.result)

        if len(view.content) > self._shown_chars:
            self._console.print(
                view.content[self._shown_chars :],
                end="",
                markup=False,
                highlight=False,
            )
            self._shown_chars = len(view.content)
            self._mid_line = not view.content.endswith("\n")

    def finish(self, outcome: ChatOutcome) -> None:
        """Render the end of the turn: tool data, then any error."""
        self.update(outcome.view)
        self._end_line()

        for result in outcome.view.tool_results:
            self._console.print(
                Panel(
                    JSON.from_data(result.data, default=str),
                    title=f"[bold]{result.tool_name}[/bold]",
                    border_style="blue",
                    padding=(0, 1),
                )
            )

        if outcome.status == "error":
            self._console.print(
                Panel(
                    Text(outcome.error or "Turn failed"),
                    title="[bold red]Error[/bold red]",
                    border_style="red",
                )
            )
        elif outcome.status == "stopped":
            self._console.print("[dim]Stopped.[/dim]")

    def _end_line(self) -> None:
        if self._mid_line:
            self._console.print()
            self._mid_line = False

    def _show_call(self, call: ToolCallView) -> None:
        self._end_line()
        self._console.print(
            Text.assemble(
                (">", "cyan"),
                " ",
                (call.tool_name, "bold"),
                " ",
                (_format_input(call.input), "dim"),
            )
        )

    def _show_result(self, call: ToolCallView, outcome: ToolOutcome) -> None:
        self._end_line()
        if outcome.ok:
            self._console.print(f"[green]ok[/green] {call.tool_name}")
        else:
            self._console.print(
                Text.assemble(
                    ("failed", "red"),
                    f" {call.tool_name}: {outcome.error or 'unknown error'}",
                )
            )


def render_tools(manifest: Sequence[dict[str, Any]], console: Console | None = None) -> None:
    """Print the tool manifest as a table."""
    console = console or Console()
    table = Table(title="Tools", show_lines=True)
    table.add_column("Name", style="bold")
    table.add_column("Description")
    table.add_column("Inputs", style="dim")
    for entry in manifest:
        props = entry.get("input_schema", {}).get("properties", {})
        table.add_row(entry["name"], entry["description"], ", ".join(props))
    console.print(table)


def render_health(report: dict[str, dict[str, Any]], console: Console | None = None) -> None:
    """Print one line per dependency."""
    console = console or Console()
    for name, status in report.items():
        if status.get("ok"):
            console.print(f"[green]ok[/green]     {name}")
        else:
            console.print(
                Text.assemble(
                    ("failed", "red"),
                    f" {name}: {status.get('error', 'unknown error')}",
                )
            )
