"""Rich formatting helpers for the Toolwire CLI.

Output goes through Rich, which drops styling when stdout is not a terminal.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from toolwire.models.conversation import Role

if TYPE_CHECKING:
    from collections.abc import Sequence

    from toolwire.models.conversation import Message
    from toolwire.preflight import PreflightResult
    from toolwire.toolkit.models import ToolSpec

_ROLE_STYLES = {
    Role.USER: "bold blue",
    Role.ASSISTANT: "bold green",
    Role.TOOL: "bold magenta",
}


def get_console() -> Console:
    """Console on stdout; plain text when piped."""
    return Console(stderr=False)


def configure_logging(verbose: bool) -> None:
    """Route package logs through Rich; debug level when ``verbose``."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def format_tools(specs: Sequence[ToolSpec], console: Console) -> None:
    """Display discovered tools as a table."""
    if not specs:
        console.print("[dim]No tools discovered.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Tool", style="cyan")
    table.add_column("Description")
    for spec in specs:
        table.add_row(spec.name, escape(spec.description))
    console.print(table)


def format_preflight(results: Sequence[PreflightResult], console: Console) -> None:
    """Display pre-flight check outcomes."""
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Check")
    table.add_column("Status", width=6)
    table.add_column("Detail")
    for result in results:
        status = "[green]ok[/green]" if result.ok else "[red]FAIL[/red]"
        table.add_row(result.name, status, escape(result.detail))
    console.print(table)


def format_answer(task: str, answer: str, console: Console) -> None:
    """Display one task and the model's final answer."""
    console.print(f"[bold]Task:[/bold] {escape(task.strip())}")
    console.print(escape(answer))


def format_transcript(messages: Sequence[Message], console: Console) -> None:
    """Display a conversation, one line per message."""
    for message in messages:
        style = _ROLE_STYLES.get(message.role, "bold")
        body = message.content
        if message.tool_calls:
            calls = ", ".join(c.tool_name for c in message.tool_calls)
            body = f"{body} -> {calls}" if body else f"-> {calls}"
        label = message.role.value
        if message.role == Role.TOOL and message.name:
            label = f"tool:{message.name}"
            if message.is_error:
                label += " (error)"
        console.print(
            f"[dim]{message.sequence:>4}[/dim] [{style}]{escape(label)}[/{style}] {escape(body)}",
            highlight=False,
        )


def format_error(message: str, console: Console) -> None:
    """Print a red-labelled error line."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
