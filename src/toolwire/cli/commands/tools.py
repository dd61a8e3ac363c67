"""toolwire tools -- list the tools a provider advertises."""

from __future__ import annotations

import click
from rich.markup import escape

from toolwire.cli.formatting import format_tools


@click.command()
@click.pass_context
def tools(ctx: click.Context) -> None:
    """Start the tool provider, complete the handshake, and list its tools."""
    from toolwire.cli import _client_session

    with _client_session(ctx) as (client, console):
        info = client.server_info.get("serverInfo") or {}
        if info:
            banner = f"{info.get('name', 'server')} {info.get('version', '')}".strip()
            console.print(f"[dim]{escape(banner)}[/dim]")
        format_tools(client.list_tools(), console)
