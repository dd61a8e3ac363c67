"""Toolwire CLI -- run tool-calling tasks against a stdio tool provider.

This module is NEVER imported from toolwire/__init__.py.
It is only loaded via the ``toolwire`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

try:
    import click
    from dotenv import load_dotenv
except ImportError:
    raise ImportError(
        "CLI dependencies not installed. Install with: pip install toolwire[cli]"
    ) from None

from toolwire.cli.formatting import configure_logging, format_error, get_console
from toolwire.models.config import DEFAULT_REQUEST_TIMEOUT, ServerConfig

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.console import Console

    from toolwire.protocol.client import ProtocolClient


@click.group()
@click.option(
    "--server",
    "server_command",
    default=None,
    envvar="TOOLWIRE_SERVER",
    help="Tool-provider executable to launch.",
)
@click.option(
    "--server-arg",
    "server_args",
    multiple=True,
    envvar="TOOLWIRE_SERVER_ARGS",
    help="Argument passed to the tool provider (repeatable), e.g. -mcp.",
)
@click.option(
    "--timeout",
    default=DEFAULT_REQUEST_TIMEOUT,
    type=float,
    show_default=True,
    help="Per-request timeout in seconds.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug logs.")
@click.pass_context
def cli(
    ctx: click.Context,
    server_command: str | None,
    server_args: tuple[str, ...],
    timeout: float,
    verbose: bool,
) -> None:
    """Toolwire: let a language model drive a stdio tool provider."""
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["server_command"] = server_command
    ctx.obj["server_args"] = list(server_args)
    ctx.obj["timeout"] = timeout


def main() -> None:
    """Console-script entry point: load ``.env`` then run the CLI."""
    load_dotenv()
    cli()


def _server_config(ctx: click.Context) -> ServerConfig:
    """Build a ServerConfig from the group options.

    Exits with an error if no server command was given.
    """
    command = ctx.obj.get("server_command")
    if not command:
        format_error("No tool provider configured. Pass --server or set TOOLWIRE_SERVER.", get_console())
        raise SystemExit(1)
    return ServerConfig(
        command=command,
        args=ctx.obj.get("server_args", []),
        request_timeout=ctx.obj.get("timeout", DEFAULT_REQUEST_TIMEOUT),
    )


@contextmanager
def _client_session(ctx: click.Context) -> Iterator[tuple[ProtocolClient, Console]]:
    """Spawn the provider, pass the health check, yield (client, console), clean up.

    Ensures the provider is shut down on exit and formats exceptions as CLI
    errors. Commands with special exception handling can catch specific
    errors inside the ``with`` block before this handler runs.
    """
    from toolwire.protocol.client import ProtocolClient

    console = get_console()
    config = _server_config(ctx)
    try:
        client = ProtocolClient.spawn(config)
        try:
            client.health_check()
            yield client, console
        finally:
            client.close()
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None


# Register subcommands after cli group is defined
from toolwire.cli.commands.check import check  # noqa: E402
from toolwire.cli.commands.run import run  # noqa: E402
from toolwire.cli.commands.tools import tools  # noqa: E402

cli.add_command(tools)
cli.add_command(check)
cli.add_command(run)
