"""toolwire check -- pre-flight checks before running tasks."""

from __future__ import annotations

import click

from toolwire.cli.formatting import format_error, format_preflight, get_console
from toolwire.preflight import check_database, check_executable


@click.command()
@click.option(
    "--db-url",
    default=None,
    envvar="TOOLWIRE_DB_URL",
    help="SQLAlchemy URL of the database to test.",
)
@click.option(
    "--version-arg",
    "version_args",
    multiple=True,
    default=("-V",),
    show_default=True,
    help="Argument that makes the provider print its version (repeatable).",
)
@click.option("--strict", is_flag=True, help="Exit with status 1 if any check fails.")
@click.pass_context
def check(
    ctx: click.Context,
    db_url: str | None,
    version_args: tuple[str, ...],
    strict: bool,
) -> None:
    """Test database connectivity and tool-provider availability."""
    console = get_console()
    command = ctx.obj.get("server_command")
    if not command and not db_url:
        format_error("Nothing to check. Pass --server and/or --db-url.", console)
        raise SystemExit(1)

    results = []
    if db_url:
        results.append(check_database(db_url))
    if command:
        results.append(check_executable(command, version_args))
    format_preflight(results, console)

    if strict and not all(r.ok for r in results):
        raise SystemExit(1)
