"""Pre-flight checks run before an agent session starts.

Both checks report instead of raising: a failed check is information
for the caller, who decides whether to go ahead with the agent loop.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreflightResult:
    """Outcome of one pre-flight check.

    Attributes:
        name: Which check ran ("database", "executable").
        ok: Whether it passed.
        detail: Server time, version banner, or the failure reason.
    """

    name: str
    ok: bool
    detail: str = ""


def check_database(url: str | None = None, *, engine: Engine | None = None) -> PreflightResult:
    """Open a connection and ask the server for its current time.

    Args:
        url: SQLAlchemy database URL, e.g. ``"oracle+oracledb://user:pw@host/svc"``.
        engine: A pre-built engine; takes precedence over ``url``.

    Returns:
        A PreflightResult whose detail is the server timestamp on success.
    """
    if engine is None and url is None:
        return PreflightResult("database", False, "No database URL configured")

    owned = engine is None
    try:
        if engine is None:
            engine = create_engine(url, pool_pre_ping=True)  # type: ignore[arg-type]
        with engine.connect() as conn:
            server_time = conn.execute(select(func.current_timestamp())).scalar()
    except SQLAlchemyError as exc:
        logger.warning("Database check failed: %s", exc)
        return PreflightResult("database", False, str(exc).splitlines()[0])
    finally:
        if owned and engine is not None:
            engine.dispose()
    return PreflightResult("database", True, f"Current database time: {server_time}")


def check_executable(
    path: str,
    args: Sequence[str] = ("-V",),
    *,
    timeout: float = 30.0,
) -> PreflightResult:
    """Run the tool-provider binary in version mode and report its banner.

    A nonzero exit code fails the check; the exit code and stderr are
    surfaced as text only.
    """
    try:
        completed = subprocess.run(
            [path, *args],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.warning("Executable check for %s failed: %s", path, exc)
        return PreflightResult("executable", False, f"{type(exc).__name__}: {exc}")

    if completed.returncode != 0:
        detail = f"{path} returned exit code {completed.returncode}"
        if completed.stderr.strip():
            detail += f": {completed.stderr.strip()}"
        return PreflightResult("executable", False, detail)
    return PreflightResult("executable", True, completed.stdout.strip())
