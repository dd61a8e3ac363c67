"""Subprocess transport for stdio tool providers.

ProcessTransport owns exactly one child process. It writes raw bytes to
the child's stdin, reads newline-terminated frames from its stdout, and
drains stderr on a daemon thread so a chatty provider can never fill the
pipe and stall the protocol path.
"""

from __future__ import annotations

import collections
import logging
import subprocess
import threading
from typing import TYPE_CHECKING

from toolwire.exceptions import (
    ProcessTerminated,
    SpawnError,
    TransportEOFError,
    TransportReadError,
    TransportWriteError,
)
from toolwire.models.config import DEFAULT_SHUTDOWN_GRACE

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

logger = logging.getLogger(__name__)

# Number of stderr lines kept for ProcessTerminated diagnostics
_STDERR_TAIL_LINES = 20

# How long receive_line waits for the exit code after stdout hits EOF
_EOF_EXIT_WAIT = 1.0


def _log_stderr(line: str) -> None:
    logger.debug("provider stderr: %s", line)


class ProcessTransport:
    """Line-oriented transport over a child process's standard streams.

    Usage::

        with ProcessTransport.start("sql", ["-mcp"]) as transport:
            transport.send(b'{"jsonrpc": "2.0", "id": 1, "method": "ping"}\\n')
            line = transport.receive_line()

    ``close()`` is idempotent and always reaps the process and joins the
    stderr thread.
    """

    def __init__(
        self,
        process: subprocess.Popen,
        *,
        command: str = "",
        shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE,
        stderr_sink: Callable[[str], None] | None = None,
    ) -> None:
        self._process: subprocess.Popen | None = process
        self._command = command or str(process.args)
        self._shutdown_grace = shutdown_grace
        self._stderr_sink = stderr_sink or _log_stderr
        self._stderr_tail: collections.deque[str] = collections.deque(
            maxlen=_STDERR_TAIL_LINES
        )
        self._write_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._closed = False
        self._stderr_thread = threading.Thread(
            target=self._drain_stderr,
            name=f"toolwire-stderr-{process.pid}",
            daemon=True,
        )
        self._stderr_thread.start()

    @classmethod
    def start(
        cls,
        command: str,
        args: Sequence[str] = (),
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE,
        stderr_sink: Callable[[str], None] | None = None,
    ) -> ProcessTransport:
        """Launch ``command`` with ``args`` and wire up its streams.

        Raises:
            SpawnError: If the executable cannot be started.
        """
        argv = [command, *args]
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=dict(env) if env is not None else None,
                cwd=cwd,
            )
        except (OSError, ValueError) as exc:
            raise SpawnError(command, str(exc)) from exc
        logger.debug("Started tool provider pid=%s: %s", process.pid, argv)
        return cls(
            process,
            command=command,
            shutdown_grace=shutdown_grace,
            stderr_sink=stderr_sink,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def returncode(self) -> int | None:
        """Exit code of the child, or None while it is still running."""
        if self._process is None:
            return None
        return self._process.poll()

    @property
    def stderr_tail(self) -> str:
        """Last lines the child wrote to stderr."""
        return "\n".join(self._stderr_tail)

    def send(self, data: bytes) -> None:
        """Write ``data`` to the child's stdin and flush it.

        Raises:
            ProcessTerminated: If the child has already exited.
            TransportWriteError: On any other write failure, or after close().
        """
        process = self._require_open()
        self._raise_if_exited()
        with self._write_lock:
            try:
                process.stdin.write(data)
                process.stdin.flush()
            except (BrokenPipeError, ValueError) as exc:
                self._raise_if_exited(wait=_EOF_EXIT_WAIT)
                raise TransportWriteError(f"Write to provider failed: {exc}") from exc
            except OSError as exc:
                raise TransportWriteError(f"Write to provider failed: {exc}") from exc

    def receive_line(self) -> bytes:
        """Block until the child writes a full line and return it.

        The trailing newline is stripped.

        Raises:
            ProcessTerminated: If stdout is exhausted because the child exited.
            TransportEOFError: If stdout closed but the child is still alive.
            TransportReadError: On any other read failure, or after close().
        """
        process = self._require_open(TransportReadError)
        try:
            line = process.stdout.readline()
        except (OSError, ValueError) as exc:
            if self._closed:
                raise TransportReadError("Transport is closed") from exc
            raise TransportReadError(f"Read from provider failed: {exc}") from exc
        if not line:
            if self._closed:
                raise TransportReadError("Transport is closed")
            self._raise_if_exited(wait=_EOF_EXIT_WAIT)
            raise TransportEOFError("Provider closed stdout")
        return line.rstrip(b"\r\n")

    def close(self) -> None:
        """Stop the child and release all of its resources.

        Closes stdin first and gives the child ``shutdown_grace`` seconds to
        exit, then terminates, then kills. Safe to call more than once.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            process = self._process
            if process is None:
                return
            try:
                if process.stdin is not None:
                    try:
                        process.stdin.close()
                    except OSError:
                        logger.debug("Error closing provider stdin", exc_info=True)
                try:
                    process.wait(timeout=self._shutdown_grace)
                except subprocess.TimeoutExpired:
                    logger.debug("Provider pid=%s ignored stdin close, terminating", process.pid)
                    process.terminate()
                    try:
                        process.wait(timeout=self._shutdown_grace)
                    except subprocess.TimeoutExpired:
                        logger.warning("Provider pid=%s did not terminate, killing", process.pid)
                        process.kill()
                        process.wait()
            finally:
                if process.stdout is not None:
                    process.stdout.close()
                self._stderr_thread.join()
                if process.stderr is not None:
                    process.stderr.close()
                if process.returncode:
                    logger.warning(
                        "Tool provider '%s' exited with code %s",
                        self._command,
                        process.returncode,
                    )
                self._process = None

    def __enter__(self) -> ProcessTransport:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------

    def _require_open(
        self, error: type[Exception] = TransportWriteError
    ) -> subprocess.Popen:
        process = self._process
        if self._closed or process is None:
            raise error("Transport is closed")
        return process

    def _raise_if_exited(self, wait: float = 0.0) -> None:
        process = self._process
        if process is None:
            return
        if wait:
            try:
                process.wait(timeout=wait)
            except subprocess.TimeoutExpired:
                return
        code = process.poll()
        if code is not None:
            raise ProcessTerminated(code, self.stderr_tail)

    def _drain_stderr(self) -> None:
        process = self._process
        if process is None or process.stderr is None:
            return
        try:
            for raw in iter(process.stderr.readline, b""):
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                self._stderr_tail.append(line)
                try:
                    self._stderr_sink(line)
                except Exception:
                    logger.debug("stderr sink error", exc_info=True)
        except (OSError, ValueError):
            logger.debug("stderr drain stopped", exc_info=True)
