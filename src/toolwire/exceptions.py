"""Toolwire exception hierarchy.

All Toolwire-specific exceptions inherit from ToolwireError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from toolwire.models.conversation import Message


class ToolwireError(Exception):
    """Base exception for all Toolwire errors."""


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class TransportError(ToolwireError):
    """Base for errors raised by the process transport."""


class SpawnError(TransportError):
    """Raised when the tool-provider subprocess cannot be started."""

    def __init__(self, command: str, reason: str) -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to start '{command}': {reason}")


class TransportWriteError(TransportError):
    """Raised when writing to the subprocess stdin fails."""


class TransportReadError(TransportError):
    """Raised when reading from the subprocess stdout fails."""


class TransportEOFError(TransportError):
    """Raised when stdout reaches EOF while the process is still running."""


class ProcessTerminated(TransportError):
    """Raised when the subprocess has exited before the transport was closed.

    Every in-flight and future call on the transport fails with this error
    until a new transport is started.

    Attributes:
        exit_code: The observed exit code, or None if it could not be read.
        stderr_tail: Last lines the process wrote to stderr, for diagnostics.
    """

    def __init__(self, exit_code: int | None, stderr_tail: str = "") -> None:
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail
        msg = f"Tool provider process terminated (exit code {exit_code})"
        if stderr_tail:
            msg += f"\nstderr: {stderr_tail}"
        super().__init__(msg)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(ToolwireError):
    """Raised on a malformed or unexpected protocol payload.

    The failing call is aborted; the session remains usable.

    Attributes:
        code: JSON-RPC error code when the server returned an error object.
    """

    def __init__(self, message: str, code: int | None = None) -> None:
        self.code = code
        if code is not None:
            message = f"{message} (code {code})"
        super().__init__(message)


class RequestTimeoutError(ToolwireError):
    """Raised when a request receives no response within its budget."""

    def __init__(self, method: str, timeout: float) -> None:
        self.method = method
        self.timeout = timeout
        super().__init__(f"Request '{method}' timed out after {timeout}s")


class NotReadyError(ToolwireError):
    """Raised when a tool operation is attempted before the handshake completed."""


class UnreachableError(ToolwireError):
    """Raised when the health check against the tool provider fails."""


class SessionClosedError(ToolwireError):
    """Raised for requests on a closed protocol client."""


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class UnknownToolError(ToolwireError):
    """Raised when a tool name is not registered."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"UnknownTool: {tool_name}")


# ---------------------------------------------------------------------------
# Agent tasks
# ---------------------------------------------------------------------------


class AgentTaskError(ToolwireError):
    """Base for errors that abort an agent task.

    Attributes:
        messages: Conversation snapshot at the time of failure, so callers
            can inspect how far the task progressed.
    """

    def __init__(self, message: str, messages: list[Message] | None = None) -> None:
        self.messages: list[Message] = list(messages or [])
        super().__init__(message)


class ProviderError(AgentTaskError):
    """Raised when the completion backend fails. Memory is left as-is."""


class ToolExecutionFailed(AgentTaskError):
    """Raised when a tool call fails in a way the model cannot recover from."""

    def __init__(
        self,
        tool_name: str,
        reason: str,
        messages: list[Message] | None = None,
    ) -> None:
        self.tool_name = tool_name
        self.reason = reason
        super().__init__(f"Tool '{tool_name}' failed: {reason}", messages)


class RoundLimitExceeded(AgentTaskError):
    """Raised when the agent loop hits its round limit without a final answer."""

    def __init__(self, max_rounds: int, messages: list[Message] | None = None) -> None:
        self.max_rounds = max_rounds
        super().__init__(
            f"No final answer after {max_rounds} round(s)", messages
        )


# ---------------------------------------------------------------------------
# Completion backend (HTTP client)
# ---------------------------------------------------------------------------


class LLMClientError(ToolwireError):
    """Base for errors raised by the built-in chat-completions client."""


class LLMConfigError(LLMClientError):
    """The client cannot be built, e.g. no API key in the arguments or environment."""


class LLMAuthError(LLMClientError):
    """The backend rejected the credentials (HTTP 401/403). Never retried."""


class LLMRateLimitError(LLMClientError):
    """The backend answered HTTP 429.

    Attributes:
        retry_after: Value of the Retry-After header in seconds, if sent.
    """

    def __init__(self, message: str = "Rate limited", retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"{message} (retry after {retry_after}s)"
        super().__init__(message)


class LLMResponseError(LLMClientError):
    """The backend answered with a payload the client cannot interpret."""
