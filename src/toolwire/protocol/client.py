"""Protocol client for stdio tool providers.

ProtocolClient speaks newline-delimited JSON-RPC 2.0 over a
ProcessTransport. A background reader thread demultiplexes stdout:
responses fill the pending slot registered for their id, notifications
are logged and dropped, and server-initiated requests are answered.
Callers block on their own slot, so any number of threads can share one
client and responses may arrive in any order.
"""

from __future__ import annotations

import enum
import itertools
import json
import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TYPE_CHECKING, Any

from toolwire._version import __version__
from toolwire.exceptions import (
    NotReadyError,
    ProcessTerminated,
    ProtocolError,
    RequestTimeoutError,
    SessionClosedError,
    ToolwireError,
    TransportError,
    UnreachableError,
)
from toolwire.models.config import DEFAULT_REQUEST_TIMEOUT, DEFAULT_STARTUP_TIMEOUT
from toolwire.protocol.messages import (
    MCP_PROTOCOL_VERSION,
    METHOD_CALL_TOOL,
    METHOD_INITIALIZE,
    METHOD_INITIALIZED,
    METHOD_LIST_TOOLS,
    METHOD_NOT_FOUND,
    METHOD_PING,
    Notification,
    Request,
    Response,
    RpcError,
    decode,
    encode,
)
from toolwire.toolkit.models import ToolCallResult, ToolSpec
from toolwire.transport.process import ProcessTransport

if TYPE_CHECKING:
    from toolwire.models.config import ServerConfig
    from toolwire.toolkit.models import ToolCallRequest

logger = logging.getLogger(__name__)

# Timed-out ids remembered so their late replies are recognised
_ABANDONED_LIMIT = 1024


class SessionState(str, enum.Enum):
    """Lifecycle of a protocol session."""

    UNINITIALIZED = "uninitialized"
    HANDSHAKING = "handshaking"
    READY = "ready"
    CLOSED = "closed"
    FAILED = "failed"


def _flatten_content(items: Any) -> str:
    """Collapse a ``tools/call`` content list into one string."""
    if isinstance(items, str):
        return items
    if not isinstance(items, list):
        raise ProtocolError(f"Tool result content must be a list, got {type(items).__name__}")
    parts: list[str] = []
    for item in items:
        if isinstance(item, dict) and item.get("type") == "text":
            parts.append(str(item.get("text", "")))
        else:
            parts.append(json.dumps(item))
    return "\n".join(parts)


class ProtocolClient:
    """Tool discovery and invocation over one tool-provider process.

    The session must pass ``health_check()`` before tools can be listed or
    invoked; the first health check performs the protocol handshake.

    Usage::

        with ProtocolClient.spawn(ServerConfig(command="sql", args=["-mcp"])) as client:
            client.health_check()
            for spec in client.list_tools():
                print(spec.name)
            result = client.invoke_tool(ToolCallRequest("list-connections", {}))
    """

    def __init__(
        self,
        transport: ProcessTransport,
        *,
        client_id: str = "default",
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        startup_timeout: float = DEFAULT_STARTUP_TIMEOUT,
        client_name: str = "toolwire",
    ) -> None:
        self._transport = transport
        self._client_id = client_id
        self._request_timeout = request_timeout
        self._startup_timeout = startup_timeout
        self._client_name = client_name
        self._state = SessionState.UNINITIALIZED
        self._failure: ToolwireError | None = None
        self._server_info: dict[str, Any] = {}

        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._pending: dict[int, Future] = {}
        # Insertion-ordered so the oldest id is evicted first
        self._abandoned: dict[int, None] = {}

        self._reader = threading.Thread(
            target=self._read_loop,
            name=f"toolwire-reader-{client_id}",
            daemon=True,
        )
        self._reader.start()

    @classmethod
    def spawn(cls, config: ServerConfig) -> ProtocolClient:
        """Start the provider described by ``config`` and wrap it in a client.

        Raises:
            SpawnError: If the provider cannot be started.
        """
        transport = ProcessTransport.start(
            config.command,
            config.args,
            env=config.env,
            cwd=config.cwd,
            shutdown_grace=config.shutdown_grace,
        )
        return cls(
            transport,
            client_id=config.resolved_client_id(),
            request_timeout=config.request_timeout,
            startup_timeout=config.startup_timeout,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def server_info(self) -> dict[str, Any]:
        """The ``initialize`` result returned by the provider."""
        return dict(self._server_info)

    @property
    def transport(self) -> ProcessTransport:
        return self._transport

    def health_check(self) -> bool:
        """Verify the provider answers, performing the handshake on first use.

        Returns:
            True when the provider responded.

        Raises:
            UnreachableError: If the handshake or ping fails.
        """
        with self._lock:
            state = self._state
            if state == SessionState.UNINITIALIZED:
                self._state = SessionState.HANDSHAKING
        if state == SessionState.UNINITIALIZED:
            self._handshake()
            return True
        if state in (SessionState.CLOSED, SessionState.FAILED, SessionState.HANDSHAKING):
            raise UnreachableError(
                f"Tool provider '{self._client_id}' is not reachable (session {state.value})"
            )
        try:
            self._request(METHOD_PING, None, self._request_timeout)
        except ToolwireError as exc:
            raise UnreachableError(
                f"Tool provider '{self._client_id}' did not answer ping: {exc}"
            ) from exc
        return True

    def list_tools(self) -> list[ToolSpec]:
        """Return every tool the provider advertises, in declared order.

        Raises:
            NotReadyError: If called before a successful health check.
            ProtocolError: If the provider's answer is malformed.
        """
        self._require_ready()
        specs: list[ToolSpec] = []
        cursor: str | None = None
        while True:
            params = {"cursor": cursor} if cursor else None
            result = self._request(METHOD_LIST_TOOLS, params, self._request_timeout)
            if not isinstance(result, dict) or not isinstance(result.get("tools"), list):
                raise ProtocolError(f"Malformed tools/list result: {result!r}")
            for raw in result["tools"]:
                try:
                    specs.append(ToolSpec.from_wire(raw))
                except (KeyError, TypeError, AttributeError) as exc:
                    raise ProtocolError(f"Malformed tool entry: {raw!r}") from exc
            cursor = result.get("nextCursor")
            if not cursor:
                return specs

    def invoke_tool(self, request: ToolCallRequest) -> ToolCallResult:
        """Invoke a tool and wait for its result.

        A tool that reports failure yields a result with ``is_error=True``;
        only transport and protocol failures raise.

        Raises:
            NotReadyError: If called before a successful health check.
            RequestTimeoutError: If no response arrives within the timeout.
            ProtocolError: On a JSON-RPC error or malformed result.
            ProcessTerminated: If the provider exits before answering.
        """
        self._require_ready()
        params = {"name": request.tool_name, "arguments": dict(request.arguments)}
        result = self._request(METHOD_CALL_TOOL, params, self._request_timeout)
        if not isinstance(result, dict):
            raise ProtocolError(f"Malformed tools/call result: {result!r}")
        return ToolCallResult(
            correlation_id=request.correlation_id,
            content=_flatten_content(result.get("content", [])),
            is_error=bool(result.get("isError", False)),
        )

    def close(self) -> None:
        """Close the session and its transport. Safe to call more than once.

        Requests still waiting fail with SessionClosedError.
        """
        with self._lock:
            if self._state == SessionState.CLOSED:
                return
            self._state = SessionState.CLOSED
            pending = list(self._pending.values())
            self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(SessionClosedError("Protocol client closed"))
        self._transport.close()
        self._reader.join(timeout=self._request_timeout)

    def __enter__(self) -> ProtocolClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------

    def _handshake(self) -> None:
        params = {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": self._client_name, "version": __version__},
        }
        try:
            result = self._request(METHOD_INITIALIZE, params, self._startup_timeout)
            if not isinstance(result, dict):
                raise ProtocolError(f"Malformed initialize result: {result!r}")
            self._transport.send(encode(Notification(method=METHOD_INITIALIZED)))
        except ToolwireError as exc:
            with self._lock:
                if self._state == SessionState.HANDSHAKING:
                    self._state = SessionState.FAILED
                    self._failure = self._failure or exc
            raise UnreachableError(
                f"Handshake with tool provider '{self._client_id}' failed: {exc}"
            ) from exc
        self._server_info = result
        with self._lock:
            if self._state == SessionState.HANDSHAKING:
                self._state = SessionState.READY
        logger.debug(
            "Session %s ready: %s", self._client_id, result.get("serverInfo", {})
        )

    def _require_ready(self) -> None:
        state = self._state
        if state == SessionState.READY:
            return
        if state == SessionState.CLOSED:
            raise SessionClosedError("Protocol client closed")
        if state == SessionState.FAILED and self._failure is not None:
            raise self._session_failure()
        raise NotReadyError(
            f"Session '{self._client_id}' is {state.value}; call health_check() first"
        )

    def _request(self, method: str, params: dict | None, timeout: float) -> Any:
        """Send one request and block until its response or the timeout."""
        with self._lock:
            if self._state == SessionState.CLOSED:
                raise SessionClosedError("Protocol client closed")
            if self._state == SessionState.FAILED and self._failure is not None:
                raise self._session_failure()
            request_id = next(self._ids)
            future: Future = Future()
            self._pending[request_id] = future

        logger.debug("-> %s id=%s", method, request_id)
        try:
            self._transport.send(encode(Request(id=request_id, method=method, params=params)))
        except TransportError:
            with self._lock:
                self._pending.pop(request_id, None)
            raise

        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            with self._lock:
                if self._pending.pop(request_id, None) is None and future.done():
                    # Answered between the timeout and the pop
                    return future.result()
                self._abandoned[request_id] = None
                if len(self._abandoned) > _ABANDONED_LIMIT:
                    del self._abandoned[next(iter(self._abandoned))]
            raise RequestTimeoutError(method, timeout) from None

    def _session_failure(self) -> ToolwireError:
        """The error that failed the session, as ProcessTerminated once the child has exited."""
        failure = self._failure
        if not isinstance(failure, ProcessTerminated):
            exit_code = self._transport.returncode
            if exit_code is not None:
                failure = ProcessTerminated(exit_code, self._transport.stderr_tail)
                self._failure = failure
        return failure  # type: ignore[return-value]

    def _read_loop(self) -> None:
        while True:
            try:
                line = self._transport.receive_line()
            except TransportError as exc:
                self._fail_pending(exc)
                return
            if not line.strip():
                continue
            try:
                frame = decode(line)
            except ProtocolError as exc:
                logger.warning("Dropping frame from %s: %s", self._client_id, exc)
                continue
            if isinstance(frame, Response):
                self._deliver(frame)
            elif isinstance(frame, Request):
                self._answer_server_request(frame)
            else:
                logger.debug("<- notification %s from %s", frame.method, self._client_id)

    def _deliver(self, response: Response) -> None:
        with self._lock:
            future = self._pending.pop(response.id, None)  # type: ignore[arg-type]
            if future is None:
                if response.id in self._abandoned:
                    del self._abandoned[response.id]  # type: ignore[arg-type]
                    logger.warning(
                        "Discarding late response for abandoned request id=%s", response.id
                    )
                else:
                    logger.warning("Discarding response with unknown id=%s", response.id)
                return
            # Completed under the lock so a timed-out waiter sees it as done
            if response.error is not None:
                future.set_exception(ProtocolError(response.error.message, code=response.error.code))
            else:
                future.set_result(response.result)
        logger.debug("<- response id=%s", response.id)

    def _answer_server_request(self, request: Request) -> None:
        if request.method == METHOD_PING:
            reply = Response(id=request.id, result={})
        else:
            logger.debug("Rejecting server request %s", request.method)
            reply = Response(
                id=request.id,
                error=RpcError(code=METHOD_NOT_FOUND, message=f"Method not found: {request.method}"),
            )
        try:
            self._transport.send(encode(reply))
        except TransportError:
            logger.debug("Could not answer server request %s", request.method, exc_info=True)

    def _fail_pending(self, exc: TransportError) -> None:
        """Fail every waiting request once the transport is gone."""
        with self._lock:
            if self._state == SessionState.CLOSED:
                error: ToolwireError = SessionClosedError("Protocol client closed")
            else:
                self._state = SessionState.FAILED
                self._failure = exc
                error = exc
                logger.warning("Session %s failed: %s", self._client_id, exc)
            pending = list(self._pending.values())
            self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(error)
