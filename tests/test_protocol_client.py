"""Integration tests for ProtocolClient against the fake stdio tool server.

Covers the handshake state machine, tool discovery and invocation,
request correlation under concurrency, timeouts, and failure propagation
when the provider dies or the client is closed.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor

import pytest

from conftest import server_config
from toolwire.exceptions import (
    NotReadyError,
    ProcessTerminated,
    ProtocolError,
    RequestTimeoutError,
    SessionClosedError,
    SpawnError,
    TransportError,
    UnreachableError,
)
from toolwire.models.config import ServerConfig
from toolwire.protocol import ProtocolClient, SessionState
from toolwire.protocol.client import _flatten_content
from toolwire.protocol.messages import Response
from toolwire.toolkit.models import ToolCallRequest

FAKE_TOOLS = ["listTables", "echo", "sleep", "fail", "rpc_error", "crash", "hangup"]


def wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


# ---------------------------------------------------------------------------
# Handshake and health
# ---------------------------------------------------------------------------


class TestHealthCheck:
    def test_first_health_check_performs_handshake(self, spawn_client):
        client = spawn_client(healthy=False)
        assert client.state == SessionState.UNINITIALIZED
        assert client.health_check() is True
        assert client.state == SessionState.READY
        assert client.server_info["serverInfo"]["name"] == "fake-tools"

    def test_health_check_when_ready_pings(self, client):
        assert client.health_check() is True
        assert client.state == SessionState.READY

    def test_silent_provider_is_unreachable(self, spawn_client):
        client = spawn_client("--silent", healthy=False, startup_timeout=0.5)
        with pytest.raises(UnreachableError) as exc_info:
            client.health_check()
        assert isinstance(exc_info.value.__cause__, RequestTimeoutError)
        assert client.state == SessionState.FAILED
        with pytest.raises(UnreachableError):
            client.health_check()

    def test_provider_that_exits_at_start_is_unreachable(self, spawn_client):
        client = spawn_client("--fail-start", healthy=False)
        with pytest.raises(UnreachableError) as exc_info:
            client.health_check()
        assert isinstance(exc_info.value.__cause__, TransportError)
        assert client.state == SessionState.FAILED

    def test_spawn_missing_executable(self, tmp_path):
        with pytest.raises(SpawnError):
            ProtocolClient.spawn(ServerConfig(command=str(tmp_path / "missing")))

    def test_calls_before_health_check_raise_not_ready(self, spawn_client):
        client = spawn_client(healthy=False)
        with pytest.raises(NotReadyError):
            client.list_tools()
        with pytest.raises(NotReadyError):
            client.invoke_tool(ToolCallRequest("echo", {}))

    def test_client_id_comes_from_config(self, client):
        assert client.client_id == "fake"


# ---------------------------------------------------------------------------
# Discovery and invocation
# ---------------------------------------------------------------------------


class TestListTools:
    def test_tools_in_declared_order(self, client):
        specs = client.list_tools()
        assert [s.name for s in specs] == FAKE_TOOLS

    def test_schema_defaults_when_missing(self, client):
        fail = next(s for s in client.list_tools() if s.name == "fail")
        assert fail.input_schema == {"type": "object", "properties": {}}

    def test_pagination_follows_next_cursor(self, spawn_client):
        client = spawn_client("--page-size", "2")
        assert [s.name for s in client.list_tools()] == FAKE_TOOLS


class TestInvokeTool:
    def test_result_content_and_correlation(self, client):
        request = ToolCallRequest("listTables", {}, correlation_id="call_abc")
        result = client.invoke_tool(request)
        assert result.correlation_id == "call_abc"
        assert result.content == "TABLE_A, TABLE_B"
        assert result.is_error is False

    def test_arguments_are_sent(self, client):
        result = client.invoke_tool(ToolCallRequest("echo", {"text": "hi", "n": 2}))
        assert result.content == '{"n": 2, "text": "hi"}'

    def test_tool_error_is_a_result(self, client):
        result = client.invoke_tool(ToolCallRequest("fail", {}))
        assert result.is_error is True
        assert result.content == "boom"

    def test_rpc_error_raises_protocol_error_and_session_survives(self, client):
        with pytest.raises(ProtocolError) as exc_info:
            client.invoke_tool(ToolCallRequest("rpc_error", {}))
        assert exc_info.value.code == -32000
        assert client.state == SessionState.READY
        assert client.invoke_tool(ToolCallRequest("echo", {})).content == "{}"

    def test_unknown_tool_on_server(self, client):
        with pytest.raises(ProtocolError) as exc_info:
            client.invoke_tool(ToolCallRequest("dropSchema", {}))
        assert exc_info.value.code == -32602

    def test_noise_is_dropped(self, spawn_client, caplog):
        with caplog.at_level(logging.WARNING, logger="toolwire.protocol.client"):
            client = spawn_client("--noise")
            assert len(client.list_tools()) == len(FAKE_TOOLS)
            result = client.invoke_tool(ToolCallRequest("listTables", {}))
        assert result.content == "TABLE_A, TABLE_B"
        assert "Dropping frame" in caplog.text


class TestCorrelation:
    def test_concurrent_requests_get_their_own_responses(self, client):
        delays = [0.4, 0.0, 0.3, 0.1, 0.2, 0.0]

        def call(i: int):
            if i % 2:
                request = ToolCallRequest("echo", {"i": i}, correlation_id=f"c{i}")
            else:
                request = ToolCallRequest("sleep", {"seconds": delays[i]}, correlation_id=f"c{i}")
            return i, client.invoke_tool(request)

        with ThreadPoolExecutor(max_workers=len(delays)) as pool:
            results = list(pool.map(call, range(len(delays))))

        for i, result in results:
            assert result.correlation_id == f"c{i}"
            if i % 2:
                assert result.content == f'{{"i": {i}}}'
            else:
                assert result.content == f"slept {delays[i]}"

    def test_timeout_abandons_request_and_late_response_is_discarded(
        self, spawn_client, caplog
    ):
        client = spawn_client(request_timeout=0.5)
        with caplog.at_level(logging.WARNING, logger="toolwire.protocol.client"):
            with pytest.raises(RequestTimeoutError) as exc_info:
                client.invoke_tool(ToolCallRequest("sleep", {"seconds": 1.5}))
            assert exc_info.value.method == "tools/call"
            assert wait_for(lambda: "Discarding late response" in caplog.text)
        assert client.state == SessionState.READY
        assert client.invoke_tool(ToolCallRequest("echo", {"ok": True})).content == '{"ok": true}'

    def test_abandoned_ids_are_bounded(self, spawn_client, caplog, monkeypatch):
        monkeypatch.setattr("toolwire.protocol.client._ABANDONED_LIMIT", 2)
        client = spawn_client(request_timeout=0.2)
        with caplog.at_level(logging.WARNING, logger="toolwire.protocol.client"):
            for _ in range(3):
                with pytest.raises(RequestTimeoutError):
                    client.invoke_tool(ToolCallRequest("sleep", {"seconds": 1.5}))
            assert len(client._abandoned) == 2
            # The evicted id's reply now counts as unknown
            assert wait_for(lambda: "Discarding response with unknown id" in caplog.text)
            assert wait_for(lambda: not client._abandoned)

    def test_response_is_completed_before_the_slot_is_released(self, client):
        held: list[bool] = []

        class LockCheckingFuture(Future):
            def set_result(self, result):
                held.append(client._lock.locked())
                super().set_result(result)

        future = LockCheckingFuture()
        with client._lock:
            client._pending[10_000] = future
        client._deliver(Response(id=10_000, result={"ok": True}))
        assert held == [True]
        assert future.result(timeout=0) == {"ok": True}
        assert 10_000 not in client._abandoned


# ---------------------------------------------------------------------------
# Failure propagation
# ---------------------------------------------------------------------------


class TestProviderExit:
    def test_crash_mid_call_raises_process_terminated(self, client):
        with pytest.raises(ProcessTerminated) as exc_info:
            client.invoke_tool(ToolCallRequest("crash", {}))
        assert exc_info.value.exit_code == 3
        assert client.state == SessionState.FAILED

    def test_everything_fails_fast_after_exit(self, client):
        with pytest.raises(ProcessTerminated):
            client.invoke_tool(ToolCallRequest("crash", {}))

        started = time.monotonic()
        with pytest.raises(ProcessTerminated):
            client.invoke_tool(ToolCallRequest("echo", {}))
        with pytest.raises(ProcessTerminated):
            client.list_tools()
        with pytest.raises(ProcessTerminated):
            client.transport.send(b"{}\n")
        with pytest.raises(UnreachableError):
            client.health_check()
        assert time.monotonic() - started < 5

    def test_stdout_closed_then_late_exit_reports_process_terminated(self, client):
        with pytest.raises(TransportError) as exc_info:
            client.invoke_tool(ToolCallRequest("hangup", {"seconds": 2}))
        assert not isinstance(exc_info.value, ProcessTerminated)
        assert client.state == SessionState.FAILED

        assert wait_for(lambda: client.transport.returncode is not None)
        with pytest.raises(ProcessTerminated) as exc_info:
            client.invoke_tool(ToolCallRequest("echo", {}))
        assert exc_info.value.exit_code == 4
        with pytest.raises(ProcessTerminated):
            client.list_tools()

    def test_pending_requests_fail_when_provider_dies(self, client):
        errors: list[BaseException] = []

        def slow_call():
            try:
                client.invoke_tool(ToolCallRequest("sleep", {"seconds": 5}))
            except Exception as exc:
                errors.append(exc)

        thread = threading.Thread(target=slow_call)
        thread.start()
        time.sleep(0.3)
        with pytest.raises(ProcessTerminated):
            client.invoke_tool(ToolCallRequest("crash", {}))
        thread.join(timeout=5)
        assert not thread.is_alive()
        assert len(errors) == 1
        assert isinstance(errors[0], ProcessTerminated)


class TestClose:
    def test_close_fails_pending_requests(self, client):
        errors: list[BaseException] = []

        def slow_call():
            try:
                client.invoke_tool(ToolCallRequest("sleep", {"seconds": 5}))
            except Exception as exc:
                errors.append(exc)

        thread = threading.Thread(target=slow_call)
        thread.start()
        time.sleep(0.3)
        client.close()
        thread.join(timeout=5)
        assert not thread.is_alive()
        assert len(errors) == 1
        assert isinstance(errors[0], SessionClosedError)

    def test_calls_after_close(self, client):
        client.close()
        assert client.state == SessionState.CLOSED
        assert client.transport.closed
        with pytest.raises(SessionClosedError):
            client.list_tools()
        with pytest.raises(SessionClosedError):
            client.invoke_tool(ToolCallRequest("echo", {}))
        with pytest.raises(UnreachableError):
            client.health_check()

    def test_close_is_idempotent(self, client):
        client.close()
        client.close()
        assert client.state == SessionState.CLOSED

    def test_context_manager(self):
        with ProtocolClient.spawn(server_config()) as client:
            client.health_check()
        assert client.state == SessionState.CLOSED


# ---------------------------------------------------------------------------
# Content flattening
# ---------------------------------------------------------------------------


class TestFlattenContent:
    def test_text_items_joined_with_newlines(self):
        items = [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]
        assert _flatten_content(items) == "a\nb"

    def test_non_text_items_are_json(self):
        items = [{"type": "image", "data": "xyz"}]
        assert _flatten_content(items) == '{"type": "image", "data": "xyz"}'

    def test_empty_list(self):
        assert _flatten_content([]) == ""

    def test_non_list_raises(self):
        with pytest.raises(ProtocolError):
            _flatten_content({"type": "text"})
