"""Shared test fixtures for Toolwire.

Provides a scripted completion provider, ServerConfig builders for the
fake stdio tool server, and spawned protocol clients that are always
closed after the test.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from toolwire.llm.protocols import Completion
from toolwire.models.config import ServerConfig
from toolwire.protocol.client import ProtocolClient
from toolwire.toolkit.models import ToolCallRequest

FAKE_SERVER = Path(__file__).with_name("fake_tool_server.py")


# ------------------------------------------------------------------
# Shared test helpers
# ------------------------------------------------------------------

def server_config(*flags: str, **overrides) -> ServerConfig:
    """ServerConfig launching the fake tool server with ``flags``."""
    settings = {
        "client_id": "fake",
        "startup_timeout": 10.0,
        "request_timeout": 10.0,
        "shutdown_grace": 2.0,
    }
    settings.update(overrides)
    return ServerConfig(
        command=sys.executable,
        args=[str(FAKE_SERVER), *flags],
        **settings,
    )


def final(text: str) -> Completion:
    """Completion carrying a final answer."""
    return Completion(final_text=text)


def calls(*specs, text: str = "") -> Completion:
    """Completion requesting tools.

    Each spec is ``(tool_name, arguments)`` or ``(tool_name, arguments, call_id)``.
    """
    requests = []
    for i, spec in enumerate(specs, start=1):
        name, arguments = spec[0], spec[1]
        call_id = spec[2] if len(spec) > 2 else f"call_{i}"
        requests.append(ToolCallRequest(name, arguments, correlation_id=call_id))
    return Completion(tool_calls=tuple(requests), text=text)


class ScriptedProvider:
    """CompletionProvider that replays completions in order.

    The last completion repeats once the script runs out. Every request
    is recorded in ``requests`` as ``(messages, tools, system_prompt)``.
    An exception in the script is raised instead of returned.
    """

    def __init__(self, *script) -> None:
        self.script = list(script)
        self.requests: list[tuple] = []
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def complete(self, messages, tools, *, system_prompt=None):
        self.requests.append((list(messages), list(tools), system_prompt))
        step = self.script[min(len(self.requests), len(self.script)) - 1]
        if isinstance(step, Exception):
            raise step
        return step

    def close(self) -> None:
        self.closed = True


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------

@pytest.fixture
def spawn_client():
    """Factory spawning fake-server clients; every client is closed on teardown."""
    spawned: list[ProtocolClient] = []

    def _spawn(*flags: str, healthy: bool = True, **overrides) -> ProtocolClient:
        client = ProtocolClient.spawn(server_config(*flags, **overrides))
        spawned.append(client)
        if healthy:
            client.health_check()
        return client

    yield _spawn
    for client in spawned:
        client.close()


@pytest.fixture
def client(spawn_client) -> ProtocolClient:
    """A READY client connected to the fake tool server."""
    return spawn_client()
