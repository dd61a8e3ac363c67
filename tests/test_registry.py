"""Tests for ToolRegistry and the toolkit data models."""

from __future__ import annotations

import threading

import pytest

from toolwire.exceptions import UnknownToolError
from toolwire.toolkit import ToolCallRequest, ToolCallResult, ToolRegistry, ToolSpec


def specs(*names: str, tag: str = "") -> list[ToolSpec]:
    return [ToolSpec(name, description=tag) for name in names]


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TestToolSpec:
    def test_from_wire(self):
        spec = ToolSpec.from_wire({
            "name": "run-sql",
            "description": "Run a statement",
            "inputSchema": {"type": "object", "properties": {"sql": {"type": "string"}}},
        })
        assert spec.name == "run-sql"
        assert spec.input_schema["properties"]["sql"] == {"type": "string"}

    def test_from_wire_without_optional_fields(self):
        spec = ToolSpec.from_wire({"name": "ping"})
        assert spec.description == ""
        assert spec.input_schema == {"type": "object", "properties": {}}

    def test_from_wire_requires_name(self):
        with pytest.raises(KeyError):
            ToolSpec.from_wire({"description": "nameless"})

    def test_schema_is_read_only(self):
        spec = ToolSpec("t", input_schema={"type": "object"})
        with pytest.raises(TypeError):
            spec.input_schema["type"] = "array"  # type: ignore[index]

    def test_to_openai(self):
        spec = ToolSpec("listTables", "List tables", {"type": "object", "properties": {}})
        assert spec.to_openai() == {
            "type": "function",
            "function": {
                "name": "listTables",
                "description": "List tables",
                "parameters": {"type": "object", "properties": {}},
            },
        }


class TestToolCallModels:
    def test_request_gets_unique_correlation_ids(self):
        ids = {ToolCallRequest("echo").correlation_id for _ in range(50)}
        assert len(ids) == 50
        assert all(i.startswith("call_") for i in ids)

    def test_request_arguments_are_copied(self):
        arguments = {"sql": "select 1"}
        request = ToolCallRequest("run-sql", arguments)
        arguments["sql"] = "drop table t"
        assert request.arguments["sql"] == "select 1"

    def test_error_result(self):
        result = ToolCallResult.error("call_1", "UnknownTool: x")
        assert result.is_error
        assert result.correlation_id == "call_1"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_resolve_returns_owner_and_spec(self):
        registry = ToolRegistry()
        registry.register("sqlcl", specs("listTables", "runSql"))
        client_id, spec = registry.resolve("runSql")
        assert client_id == "sqlcl"
        assert spec.name == "runSql"

    def test_resolve_unknown_raises(self):
        registry = ToolRegistry()
        registry.register("sqlcl", specs("listTables"))
        with pytest.raises(UnknownToolError) as exc_info:
            registry.resolve("dropSchema")
        assert exc_info.value.tool_name == "dropSchema"
        assert str(exc_info.value) == "UnknownTool: dropSchema"

    def test_all_in_discovery_order(self):
        registry = ToolRegistry()
        registry.register("b", specs("b1", "b2"))
        registry.register("a", specs("a1"))
        assert [s.name for s in registry.all()] == ["b1", "b2", "a1"]
        assert registry.clients() == ["b", "a"]

    def test_reregistration_replaces_client_tools(self):
        registry = ToolRegistry()
        registry.register("sqlcl", specs("old1", "old2"))
        registry.register("sqlcl", specs("new1"))
        assert [s.name for s in registry.all()] == ["new1"]
        assert "old1" not in registry
        assert len(registry) == 1

    def test_reregistration_keeps_client_position(self):
        registry = ToolRegistry()
        registry.register("first", specs("f"))
        registry.register("second", specs("s"))
        registry.register("first", specs("f2"))
        assert [s.name for s in registry.all()] == ["f2", "s"]

    def test_collision_first_registered_wins(self, caplog):
        registry = ToolRegistry()
        registry.register("first", specs("query", tag="first"))
        registry.register("second", specs("query", "other", tag="second"))

        client_id, spec = registry.resolve("query")
        assert client_id == "first"
        assert spec.description == "first"
        assert [s.name for s in registry.all()] == ["query", "other"]
        assert len(registry.collisions) == 1
        collision = registry.collisions[0]
        assert (collision.name, collision.owner, collision.rejected) == ("query", "first", "second")
        assert "shadowed" in caplog.text

    def test_unregister(self):
        registry = ToolRegistry()
        registry.register("first", specs("query"))
        registry.register("second", specs("query", "other"))
        registry.unregister("first")
        assert registry.resolve("query")[0] == "second"
        assert registry.collisions == []
        registry.unregister("unknown")
        assert registry.clients() == ["second"]

    def test_empty_registry(self):
        registry = ToolRegistry()
        assert registry.all() == []
        assert len(registry) == 0
        assert "anything" not in registry


class TestRegistryConcurrency:
    def test_readers_never_see_a_mixed_generation(self):
        """All specs of one generation share a description; readers must never mix two."""
        registry = ToolRegistry()
        names = [f"tool{i}" for i in range(20)]
        registry.register("c", [ToolSpec(n, description="gen0") for n in names])

        stop = threading.Event()
        mixed: list[set[str]] = []

        def reader():
            while not stop.is_set():
                generations = {spec.description for spec in registry.all()}
                if len(generations) != 1:
                    mixed.append(generations)

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for t in threads:
            t.start()
        for gen in range(1, 300):
            registry.register("c", [ToolSpec(n, description=f"gen{gen}") for n in names])
        stop.set()
        for t in threads:
            t.join()

        assert mixed == []
        assert {s.description for s in registry.all()} == {"gen299"}
