"""Toolkit data models for discovered tools and their invocations.

Frozen dataclasses for tool specs, call requests, and call results.
"""

from __future__ import annotations

import types
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping


def _freeze(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return types.MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class ToolSpec:
    """A tool advertised by a tool provider.

    Attributes:
        name: Tool name, unique within one provider.
        description: Human-readable description for the model.
        input_schema: JSON Schema dict describing accepted arguments.
    """

    name: str
    description: str = ""
    input_schema: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "input_schema", _freeze(self.input_schema))

    @classmethod
    def from_wire(cls, raw: Mapping[str, Any]) -> ToolSpec:
        """Build a ToolSpec from a ``tools/list`` entry."""
        return cls(
            name=raw["name"],
            description=raw.get("description") or "",
            input_schema=raw.get("inputSchema") or {"type": "object", "properties": {}},
        )

    def to_openai(self) -> dict:
        """Convert to OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": dict(self.input_schema),
            },
        }


@dataclass(frozen=True)
class ToolCallRequest:
    """A tool invocation requested by the model.

    Attributes:
        tool_name: Name of the tool to run.
        arguments: Argument mapping matching the tool's input schema.
        correlation_id: Id echoed by the matching ToolCallResult.
    """

    tool_name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)
    correlation_id: str = field(default_factory=lambda: f"call_{uuid.uuid4().hex[:8]}")

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", _freeze(self.arguments))


@dataclass(frozen=True)
class ToolCallResult:
    """Outcome of one tool invocation.

    Attributes:
        correlation_id: Id of the ToolCallRequest this answers.
        content: Text output, or the error payload when ``is_error``.
        is_error: Whether the tool reported (or the caller synthesized) a failure.
    """

    correlation_id: str
    content: str = ""
    is_error: bool = False

    @classmethod
    def error(cls, correlation_id: str, content: str) -> ToolCallResult:
        return cls(correlation_id=correlation_id, content=content, is_error=True)
