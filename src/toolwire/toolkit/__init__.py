"""Toolkit: discovered tool specs, call records, and the tool registry."""

from toolwire.toolkit.models import ToolCallRequest, ToolCallResult, ToolSpec
from toolwire.toolkit.registry import ToolCollision, ToolRegistry

__all__ = [
    "ToolSpec",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolRegistry",
    "ToolCollision",
]
