"""JSON-RPC 2.0 frames exchanged with a tool provider.

One frame per line. Incoming lines are classified into responses,
server-initiated requests, and notifications; anything else is a
ProtocolError.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError

from toolwire.exceptions import ProtocolError

JSONRPC_VERSION = "2.0"
MCP_PROTOCOL_VERSION = "2024-11-05"

# Logical operation -> wire method
METHOD_INITIALIZE = "initialize"
METHOD_INITIALIZED = "notifications/initialized"
METHOD_PING = "ping"
METHOD_LIST_TOOLS = "tools/list"
METHOD_CALL_TOOL = "tools/call"

# JSON-RPC error codes
METHOD_NOT_FOUND = -32601


class RpcError(BaseModel):
    code: int
    message: str = ""
    data: Any = None


class Request(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    id: Union[int, str]
    method: str
    params: Optional[dict[str, Any]] = None


class Notification(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    method: str
    params: Optional[dict[str, Any]] = None


class Response(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    id: Union[int, str, None]
    result: Any = None
    error: Optional[RpcError] = None


Frame = Union[Request, Notification, Response]


def encode(frame: Frame) -> bytes:
    """Serialize a frame to one newline-terminated line."""
    payload = frame.model_dump(exclude_none=True)
    if isinstance(frame, Response) and frame.error is None:
        # A result of null is still a result
        payload["result"] = frame.result
        payload["id"] = frame.id
    return (json.dumps(payload, separators=(",", ":")) + "\n").encode("utf-8")


def decode(line: bytes) -> Frame:
    """Parse one line into a frame.

    Raises:
        ProtocolError: If the line is not a JSON-RPC 2.0 object.
    """
    try:
        raw = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ProtocolError(f"Undecodable frame: {exc}") from exc
    if not isinstance(raw, dict) or raw.get("jsonrpc") != JSONRPC_VERSION:
        raise ProtocolError(f"Not a JSON-RPC {JSONRPC_VERSION} frame: {line[:200]!r}")
    try:
        if "method" in raw:
            if "id" in raw:
                return Request.model_validate(raw)
            return Notification.model_validate(raw)
        if "id" in raw and ("result" in raw or "error" in raw):
            return Response.model_validate(raw)
    except ValidationError as exc:
        raise ProtocolError(f"Invalid frame: {exc}") from exc
    raise ProtocolError(f"Unrecognized frame: {line[:200]!r}")
