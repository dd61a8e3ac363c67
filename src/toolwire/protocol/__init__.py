"""Tool-provider protocol: JSON-RPC 2.0 frames and the session client.

Provides ProtocolClient for handshake, tool discovery, and tool
invocation against a stdio tool provider, plus the frame codec it uses.
"""

from toolwire.protocol.client import ProtocolClient, SessionState
from toolwire.protocol.messages import (
    MCP_PROTOCOL_VERSION,
    Notification,
    Request,
    Response,
    RpcError,
    decode,
    encode,
)

__all__ = [
    "ProtocolClient",
    "SessionState",
    "MCP_PROTOCOL_VERSION",
    "Notification",
    "Request",
    "Response",
    "RpcError",
    "decode",
    "encode",
]
