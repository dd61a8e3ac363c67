"""Toolwire: drive tool-calling language models against stdio tool providers.

Launches a tool-provider process, discovers its tools over a JSON-RPC
stdio session, and runs a bounded agent loop that lets a model call
those tools until it can answer.
"""

from toolwire._version import __version__

# Core entry points
from toolwire.agent import AgentConfig, AgentLoop, AgentState, RoundResult
from toolwire.memory import ConversationMemory
from toolwire.protocol import ProtocolClient, SessionState
from toolwire.transport import ProcessTransport

# Data models
from toolwire.models.config import ServerConfig
from toolwire.models.conversation import Message, Role
from toolwire.toolkit import (
    ToolCallRequest,
    ToolCallResult,
    ToolCollision,
    ToolRegistry,
    ToolSpec,
)

# Completion backends
from toolwire.llm import (
    Completion,
    CompletionProvider,
    LLMClient,
    OpenAIClient,
    OpenAICompletionProvider,
)

# Pre-flight checks
from toolwire.preflight import PreflightResult, check_database, check_executable

# Exceptions
from toolwire.exceptions import (
    AgentTaskError,
    LLMAuthError,
    LLMClientError,
    LLMConfigError,
    LLMRateLimitError,
    LLMResponseError,
    NotReadyError,
    ProcessTerminated,
    ProtocolError,
    ProviderError,
    RequestTimeoutError,
    RoundLimitExceeded,
    SessionClosedError,
    SpawnError,
    ToolExecutionFailed,
    ToolwireError,
    TransportEOFError,
    TransportError,
    TransportReadError,
    TransportWriteError,
    UnknownToolError,
    UnreachableError,
)

__all__ = [
    "__version__",
    # Core
    "AgentLoop",
    "AgentConfig",
    "AgentState",
    "RoundResult",
    "ConversationMemory",
    "ProtocolClient",
    "SessionState",
    "ProcessTransport",
    # Models
    "ServerConfig",
    "Message",
    "Role",
    "ToolSpec",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolRegistry",
    "ToolCollision",
    # Completion backends
    "Completion",
    "CompletionProvider",
    "LLMClient",
    "OpenAIClient",
    "OpenAICompletionProvider",
    # Pre-flight
    "PreflightResult",
    "check_database",
    "check_executable",
    # Exceptions
    "ToolwireError",
    "TransportError",
    "SpawnError",
    "TransportWriteError",
    "TransportReadError",
    "TransportEOFError",
    "ProcessTerminated",
    "ProtocolError",
    "RequestTimeoutError",
    "NotReadyError",
    "UnreachableError",
    "SessionClosedError",
    "UnknownToolError",
    "AgentTaskError",
    "ProviderError",
    "ToolExecutionFailed",
    "RoundLimitExceeded",
    "LLMClientError",
    "LLMConfigError",
    "LLMRateLimitError",
    "LLMAuthError",
    "LLMResponseError",
]
