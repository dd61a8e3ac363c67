"""Completion backends for Toolwire.

Provides the CompletionProvider protocol consumed by AgentLoop, an
OpenAI-compatible HTTP client, and the adapter joining the two.
"""

from toolwire.exceptions import (
    LLMAuthError,
    LLMClientError,
    LLMConfigError,
    LLMRateLimitError,
    LLMResponseError,
)
from toolwire.llm.client import OpenAIClient
from toolwire.llm.protocols import Completion, CompletionProvider, LLMClient
from toolwire.llm.provider import (
    OpenAICompletionProvider,
    parse_completion,
    to_openai_messages,
)

__all__ = [
    "Completion",
    "CompletionProvider",
    "LLMClient",
    "OpenAIClient",
    "OpenAICompletionProvider",
    "parse_completion",
    "to_openai_messages",
    "LLMClientError",
    "LLMConfigError",
    "LLMRateLimitError",
    "LLMAuthError",
    "LLMResponseError",
]
