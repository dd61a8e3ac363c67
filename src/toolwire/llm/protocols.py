"""Completion backend protocols.

CompletionProvider is the only contract AgentLoop relies on. LLMClient
is the lower-level chat-completions contract that OpenAICompletionProvider
is built on; the bundled OpenAIClient implements it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from toolwire.models.conversation import Message
    from toolwire.toolkit.models import ToolCallRequest, ToolSpec


@dataclass(frozen=True)
class Completion:
    """A model turn: either a final answer or a batch of tool calls.

    Attributes:
        final_text: The answer text when the model is done.
        tool_calls: Requested invocations, in the order the model listed them.
        text: Optional commentary the model sent alongside tool calls.
    """

    final_text: str | None = None
    tool_calls: tuple[ToolCallRequest, ...] = field(default_factory=tuple)
    text: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))
        if self.final_text is None and not self.tool_calls:
            raise ValueError("A Completion needs final_text or at least one tool call")

    @property
    def is_final(self) -> bool:
        return not self.tool_calls


@runtime_checkable
class CompletionProvider(Protocol):
    """Protocol for the model backend driven by AgentLoop.

    Any object with a matching ``complete()`` works, including test
    doubles that replay scripted completions.
    """

    def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolSpec],
        *,
        system_prompt: str | None = None,
    ) -> Completion:
        """Return the model's next turn for ``messages`` given ``tools``."""
        ...


@runtime_checkable
class LLMClient(Protocol):
    """Protocol for pluggable chat-completions clients.

    ``chat()`` takes OpenAI-format messages and returns the raw response
    body; extra keyword arguments (``tools`` ...) go into the payload.
    """

    def chat(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> dict:
        """Send messages, return response dict."""
        ...

    def close(self) -> None:
        """Release underlying resources."""
        ...
