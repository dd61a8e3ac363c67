"""Conversation message model.

Messages are frozen records. ConversationMemory stamps each one with a
logical sequence number on append.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from toolwire.toolkit.models import ToolCallRequest


class Role(str, enum.Enum):
    """Who produced a message."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class Message:
    """One entry of the conversation log.

    Attributes:
        role: Message author.
        content: Message text. Empty for a pure tool-call marker.
        sequence: Logical timestamp assigned by ConversationMemory
            (0 until appended).
        tool_calls: Calls requested by an assistant message.
        tool_call_id: For tool messages, the correlation id being answered.
        name: For tool messages, the tool that produced the content.
        is_error: For tool messages, whether the content is an error payload.
    """

    role: Role
    content: str = ""
    sequence: int = 0
    tool_calls: tuple[ToolCallRequest, ...] = field(default_factory=tuple)
    tool_call_id: str | None = None
    name: str | None = None
    is_error: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))
        if not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(
        cls, content: str = "", tool_calls: tuple[ToolCallRequest, ...] = ()
    ) -> Message:
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(
        cls, content: str, *, tool_call_id: str, name: str, is_error: bool = False
    ) -> Message:
        return cls(
            role=Role.TOOL,
            content=content,
            tool_call_id=tool_call_id,
            name=name,
            is_error=is_error,
        )
