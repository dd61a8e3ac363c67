"""Agent loop configuration types.

Provides AgentState and AgentConfig for configuring the tool-calling
agent loop.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from toolwire.memory import DEFAULT_CAPACITY

if TYPE_CHECKING:
    from toolwire.agent.models import RoundResult

DEFAULT_MAX_ROUNDS = 10

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant who uses the tools exposed by the connected "
    "tool servers to carry out the user's tasks. Call a tool whenever it can "
    "answer part of the task, read its result, and reply with a final answer "
    "once the task is done."
)


class AgentState(str, enum.Enum):
    """Where the agent loop is within the current task."""

    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    TOOL_CALLS_REQUESTED = "tool_calls_requested"
    DISPATCHING = "dispatching"
    FINISHED = "finished"
    FAILED = "failed"


@dataclass
class AgentConfig:
    """Configuration for the agent loop.

    Mutable dataclass -- callers may adjust settings between tasks.

    Attributes:
        max_rounds: Maximum completion requests per task. A task still
            asking for tools after this many rounds fails with
            RoundLimitExceeded.
        system_prompt: Instruction sent ahead of the conversation on every
            completion request. None sends no system message.
        memory_capacity: Capacity of the ConversationMemory created when
            none is supplied.
        parallel_dispatch: Run one round's calls to different clients
            concurrently. Calls to the same client always run in order.
        on_round: Callback invoked after each round completes.
    """

    max_rounds: int = DEFAULT_MAX_ROUNDS
    system_prompt: str | None = DEFAULT_SYSTEM_PROMPT
    memory_capacity: int = DEFAULT_CAPACITY
    parallel_dispatch: bool = False
    on_round: Callable[[RoundResult], None] | None = None

    def __post_init__(self) -> None:
        if self.max_rounds < 1:
            raise ValueError(f"max_rounds must be at least 1, got {self.max_rounds}")
