"""Agent package -- the tool-calling agent loop and its configuration."""

from toolwire.agent.config import (
    DEFAULT_MAX_ROUNDS,
    DEFAULT_SYSTEM_PROMPT,
    AgentConfig,
    AgentState,
)
from toolwire.agent.loop import AgentLoop
from toolwire.agent.models import RoundResult

__all__ = [
    "AgentLoop",
    "AgentConfig",
    "AgentState",
    "RoundResult",
    "DEFAULT_MAX_ROUNDS",
    "DEFAULT_SYSTEM_PROMPT",
]
