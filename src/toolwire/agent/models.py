"""Agent loop result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from toolwire.llm.protocols import Completion
    from toolwire.toolkit.models import ToolCallResult


@dataclass(frozen=True)
class RoundResult:
    """Record of one round: the model's turn and the tool results it produced.

    Frozen: round results are immutable records of what happened.
    """

    round: int
    completion: Completion
    results: tuple[ToolCallResult, ...] = field(default_factory=tuple)

    @property
    def is_final(self) -> bool:
        return self.completion.is_final

    @property
    def errors(self) -> list[ToolCallResult]:
        """Return the results that carry an error payload."""
        return [r for r in self.results if r.is_error]
