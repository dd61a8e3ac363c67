"""Bounded conversation memory.

A sliding window over the most recent messages, backed by a deque so
append and eviction are O(1).
"""

from __future__ import annotations

import collections
import itertools
from dataclasses import replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from toolwire.models.conversation import Message

DEFAULT_CAPACITY = 1000


class ConversationMemory:
    """Ordered log of at most ``capacity`` messages.

    Appending to a full memory drops the oldest message. The message just
    appended is never the one evicted.

    Usage::

        memory = ConversationMemory(capacity=50)
        memory.append(Message.user("List all tables"))
        for message in memory.snapshot():
            print(message.sequence, message.role.value, message.content)
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._messages: collections.deque[Message] = collections.deque(maxlen=capacity)
        self._sequence = itertools.count(1)

    @property
    def capacity(self) -> int:
        return self._messages.maxlen  # type: ignore[return-value]

    def append(self, message: Message) -> Message:
        """Stamp ``message`` with the next sequence number and store it.

        Returns:
            The stored (stamped) message.
        """
        stamped = replace(message, sequence=next(self._sequence))
        self._messages.append(stamped)
        return stamped

    def snapshot(self) -> list[Message]:
        """Return the retained messages, oldest first."""
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)
