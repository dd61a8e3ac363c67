"""ToolRegistry: maps discovered tool names to the client that owns them.

Each client's tool set is stored as an immutable tuple. Every
registration rebuilds the name index off to the side and publishes it
with a single attribute assignment, so ``resolve()`` and ``all()``
always see one consistent generation of the registry.
"""

from __future__ import annotations

import logging
import threading
import types
from dataclasses import dataclass
from typing import TYPE_CHECKING

from toolwire.exceptions import UnknownToolError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from toolwire.toolkit.models import ToolSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCollision:
    """A tool name advertised by more than one client.

    Attributes:
        name: The contested tool name.
        owner: Client whose spec was kept (registered first).
        rejected: Client whose spec was ignored.
    """

    name: str
    owner: str
    rejected: str


@dataclass(frozen=True)
class _Index:
    """One published generation of the registry."""

    by_client: Mapping[str, tuple[ToolSpec, ...]]
    by_name: Mapping[str, tuple[str, ToolSpec]]
    ordered: tuple[ToolSpec, ...]
    collisions: tuple[ToolCollision, ...]


_EMPTY = _Index(
    by_client=types.MappingProxyType({}),
    by_name=types.MappingProxyType({}),
    ordered=(),
    collisions=(),
)


class ToolRegistry:
    """Cache of tool specs discovered from one or more protocol clients.

    Order is stable: clients in the order they first registered, then
    each client's tools in declared order. When two clients advertise the
    same name, the client that registered first keeps it; the collision
    is recorded but registration still succeeds.

    Usage::

        registry = ToolRegistry()
        registry.register("sqlcl", client.list_tools())
        client_id, spec = registry.resolve("run-sql")
    """

    def __init__(self) -> None:
        self._write_lock = threading.Lock()
        self._index = _EMPTY

    def register(self, client_id: str, specs: Iterable[ToolSpec]) -> None:
        """Replace ``client_id``'s tool set with ``specs``.

        Args:
            client_id: Identifier of the owning client.
            specs: The client's complete tool list, in declared order.
        """
        with self._write_lock:
            by_client = dict(self._index.by_client)
            by_client[client_id] = tuple(specs)
            self._publish(by_client)

    def unregister(self, client_id: str) -> None:
        """Drop every tool owned by ``client_id``. Unknown ids are ignored."""
        with self._write_lock:
            if client_id not in self._index.by_client:
                return
            by_client = dict(self._index.by_client)
            del by_client[client_id]
            self._publish(by_client)

    def resolve(self, name: str) -> tuple[str, ToolSpec]:
        """Return ``(client_id, spec)`` for the tool called ``name``.

        Raises:
            UnknownToolError: If no registered client owns ``name``.
        """
        entry = self._index.by_name.get(name)
        if entry is None:
            raise UnknownToolError(name)
        return entry

    def all(self) -> list[ToolSpec]:
        """Return all resolvable tool specs in discovery order."""
        return list(self._index.ordered)

    def clients(self) -> list[str]:
        """Return registered client ids in registration order."""
        return list(self._index.by_client)

    @property
    def collisions(self) -> list[ToolCollision]:
        """Name collisions seen in the current generation."""
        return list(self._index.collisions)

    def __len__(self) -> int:
        return len(self._index.ordered)

    def __contains__(self, name: object) -> bool:
        return name in self._index.by_name

    # ------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------

    def _publish(self, by_client: dict[str, tuple[ToolSpec, ...]]) -> None:
        by_name: dict[str, tuple[str, ToolSpec]] = {}
        ordered: list[ToolSpec] = []
        collisions: list[ToolCollision] = []
        for client_id, specs in by_client.items():
            for spec in specs:
                existing = by_name.get(spec.name)
                if existing is not None:
                    collisions.append(
                        ToolCollision(name=spec.name, owner=existing[0], rejected=client_id)
                    )
                    logger.warning(
                        "Tool '%s' from client '%s' shadowed by client '%s'",
                        spec.name,
                        client_id,
                        existing[0],
                    )
                    continue
                by_name[spec.name] = (client_id, spec)
                ordered.append(spec)
        self._index = _Index(
            by_client=types.MappingProxyType(by_client),
            by_name=types.MappingProxyType(by_name),
            ordered=tuple(ordered),
            collisions=tuple(collisions),
        )
