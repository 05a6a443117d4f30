"""Backing key-value store interface.

The store itself lives outside statebridge; the router only needs the four
primitives of :class:`StateStore`. :class:`MemoryStateStore` is a complete
in-memory implementation used for local runs and as the test double.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from statebridge.exceptions import StateWriteError

_logger = logging.getLogger(__name__)


class StateStore(Protocol):
    """Structural interface of the backing store.

    Every primitive may raise to signal a transient failure; the router
    re-queues the originating message in that case.
    """

    async def write(self, key: str, value: Any) -> None:
        ...

    async def write_if_changed(self, key: str, value: Any) -> bool:
        ...

    async def subscribe(self, pattern: str) -> None:
        ...

    async def unsubscribe(self, pattern: str) -> None:
        ...


class MemoryStateStore:
    """Deterministic in-memory store.

    ``writes`` records every write that actually reached the store, in
    order, so callers can assert on exactly what was persisted.
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._subscriptions: set[str] = set()
        self._failures: dict[str, int] = {}
        self.writes: list[tuple[str, Any]] = []

    def fail_writes(self, key: str, times: int = 1) -> None:
        """Make the next ``times`` writes to ``key`` raise :class:`StateWriteError`."""
        self._failures[key] = self._failures.get(key, 0) + times

    def _check_failure(self, key: str) -> None:
        remaining = self._failures.get(key, 0)
        if remaining <= 0:
            return
        if remaining == 1:
            self._failures.pop(key)
        else:
            self._failures[key] = remaining - 1
        raise StateWriteError(f"write to {key} rejected", key=key)

    async def write(self, key: str, value: Any) -> None:
        self._check_failure(key)
        self._values[key] = value
        self.writes.append((key, value))
        _logger.debug("Store write %s=%r", key, value)

    async def write_if_changed(self, key: str, value: Any) -> bool:
        if key in self._values and self._values[key] == value:
            return False
        await self.write(key, value)
        return True

    async def subscribe(self, pattern: str) -> None:
        self._subscriptions.add(pattern)

    async def unsubscribe(self, pattern: str) -> None:
        if pattern == "*":
            self._subscriptions.clear()
            return
        self._subscriptions.discard(pattern)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    @property
    def subscriptions(self) -> frozenset[str]:
        return frozenset(self._subscriptions)

    def load(self, values: Iterable[tuple[str, Any]]) -> None:
        """Seed current values without recording them as writes."""
        self._values.update(values)
