"""Slot creation tracking.

A slot only accepts writes once the backing store has been asked to
materialize it. The router consults a :class:`CreationTracker` before every
write; the in-memory :class:`CreateCache` is the implementation used by the
adapter glue and by tests.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable
from typing import Protocol


class CreationTracker(Protocol):
    """Answers whether a slot of a device has been created in the store.

    Implementations may answer synchronously or return an awaitable.
    """

    def is_created(self, namespace: str, slot_id: str) -> bool | Awaitable[bool]:
        ...


async def query_created(tracker: CreationTracker, namespace: str, slot_id: str) -> bool:
    """Resolve a tracker answer that may or may not be awaitable."""
    result = tracker.is_created(namespace, slot_id)
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


class CreateCache:
    """In-memory creation status, keyed by device namespace then slot id."""

    def __init__(self) -> None:
        self._created: dict[str, set[str]] = {}

    def mark_created(self, namespace: str, slot_id: str) -> None:
        self._created.setdefault(namespace, set()).add(slot_id)

    def is_created(self, namespace: str, slot_id: str) -> bool:
        slots = self._created.get(namespace)
        return slots is not None and slot_id in slots
