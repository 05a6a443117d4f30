"""Store writes, including pulse writes that revert after a timeout.

At most one revert timer is live per slot key. Installing a new one cancels
the previous handle in the same synchronous step (no ``await`` between the
cancel and the install), so two pulse writes racing on a key can never both
leave a timer behind.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from statebridge.state.store import StateStore

_logger = logging.getLogger(__name__)


def _negate(value: Any) -> Any:
    return not value


class PendingTimerSet:
    """Owns the revert timers for pulse slots and the plain write paths.

    Absent values (``None``) are never written on any path.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._reverts: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, key: object) -> bool:
        return key in self._handles

    def pending(self, key: str) -> bool:
        return key in self._handles

    async def write(self, key: str, value: Any) -> None:
        if value is None:
            return
        await self._store.write(key, value)

    async def write_if_changed(self, key: str, value: Any) -> None:
        if value is None:
            return
        await self._store.write_if_changed(key, value)

    async def write_with_expiry(
        self,
        key: str,
        value: Any,
        timeout: float,
        *,
        revert: Callable[[Any], Any] | None = None,
    ) -> None:
        """Write ``value`` now and its complement after ``timeout`` seconds.

        The immediate write is unconditional: a pulse must reach the store
        even when it repeats the current value. A later pulse on the same
        key supersedes the pending revert of an earlier one.
        """
        if value is None:
            return
        reverted = (revert or _negate)(value)
        await self._store.write(key, value)
        self._install(key, reverted, timeout)

    def _install(self, key: str, reverted: Any, timeout: float) -> None:
        loop = asyncio.get_running_loop()
        previous = self._handles.pop(key, None)
        if previous is not None:
            previous.cancel()
        self._handles[key] = loop.call_later(timeout, self._expire, key, reverted)

    def _expire(self, key: str, reverted: Any) -> None:
        # A superseded handle is cancelled before it can fire, so the table
        # entry for ``key`` is always the handle that is firing now.
        self._handles.pop(key, None)
        task = asyncio.get_running_loop().create_task(self._revert(key, reverted))
        self._reverts.add(task)
        task.add_done_callback(self._reverts.discard)

    async def _revert(self, key: str, reverted: Any) -> None:
        try:
            await self._store.write(key, reverted)
        except Exception:
            _logger.error("Can not revert %s to %r", key, reverted, exc_info=True)

    def cancel(self, key: str) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        """Cancel every pending revert. Returns the number of cancelled timers."""
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            handle.cancel()
        for task in list(self._reverts):
            task.cancel()
        if handles:
            _logger.debug("Cancelled %d pending revert timers", len(handles))
        return len(handles)
