"""Retry queue for messages that could not be applied yet.

Entries are replayed in arrival order. A drain first swaps the live queue for
a fresh empty one and then works on the detached snapshot, so anything
enqueued while the drain runs (including the drain's own re-queues) waits for
the next cycle instead of looping within the current one.

There is no retry cap and no de-duplication: a message may sit in the queue
several times, once per slot that could not be written.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterator

from statebridge.models.message import RawMessage

_logger = logging.getLogger(__name__)


class RetryQueue:
    """Unbounded FIFO of deferred messages."""

    def __init__(self) -> None:
        self._live: deque[RawMessage] = deque()
        self._drain_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._live)

    def __iter__(self) -> Iterator[RawMessage]:
        return iter(list(self._live))

    def enqueue(self, message: RawMessage) -> None:
        self._live.append(message)

    def detach(self) -> deque[RawMessage]:
        """Swap out the live queue and return its previous contents."""
        detached = self._live
        self._live = deque()
        return detached

    def clear(self) -> None:
        self._live.clear()

    async def drain(self, replay: Callable[[RawMessage], Awaitable[None]]) -> int:
        """Replay a snapshot of the queue through ``replay``.

        Drains are serialized; a second caller waits for the running drain
        and then processes whatever was queued meanwhile. If ``replay``
        raises or the drain is cancelled, the entry being replayed and every
        entry after it go back to the front of the live queue.

        Returns the number of messages fully replayed.
        """
        async with self._drain_lock:
            pending = self.detach()
            if not pending:
                return 0
            _logger.debug("Replaying %d queued messages", len(pending))
            replayed = 0
            try:
                while pending:
                    # Stays in the snapshot until replay returns.
                    await replay(pending[0])
                    pending.popleft()
                    replayed += 1
            finally:
                if pending:
                    # Keep order: unreplayed snapshot first, then anything new.
                    pending.extend(self._live)
                    self._live = pending
            return replayed
