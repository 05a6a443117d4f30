"""State layer.

Everything the router needs to reach the backing store: creation tracking,
the retry queue for messages that cannot be applied yet, and the write paths
including pulse writes with a pending revert.
"""

from statebridge.state.retry import RetryQueue
from statebridge.state.store import MemoryStateStore, StateStore
from statebridge.state.timers import PendingTimerSet
from statebridge.state.tracker import CreateCache, CreationTracker

__all__ = [
    "CreateCache",
    "CreationTracker",
    "MemoryStateStore",
    "PendingTimerSet",
    "RetryQueue",
    "StateStore",
]
