"""statebridge - Reconciles device telemetry messages onto named state slots."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("statebridge")
except PackageNotFoundError:
    __version__ = "0+local"
from statebridge.bridge import StateBridge
from statebridge.config import BridgeConfig
from statebridge.exceptions import (
    BridgeConfigError,
    StateBridgeError,
    StateStoreError,
    StateWriteError,
    TransportError,
)
from statebridge.models import ACTION_PROPERTY, Catalog, DeviceDescriptor, RawMessage, StateSlot
from statebridge.router import MessageRouter
from statebridge.state import (
    CreateCache,
    CreationTracker,
    MemoryStateStore,
    PendingTimerSet,
    RetryQueue,
    StateStore,
)

__all__ = [
    "__version__",
    "ACTION_PROPERTY",
    "BridgeConfig",
    "BridgeConfigError",
    "Catalog",
    "CreateCache",
    "CreationTracker",
    "DeviceDescriptor",
    "MemoryStateStore",
    "MessageRouter",
    "PendingTimerSet",
    "RawMessage",
    "RetryQueue",
    "StateBridge",
    "StateBridgeError",
    "StateSlot",
    "StateStore",
    "StateStoreError",
    "StateWriteError",
    "TransportError",
]
