"""Custom exception hierarchy for statebridge."""

from __future__ import annotations


class StateBridgeError(Exception):
    """Base exception for all statebridge errors."""


class BridgeConfigError(StateBridgeError):
    """Invalid or missing configuration."""


class StateStoreError(StateBridgeError):
    """Backing store operation failed."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class StateWriteError(StateStoreError):
    """Transient write failure reported by the backing store.

    The router treats this (and any other exception raised while writing)
    as recoverable: the originating message is re-queued for replay.
    """


class TransportError(StateBridgeError):
    """Transport-level failure (broker/websocket connect, invalid frames)."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)
