"""Data models for the catalog and inbound messages."""

from statebridge.models.catalog import ACTION_PROPERTY, Catalog, DeviceDescriptor, StateSlot
from statebridge.models.message import RawMessage

__all__ = [
    "ACTION_PROPERTY",
    "Catalog",
    "DeviceDescriptor",
    "RawMessage",
    "StateSlot",
]
