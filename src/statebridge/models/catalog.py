"""Device/group catalog models.

The catalog is supplied by the surrounding adapter and is read-only from the
router's perspective. Each descriptor carries the ordered list of state slots
declared for that device; slot keys in the backing store are composed as
``"<namespace>.<slot id>"``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

#: Payload property that only ever matches slots declaring it explicitly.
ACTION_PROPERTY = "action"


class StateSlot(BaseModel):
    """A single named state slot of a device or group."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1)
    prop: str | None = Field(default=None, description="Payload property feeding this slot")
    write: bool = False
    is_event: bool = Field(default=False, description="Pulse slot that reverts after a timeout")
    getter: Callable[[Mapping[str, Any]], Any] | None = Field(
        default=None,
        description="Value transform; receives the whole payload.",
    )
    revert: Callable[[Any], Any] | None = Field(
        default=None,
        description="Complement used when a pulse expires. Defaults to boolean negation.",
    )

    def matches(self, property_name: str) -> bool:
        """Whether a payload property feeds this slot.

        ``action`` is matched against ``prop`` only; every other property
        also falls back to the slot id.
        """
        if property_name == ACTION_PROPERTY:
            return self.prop == property_name
        return self.prop == property_name or self.id == property_name

    def resolve_value(self, payload: Mapping[str, Any], raw_value: Any) -> Any:
        if self.getter is not None:
            return self.getter(payload)
        return raw_value

    def complement(self, value: Any) -> Any:
        if self.revert is not None:
            return self.revert(value)
        return not value


class DeviceDescriptor(BaseModel):
    """A device or group and the state slots declared for it."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1, description="Identity matched against message topics")
    namespace: str | None = Field(default=None, description="Slot key prefix; defaults to id")
    is_group: bool = False
    states: list[StateSlot] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_slot_ids(self) -> DeviceDescriptor:
        seen: set[str] = set()
        for slot in self.states:
            if slot.id in seen:
                raise ValueError(f"duplicate slot id {slot.id!r} on device {self.id!r}")
            seen.add(slot.id)
        return self

    @property
    def key_prefix(self) -> str:
        return self.namespace or self.id

    def slot_key(self, slot: StateSlot) -> str:
        return f"{self.key_prefix}.{slot.id}"

    def matching_slots(self, property_name: str) -> list[StateSlot]:
        return [slot for slot in self.states if slot.matches(property_name)]

    def get_slot(self, slot_id: str) -> StateSlot | None:
        for slot in self.states:
            if slot.id == slot_id:
                return slot
        return None


class Catalog(BaseModel):
    """Ordered collection of groups and devices.

    Lookups by topic search groups before devices and the first match wins,
    so an id shared by a group and a device always resolves to the group.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    groups: list[DeviceDescriptor] = Field(default_factory=list)
    devices: list[DeviceDescriptor] = Field(default_factory=list)

    _index: dict[str, DeviceDescriptor] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        index: dict[str, DeviceDescriptor] = {}
        for descriptor in self.iter_all():
            index.setdefault(descriptor.id, descriptor)
        self._index = index

    def iter_all(self) -> Iterator[DeviceDescriptor]:
        yield from self.groups
        yield from self.devices

    def find(self, topic: str) -> DeviceDescriptor | None:
        return self._index.get(topic)

    def __len__(self) -> int:
        return len(self.groups) + len(self.devices)
