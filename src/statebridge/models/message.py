"""Decoded inbound transport message."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RawMessage(BaseModel):
    """A decoded transport message: device topic plus property payload.

    An empty payload is valid and means "nothing to apply"; the router
    discards such messages without queueing them.
    """

    model_config = ConfigDict(frozen=True)

    topic: str
    payload: dict[str, Any] = Field(default_factory=dict)
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("topic")
    @classmethod
    def _strip_topic(cls, value: str) -> str:
        return value.strip()

    @field_validator("payload", mode="before")
    @classmethod
    def _empty_payload(cls, value: Any) -> Any:
        if value is None or value == "":
            return {}
        return value

    @property
    def is_empty(self) -> bool:
        return not self.payload
