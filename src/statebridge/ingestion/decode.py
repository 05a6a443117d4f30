"""Topic/payload decoding shared by the transport adapters."""

from __future__ import annotations

import json
import logging
from typing import Any

from statebridge.models.message import RawMessage

_logger = logging.getLogger(__name__)

BRIDGE_TOPIC = "bridge"
AVAILABILITY_SUFFIX = "/availability"
_COMMAND_SUFFIXES = ("/set", "/get")


def decode_payload(raw: bytes | str) -> Any:
    """Decode a transport payload.

    Empty payloads decode to ``""``. JSON is parsed; anything that is not
    valid JSON (e.g. a plain ``online`` availability payload) is returned
    as text.
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    text = text.strip()
    if not text:
        return ""
    try:
        return json.loads(text)
    except ValueError:
        return text


def is_command_topic(device_topic: str) -> bool:
    if device_topic.endswith(_COMMAND_SUFFIXES):
        return True
    return "/set/" in device_topic or "/get/" in device_topic


def parse_availability(value: Any) -> bool | None:
    """Map ``online``/``offline`` (plain or ``{"state": ...}``) to a bool."""
    if isinstance(value, dict):
        value = value.get("state")
    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    if normalized == "online":
        return True
    if normalized == "offline":
        return False
    return None


def build_message(
    device_topic: str,
    payload: Any,
    *,
    availability_property: str = "availability",
) -> RawMessage | None:
    """Build a router message for a device topic, or ``None`` to ignore it.

    The bridge's own ``bridge/...`` topics and ``/set``/``/get`` command
    echoes are ignored. ``<device>/availability`` becomes a message for the
    device carrying ``{availability_property: bool}``.
    """
    topic = device_topic.strip("/")
    if not topic or topic == BRIDGE_TOPIC or topic.startswith(f"{BRIDGE_TOPIC}/"):
        return None
    if is_command_topic(topic):
        return None

    if topic.endswith(AVAILABILITY_SUFFIX):
        online = parse_availability(payload)
        if online is None:
            _logger.debug("Ignoring unrecognized availability payload on %s", topic)
            return None
        return RawMessage(topic=topic[: -len(AVAILABILITY_SUFFIX)], payload={availability_property: online})

    if payload is None or payload == "":
        return RawMessage(topic=topic, payload={})
    if not isinstance(payload, dict):
        _logger.debug("Ignoring non-object payload on %s", topic)
        return None
    return RawMessage(topic=topic, payload=payload)
