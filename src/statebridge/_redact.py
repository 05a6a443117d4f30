"""Payload rendering for the debug-device log line.

Device payloads can carry long blobs (OTA progress, images, raw frames) and,
during pairing, key material. Neither belongs in a log.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_HIDDEN_KEYS: frozenset[str] = frozenset({"password", "network_key", "install_code", "token"})


def render_for_log(payload: Mapping[str, Any], *, max_string: int = 256) -> dict[str, Any]:
    """Copy *payload* with key material hidden and long values shortened."""
    return {str(key): _render_value(str(key), value, max_string) for key, value in payload.items()}


def _render_value(key: str, value: Any, max_string: int) -> Any:
    if key.lower() in _HIDDEN_KEYS:
        return "<redacted>"
    if isinstance(value, Mapping):
        return render_for_log(value, max_string=max_string)
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"
    if isinstance(value, str) and len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    return value
