"""Bridge configuration for statebridge."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from statebridge.exceptions import BridgeConfigError

#: Pulse slots revert after 300 ms.
DEFAULT_PULSE_TIMEOUT: float = 0.3

DEFAULT_CONTROL_SLOTS: tuple[str, ...] = ("info.debugmessages", "info.logfilter")


def _env_list(value: str | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env_number(env_key: str, value: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(value)
    except ValueError as exc:
        raise BridgeConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class BridgeConfig:
    """Bridge configuration.

    Parameters
    ----------
    pulse_timeout : float
        Seconds after which a pulse (event) slot is reverted to the
        complement of the value last written to it.
    replay_interval : float
        Seconds between periodic drains of the retry queue. ``0``
        disables the periodic loop; drains then only happen on demand.
    debug_devices : tuple[str, ...]
        Device identities (topic id or namespace) whose incoming
        messages are logged verbatim at WARNING level.
    availability_slot : str
        Slot id written ``False`` on every device when the transport
        disconnects.
    control_slots : tuple[str, ...]
        Fixed diagnostic slots subscribed next to the writable slots.
    mqtt_base_topic : str
        Topic prefix stripped from inbound MQTT topics.
    mqtt_host : str
        MQTT broker host.
    mqtt_port : int
        MQTT broker port.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    websocket_url : str or None
        Websocket endpoint; when set the websocket transport is used
        instead of MQTT.
    """

    pulse_timeout: float = DEFAULT_PULSE_TIMEOUT
    replay_interval: float = 5.0
    debug_devices: tuple[str, ...] = ()
    availability_slot: str = "availability"
    control_slots: tuple[str, ...] = DEFAULT_CONTROL_SLOTS
    mqtt_base_topic: str = "zigbee2mqtt"
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_keepalive: int = 60
    websocket_url: str | None = None

    def __post_init__(self) -> None:
        if self.pulse_timeout < 0:
            raise BridgeConfigError("pulse_timeout must not be negative")
        if self.replay_interval < 0:
            raise BridgeConfigError("replay_interval must not be negative")
        if not self.mqtt_base_topic.strip("/"):
            raise BridgeConfigError("mqtt_base_topic must not be empty")

    def is_debug_device(self, *identities: str | None) -> bool:
        return any(identity in self.debug_devices for identity in identities if identity)

    @classmethod
    def from_env(cls, **overrides: Any) -> BridgeConfig:
        """Create configuration from environment variables.

        Reads optional ``STATEBRIDGE_*`` variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        BridgeConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "STATEBRIDGE_AVAILABILITY_SLOT": "availability_slot",
            "STATEBRIDGE_MQTT_BASE_TOPIC": "mqtt_base_topic",
            "STATEBRIDGE_MQTT_HOST": "mqtt_host",
            "STATEBRIDGE_WEBSOCKET_URL": "websocket_url",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMBER_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "STATEBRIDGE_PULSE_TIMEOUT": ("pulse_timeout", float),
            "STATEBRIDGE_REPLAY_INTERVAL": ("replay_interval", float),
            "STATEBRIDGE_MQTT_PORT": ("mqtt_port", int),
            "STATEBRIDGE_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
        }
        for env_key, (field_name, cast) in _ENV_NUMBER_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, cast)

        debug_devices = _env_list(env.get("STATEBRIDGE_DEBUG_DEVICES"))
        if debug_devices is not None:
            config_kwargs["debug_devices"] = debug_devices

        control_slots = _env_list(env.get("STATEBRIDGE_CONTROL_SLOTS"))
        if control_slots is not None:
            config_kwargs["control_slots"] = control_slots

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
