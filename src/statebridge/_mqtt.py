"""Internal MQTT transport: topic parsing and a threaded paho runtime."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from statebridge.exceptions import TransportError
from statebridge.ingestion.decode import build_message, decode_payload
from statebridge.models.message import RawMessage


@dataclass(frozen=True)
class MqttEndpoint:
    """Broker connection details."""

    host: str
    port: int = 1883
    base_topic: str = "zigbee2mqtt"
    client_id: str = ""
    username: str | None = None
    password: str | None = None

    @property
    def subscription(self) -> str:
        return f"{self.base_topic.strip('/')}/#"


def parse_mqtt_message(
    base_topic: str,
    topic: str,
    payload: bytes,
    *,
    availability_property: str = "availability",
) -> RawMessage | None:
    """Turn one MQTT publish into a router message.

    Returns ``None`` for topics outside ``base_topic`` and for publishes
    the router has no use for (bridge topics, command echoes, non-object
    JSON).
    """
    prefix = f"{base_topic.strip('/')}/"
    if not topic.startswith(prefix):
        return None
    return build_message(
        topic[len(prefix) :],
        decode_payload(payload),
        availability_property=availability_property,
    )


class MqttRuntime:
    """Threaded paho-mqtt runtime that emits parsed messages onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[RawMessage], None],
        on_disconnect: Callable[[], None] | None = None,
        keepalive: int = 60,
        availability_property: str = "availability",
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_message = on_message
        self._on_disconnect = on_disconnect
        self._keepalive = keepalive
        self._availability_property = availability_property
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._endpoint: MqttEndpoint | None = None

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def start(self, endpoint: MqttEndpoint) -> None:
        """Connect and subscribe to the endpoint's base topic."""
        self.stop()
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topic=%s",
            endpoint.host,
            endpoint.port,
            endpoint.subscription,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=endpoint.client_id,
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        if endpoint.username:
            client.username_pw_set(endpoint.username, endpoint.password)

        self._endpoint = endpoint

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            if self._endpoint is not None:
                c.subscribe(self._endpoint.subscription, qos=0)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            current = self._endpoint
            if current is None:
                return
            try:
                message = parse_mqtt_message(
                    current.base_topic,
                    msg.topic,
                    msg.payload,
                    availability_property=self._availability_property,
                )
            except Exception:
                self._logger.debug("MQTT payload parse failure topic=%s", msg.topic, exc_info=True)
                return
            if message is not None:
                self._loop.call_soon_threadsafe(self._on_message, message)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if not self._running:
                return
            self._logger.debug("MQTT disconnected: %s", reason_code)
            if self._on_disconnect is not None:
                self._loop.call_soon_threadsafe(self._on_disconnect)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(endpoint.host, endpoint.port, keepalive=self._keepalive)
        except OSError as exc:
            self._endpoint = None
            raise TransportError(
                f"MQTT connect to {endpoint.host}:{endpoint.port} failed: {exc}",
                endpoint=f"{endpoint.host}:{endpoint.port}",
            ) from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._endpoint = None

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
