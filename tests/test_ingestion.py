from __future__ import annotations

import json

from statebridge._mqtt import MqttEndpoint, parse_mqtt_message
from statebridge._websocket import parse_ws_frame
from statebridge.ingestion.decode import build_message, decode_payload, parse_availability


def test_mqtt_topic_prefix_is_stripped() -> None:
    message = parse_mqtt_message("zigbee2mqtt", "zigbee2mqtt/kitchen/lamp", b'{"state": "ON"}')

    assert message is not None
    assert message.topic == "kitchen/lamp"
    assert message.payload == {"state": "ON"}


def test_mqtt_ignores_foreign_bridge_and_command_topics() -> None:
    assert parse_mqtt_message("zigbee2mqtt", "other/lamp", b"{}") is None
    assert parse_mqtt_message("zigbee2mqtt", "zigbee2mqtt/bridge/state", b'{"state":"online"}') is None
    assert parse_mqtt_message("zigbee2mqtt", "zigbee2mqtt/lamp/set", b'{"state":"ON"}') is None
    assert parse_mqtt_message("zigbee2mqtt", "zigbee2mqtt/lamp/set/state", b"ON") is None


def test_mqtt_empty_payload_yields_empty_message() -> None:
    message = parse_mqtt_message("zigbee2mqtt/", "zigbee2mqtt/lamp", b"")

    assert message is not None
    assert message.is_empty


def test_mqtt_non_object_payload_ignored() -> None:
    assert parse_mqtt_message("zigbee2mqtt", "zigbee2mqtt/lamp", b"[1, 2]") is None
    assert parse_mqtt_message("zigbee2mqtt", "zigbee2mqtt/lamp", b"not json") is None


def test_availability_topic_maps_to_availability_property() -> None:
    plain = parse_mqtt_message("zigbee2mqtt", "zigbee2mqtt/lamp/availability", b"offline")
    wrapped = parse_mqtt_message(
        "zigbee2mqtt",
        "zigbee2mqtt/lamp/availability",
        b'{"state": "online"}',
        availability_property="available",
    )

    assert plain is not None and plain.topic == "lamp"
    assert plain.payload == {"availability": False}
    assert wrapped is not None and wrapped.payload == {"available": True}
    assert parse_mqtt_message("zigbee2mqtt", "zigbee2mqtt/lamp/availability", b"maybe") is None


def test_endpoint_subscription() -> None:
    assert MqttEndpoint(host="broker", base_topic="/z2m/").subscription == "z2m/#"


def test_ws_frame_parsing() -> None:
    frame = json.dumps({"topic": "lamp", "payload": {"brightness": 10}})
    message = parse_ws_frame(frame)

    assert message is not None
    assert message.topic == "lamp"
    assert message.payload == {"brightness": 10}
    assert parse_ws_frame(json.dumps({"topic": "bridge/devices", "payload": []})) is None
    assert parse_ws_frame(json.dumps(["lamp"])) is None
    assert parse_ws_frame("{broken") is None


def test_decode_helpers() -> None:
    assert decode_payload(b"  ") == ""
    assert decode_payload("online") == "online"
    assert decode_payload(b'{"a": 1}') == {"a": 1}
    assert parse_availability(True) is True
    assert parse_availability({"state": "OFFLINE"}) is False
    assert parse_availability(3) is None
    assert build_message("", {"a": 1}) is None
