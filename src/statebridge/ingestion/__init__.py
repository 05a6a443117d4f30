"""Ingestion layer.

Thin decoders shared by the transport adapters (MQTT, websocket). They turn a
transport topic and payload into a :class:`statebridge.models.RawMessage` and
leave all routing decisions to the router.
"""

__all__: list[str] = []
