"""Adapter glue: transport runtime, ingestion task and router lifecycle."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Literal

import aiohttp

from statebridge._mqtt import MqttEndpoint, MqttRuntime
from statebridge._websocket import WebsocketRuntime
from statebridge.config import BridgeConfig
from statebridge.exceptions import StateBridgeError
from statebridge.models.catalog import Catalog
from statebridge.models.message import RawMessage
from statebridge.router import MessageRouter
from statebridge.state.store import StateStore
from statebridge.state.tracker import CreateCache, CreationTracker

_logger = logging.getLogger(__name__)

TransportKind = Literal["mqtt", "websocket"]


class StateBridge:
    """Runs a :class:`MessageRouter` for one adapter session.

    Usage::

        async with StateBridge(catalog, store, tracker, transport="mqtt") as bridge:
            await bridge.wait_closed()

    Inbound messages are processed one at a time, in arrival order, by a
    single ingestion task. Transport disconnects mark every device
    unavailable; leaving the context cancels pending reverts and drops the
    retry queue.
    """

    def __init__(
        self,
        catalog: Catalog,
        store: StateStore,
        tracker: CreationTracker,
        *,
        config: BridgeConfig | None = None,
        transport: TransportKind | None = None,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config or BridgeConfig()
        self._tracker = tracker
        self._router = MessageRouter(catalog, store, tracker, config=self._config)
        self._transport_kind = transport
        self._http_session = http_session
        self._loop: asyncio.AbstractEventLoop | None = None
        self._mqtt_runtime: MqttRuntime | None = None
        self._ws_runtime: WebsocketRuntime | None = None
        self._inbox: asyncio.Queue[RawMessage] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._closed = asyncio.Event()

    @property
    def router(self) -> MessageRouter:
        return self._router

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> StateBridge:
        self._loop = asyncio.get_running_loop()
        self._closed.clear()
        await self._router.subscribe_writable_slots()
        self._consumer = self._loop.create_task(self._consume())
        if self._config.replay_interval > 0:
            self._router.start_replay_loop(self._config.replay_interval)
        try:
            await self._start_transport()
        except BaseException:
            await self._shutdown()
            raise
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._shutdown()

    async def _shutdown(self) -> None:
        await self._stop_transport()
        consumer = self._consumer
        self._consumer = None
        if consumer is not None:
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer
        background = list(self._background)
        for task in background:
            task.cancel()
        for result in await asyncio.gather(*background, return_exceptions=True):
            if isinstance(result, Exception):
                _logger.debug("Background task failed during shutdown", exc_info=result)
        await self._router.close()
        self._loop = None
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _start_transport(self) -> None:
        if self._transport_kind is None:
            return
        if self._transport_kind == "websocket":
            if not self._config.websocket_url:
                raise StateBridgeError("websocket transport requires config.websocket_url")
            runtime = WebsocketRuntime(
                self._config.websocket_url,
                on_message=self.feed,
                on_disconnect=self.on_transport_disconnect,
                session=self._http_session,
                availability_property=self._config.availability_slot,
            )
            await runtime.start()
            self._ws_runtime = runtime
            return

        loop = self._require_loop()
        mqtt_runtime = MqttRuntime(
            loop=loop,
            on_message=self.feed,
            on_disconnect=self.on_transport_disconnect,
            keepalive=self._config.mqtt_keepalive,
            availability_property=self._config.availability_slot,
        )
        endpoint = MqttEndpoint(
            host=self._config.mqtt_host,
            port=self._config.mqtt_port,
            base_topic=self._config.mqtt_base_topic,
        )
        await loop.run_in_executor(None, mqtt_runtime.start, endpoint)
        self._mqtt_runtime = mqtt_runtime

    async def _stop_transport(self) -> None:
        ws_runtime = self._ws_runtime
        self._ws_runtime = None
        if ws_runtime is not None:
            try:
                await ws_runtime.stop()
            except Exception:
                _logger.debug("Websocket runtime stop failed", exc_info=True)

        mqtt_runtime = self._mqtt_runtime
        self._mqtt_runtime = None
        if mqtt_runtime is not None:
            try:
                await self._require_loop().run_in_executor(None, mqtt_runtime.stop)
            except Exception:
                _logger.debug("MQTT runtime stop failed", exc_info=True)

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise StateBridgeError("Bridge not started. Use 'async with StateBridge(...) as bridge:'")
        return self._loop

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def feed(self, message: RawMessage) -> None:
        """Hand a decoded message to the ingestion task (loop thread only)."""
        self._inbox.put_nowait(message)

    async def join(self) -> None:
        """Wait until every fed message has been processed."""
        await self._inbox.join()

    async def _consume(self) -> None:
        while True:
            message = await self._inbox.get()
            try:
                await self._router.handle_incoming(message)
            finally:
                self._inbox.task_done()

    def on_transport_disconnect(self) -> None:
        if self._loop is None:
            return
        _logger.debug("Transport disconnected, marking devices unavailable")
        self._spawn(self._router.mark_all_unavailable())

    async def on_slot_created(self, namespace: str, slot_id: str) -> int:
        """Record a newly created slot and replay what was waiting for it."""
        if isinstance(self._tracker, CreateCache):
            self._tracker.mark_created(namespace, slot_id)
        return await self._router.drain_and_replay()

    async def reload_catalog(self, catalog: Catalog) -> None:
        await self._router.replace_catalog(catalog)

    def _spawn(self, coro: Any) -> None:
        task = self._require_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
