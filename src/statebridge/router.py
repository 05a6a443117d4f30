"""Message routing from decoded transport messages onto state slots.

Owns:
- resolving a message topic to a catalog device (groups first)
- dispatching payload properties to matching slots
- deferring what cannot be applied yet into the retry queue
- replaying the retry queue, periodically or on demand
- the lifecycle hooks used on startup, disconnect and shutdown
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Mapping
from typing import Any

from statebridge._redact import render_for_log
from statebridge.config import BridgeConfig
from statebridge.models.catalog import Catalog, DeviceDescriptor, StateSlot
from statebridge.models.message import RawMessage
from statebridge.state.retry import RetryQueue
from statebridge.state.store import StateStore
from statebridge.state.timers import PendingTimerSet
from statebridge.state.tracker import CreationTracker, query_created

_logger = logging.getLogger(__name__)


class MessageRouter:
    """Applies inbound messages to the backing store.

    Nothing raised while applying a message escapes :meth:`handle_incoming`:
    unknown devices, slots that are not created yet and failed writes all
    re-queue the message for a later :meth:`drain_and_replay`.
    """

    def __init__(
        self,
        catalog: Catalog,
        store: StateStore,
        tracker: CreationTracker,
        *,
        config: BridgeConfig | None = None,
        queue: RetryQueue | None = None,
        timers: PendingTimerSet | None = None,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._tracker = tracker
        self._config = config or BridgeConfig()
        self._queue = queue if queue is not None else RetryQueue()
        self._timers = timers if timers is not None else PendingTimerSet(store)
        self._replay_task: asyncio.Task[None] | None = None

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def queue(self) -> RetryQueue:
        return self._queue

    @property
    def timers(self) -> PendingTimerSet:
        return self._timers

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def handle_incoming(self, message: RawMessage) -> None:
        """Entry point for every decoded transport message. Never raises."""
        try:
            await self.resolve_and_dispatch(message)
        except Exception:
            _logger.error("Unexpected failure handling message for %s", message.topic, exc_info=True)

    async def resolve_and_dispatch(self, message: RawMessage) -> None:
        if message.is_empty:
            return

        device = self._catalog.find(message.topic)
        if device is None:
            self._queue.enqueue(message)
            _logger.debug("Device %s not found, queued message for replay", message.topic)
            return

        await self.apply_to_device(message, device)

    async def apply_to_device(self, message: RawMessage, device: DeviceDescriptor) -> None:
        if self._config.is_debug_device(device.id, device.namespace):
            _logger.warning(
                "--->>> incoming -> %s states: %s",
                device.key_prefix,
                render_for_log({"topic": message.topic, "payload": message.payload}),
            )

        for prop, value in message.payload.items():
            for slot in device.matching_slots(prop):
                key = device.slot_key(slot)

                if not await self._slot_created(device, slot):
                    self._queue.enqueue(message)
                    _logger.debug("State %s is not yet created, queued message for replay", key)
                    continue

                try:
                    await self._write_slot(key, slot, message.payload, value)
                except Exception as exc:
                    self._queue.enqueue(message)
                    _logger.error("Can not set %s, queued message for replay: %s", key, exc)
                    _logger.debug("Write failure for %s", key, exc_info=True)

    async def _slot_created(self, device: DeviceDescriptor, slot: StateSlot) -> bool:
        try:
            return await query_created(self._tracker, device.key_prefix, slot.id)
        except Exception:
            _logger.debug("Creation lookup failed for %s.%s", device.key_prefix, slot.id, exc_info=True)
            return False

    async def _write_slot(self, key: str, slot: StateSlot, payload: Mapping[str, Any], value: Any) -> None:
        resolved = slot.resolve_value(payload, value)
        if slot.is_event:
            await self._timers.write_with_expiry(
                key,
                resolved,
                self._config.pulse_timeout,
                revert=slot.complement,
            )
        else:
            await self._timers.write_if_changed(key, resolved)

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    async def drain_and_replay(self) -> int:
        """Replay every queued message once, in enqueue order.

        Returns the number of messages replayed. Messages that fail again
        are back in the queue for the next cycle.
        """
        return await self._queue.drain(self.handle_incoming)

    def start_replay_loop(self, interval: float) -> None:
        """Drain the retry queue every ``interval`` seconds until stopped."""
        if self._replay_task is not None and not self._replay_task.done():
            return
        self._replay_task = asyncio.get_running_loop().create_task(self._replay_loop(interval))

    async def _replay_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.drain_and_replay()
            except Exception:
                _logger.debug("Replay cycle failed", exc_info=True)

    async def stop_replay_loop(self) -> None:
        task = self._replay_task
        self._replay_task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------

    async def subscribe_writable_slots(self) -> None:
        """Reset subscriptions to the writable slots plus the control slots."""
        await self._store.unsubscribe("*")
        count = 0
        for device in self._catalog.iter_all():
            for slot in device.states:
                if slot.write:
                    await self._store.subscribe(device.slot_key(slot))
                    count += 1
        for control_slot in self._config.control_slots:
            await self._store.subscribe(control_slot)
        _logger.debug("Subscribed %d writable slots", count)

    async def replace_catalog(self, catalog: Catalog) -> None:
        """Swap in a reloaded catalog and refresh subscriptions."""
        self._catalog = catalog
        await self.subscribe_writable_slots()

    async def mark_all_unavailable(self) -> None:
        """Write ``False`` to the availability slot of every device (not groups)."""
        slot_id = self._config.availability_slot
        for device in self._catalog.devices:
            slot = device.get_slot(slot_id)
            if slot is None:
                continue
            key = device.slot_key(slot)
            try:
                await self._timers.write_if_changed(key, False)
            except Exception as exc:
                _logger.error("Can not mark %s unavailable: %s", key, exc)

    def cancel_all_timers(self) -> int:
        return self._timers.cancel_all()

    async def close(self) -> None:
        """Tear down: stop replaying, cancel pending reverts, drop queued messages."""
        await self.stop_replay_loop()
        self.cancel_all_timers()
        dropped = len(self._queue)
        self._queue.clear()
        if dropped:
            _logger.debug("Dropped %d queued messages on close", dropped)
