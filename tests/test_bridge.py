from __future__ import annotations

import asyncio

import pytest

from statebridge.bridge import StateBridge
from statebridge.config import BridgeConfig
from statebridge.exceptions import StateBridgeError
from statebridge.models.catalog import Catalog, DeviceDescriptor, StateSlot
from statebridge.models.message import RawMessage
from statebridge.state.store import MemoryStateStore
from statebridge.state.tracker import CreateCache


def _catalog() -> Catalog:
    return Catalog(
        devices=[
            DeviceDescriptor(
                id="lamp",
                namespace="0x01",
                states=[
                    StateSlot(id="state", write=True),
                    StateSlot(id="availability"),
                ],
            )
        ]
    )


@pytest.mark.asyncio
async def test_fed_messages_are_applied_in_order() -> None:
    store = MemoryStateStore()
    tracker = CreateCache()
    tracker.mark_created("0x01", "state")

    async with StateBridge(_catalog(), store, tracker, config=BridgeConfig(replay_interval=0)) as bridge:
        assert "0x01.state" in store.subscriptions
        bridge.feed(RawMessage(topic="lamp", payload={"state": "ON"}))
        bridge.feed(RawMessage(topic="lamp", payload={"state": "OFF"}))
        await bridge.join()

    assert store.writes == [("0x01.state", "ON"), ("0x01.state", "OFF")]


@pytest.mark.asyncio
async def test_slot_creation_replays_waiting_messages() -> None:
    store = MemoryStateStore()
    tracker = CreateCache()

    async with StateBridge(_catalog(), store, tracker, config=BridgeConfig(replay_interval=0)) as bridge:
        bridge.feed(RawMessage(topic="lamp", payload={"state": "ON"}))
        await bridge.join()
        assert len(bridge.router.queue) == 1

        replayed = await bridge.on_slot_created("0x01", "state")

        assert replayed == 1
        assert len(bridge.router.queue) == 0

    assert store.writes == [("0x01.state", "ON")]


@pytest.mark.asyncio
async def test_disconnect_marks_devices_unavailable() -> None:
    store = MemoryStateStore()

    async with StateBridge(_catalog(), store, CreateCache(), config=BridgeConfig(replay_interval=0)) as bridge:
        bridge.on_transport_disconnect()
        await asyncio.sleep(0.01)

    assert store.writes == [("0x01.availability", False)]


@pytest.mark.asyncio
async def test_exit_drops_queue() -> None:
    store = MemoryStateStore()
    bridge = StateBridge(_catalog(), store, CreateCache(), config=BridgeConfig(replay_interval=0))

    async with bridge:
        bridge.feed(RawMessage(topic="ghost", payload={"state": "ON"}))
        await bridge.join()
        assert len(bridge.router.queue) == 1

    assert len(bridge.router.queue) == 0
    await asyncio.wait_for(bridge.wait_closed(), timeout=1.0)


@pytest.mark.asyncio
async def test_websocket_transport_requires_url() -> None:
    bridge = StateBridge(_catalog(), MemoryStateStore(), CreateCache(), transport="websocket")

    with pytest.raises(StateBridgeError):
        async with bridge:
            pass


class _StallingStore(MemoryStateStore):
    def __init__(self) -> None:
        super().__init__()
        self.write_started = asyncio.Event()
        self.write_cancelled = False

    async def write(self, key: str, value: object) -> None:
        self.write_started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.write_cancelled = True
            raise
        await super().write(key, value)


@pytest.mark.asyncio
async def test_exit_waits_for_cancelled_disconnect_handling() -> None:
    store = _StallingStore()

    async with StateBridge(_catalog(), store, CreateCache(), config=BridgeConfig(replay_interval=0)) as bridge:
        bridge.on_transport_disconnect()
        await asyncio.wait_for(store.write_started.wait(), timeout=1.0)

    assert store.write_cancelled
    assert store.writes == []
