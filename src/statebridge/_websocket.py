"""Internal websocket transport over aiohttp.

The bridge frontend pushes JSON frames shaped ``{"topic": ..., "payload": ...}``
where ``topic`` is already relative to the base topic.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from statebridge.exceptions import TransportError
from statebridge.ingestion.decode import build_message
from statebridge.models.message import RawMessage

_logger = logging.getLogger(__name__)


def parse_ws_frame(text: str, *, availability_property: str = "availability") -> RawMessage | None:
    """Turn one websocket text frame into a router message."""
    try:
        frame: Any = json.loads(text)
    except ValueError:
        _logger.debug("Ignoring non-JSON websocket frame: %s", text[:64])
        return None
    if not isinstance(frame, dict):
        return None
    topic = frame.get("topic")
    if not isinstance(topic, str):
        return None
    return build_message(topic, frame.get("payload"), availability_property=availability_property)


class WebsocketRuntime:
    """Reads frames from a websocket endpoint and hands messages to a callback."""

    def __init__(
        self,
        url: str,
        *,
        on_message: Callable[[RawMessage], None],
        on_disconnect: Callable[[], None] | None = None,
        session: aiohttp.ClientSession | None = None,
        availability_property: str = "availability",
    ) -> None:
        self._url = url
        self._on_message = on_message
        self._on_disconnect = on_disconnect
        self._external_session = session is not None
        self._http_session = session
        self._availability_property = availability_property
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Connect and start reading frames in the background."""
        await self.stop()
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        try:
            self._ws = await self._http_session.ws_connect(self._url, heartbeat=30.0)
        except (aiohttp.ClientError, TimeoutError) as exc:
            await self._close_owned_session()
            raise TransportError(f"Websocket connect to {self._url} failed: {exc}", endpoint=self._url) from exc
        except BaseException:
            await self._close_owned_session()
            raise
        _logger.debug("Websocket connected url=%s", self._url)
        self._task = asyncio.get_running_loop().create_task(self._read_loop(self._ws))

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    message = parse_ws_frame(msg.data, availability_property=self._availability_property)
                    if message is not None:
                        self._on_message(message)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    _logger.debug("Websocket error frame: %s", ws.exception())
                    break
        finally:
            _logger.debug("Websocket closed url=%s", self._url)
            if self._on_disconnect is not None and self._ws is ws:
                self._on_disconnect()

    async def stop(self) -> None:
        task = self._task
        ws = self._ws
        self._task = None
        self._ws = None
        if ws is not None:
            await ws.close()
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self._close_owned_session()

    async def _close_owned_session(self) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
