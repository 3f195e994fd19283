"""Unbounded multi-producer, single-consumer channel.

Telemetry snapshots, video frames and relay commands all travel through
one of these. There is no backpressure: a slow or absent consumer lets
the queue grow without limit.

Closing the channel is how producers signal end-of-stream. After close,
recv() drains what is left and then returns None for ever.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

_CLOSED = object()


class ChannelClosed(Exception):
    """send() was called on a closed channel."""


class Channel:
    """asyncio.Queue with an explicit close."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def send(self, item: Any) -> None:
        if self._closed:
            raise ChannelClosed("Channel is closed")
        self._queue.put_nowait(item)

    def send_threadsafe(self, loop: asyncio.AbstractEventLoop, item: Any) -> None:
        """Send from a thread that is not running the loop."""
        loop.call_soon_threadsafe(self._send_if_open, item)

    def _send_if_open(self, item: Any) -> None:
        if not self._closed:
            self._queue.put_nowait(item)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def recv(self) -> Optional[Any]:
        """Next item, or None once the channel is closed and drained."""
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker for any later recv()
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> Any:
        item = await self.recv()
        if item is None:
            raise StopAsyncIteration
        return item
