"""Base class for the receive-only UDP listeners.

A listener owns one bound socket and one asyncio task. The task feeds
each datagram to handle() until it is cancelled or handle() raises; in
both cases the socket is closed and the outbound channel is closed, so
the consumer sees end-of-stream. Failures are not retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from tello_edu.comms.channel import Channel
from tello_edu.comms.transport import DatagramQueue, open_receiver

logger = logging.getLogger(__name__)


class Listener:
    """Background receive loop publishing into a Channel."""

    kind = "udp"
    recv_size = 2048

    def __init__(
        self,
        channel: Channel,
        transport: asyncio.DatagramTransport,
        protocol: DatagramQueue,
    ):
        self._channel = channel
        self._transport = transport
        self._protocol = protocol
        self._task: Optional[asyncio.Task] = None
        self._error: Optional[Exception] = None

    @classmethod
    async def listen(cls, channel: Channel, host: str, port: int, **kwargs):
        transport, protocol = await open_receiver(host, port)
        listener = cls(channel, transport, protocol, **kwargs)
        listener._task = asyncio.create_task(listener._run())
        logger.info("[%s] Listening at %s:%d", cls.kind, host, port)
        return listener

    @property
    def channel(self) -> Channel:
        return self._channel

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def error(self) -> Optional[Exception]:
        """The exception that ended the listener, if any."""
        return self._error

    def handle(self, data: bytes) -> None:
        raise NotImplementedError

    async def _run(self) -> None:
        try:
            while True:
                data = await self._protocol.recv(self.recv_size)
                self.handle(data)
        except Exception as e:
            self._error = e
            logger.warning("[%s] Listener terminated: %s", self.kind, e)
        finally:
            self._transport.close()
            self._channel.close()

    async def wait(self) -> None:
        """Wait for the listener to end on its own."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def stop(self) -> None:
        """Cancel the listener. An in-flight datagram is dropped."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[%s] Stopped listening", self.kind)
