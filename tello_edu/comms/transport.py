"""asyncio datagram plumbing shared by the control channel and listeners.

Each socket gets a DatagramQueue protocol that turns datagram callbacks
into awaitable receives. Transport errors are queued alongside data so
the next receive raises them in the task that owns the socket.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Optional, Tuple, Union, cast

from tello_edu.errors import TelloIOError

logger = logging.getLogger(__name__)


class DatagramQueue(asyncio.DatagramProtocol):
    """Protocol that queues incoming datagrams for recv()."""

    def __init__(self):
        self._rx: asyncio.Queue[Union[bytes, Exception]] = asyncio.Queue()
        self.transport: Optional[asyncio.DatagramTransport] = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = cast(asyncio.DatagramTransport, transport)

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self._rx.put_nowait(data)

    def error_received(self, exc: Exception) -> None:
        logger.debug("Transport error: %s", exc)
        self._rx.put_nowait(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc:
            logger.warning("Connection lost: %s", exc)

    async def recv(self, size: int, timeout: Optional[float] = None) -> bytes:
        """Receive one datagram, truncated to ``size`` bytes.

        Raises:
            TelloIOError: socket error or timeout.
        """
        try:
            item = await asyncio.wait_for(self._rx.get(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise TelloIOError(f"No datagram within {timeout}s") from e
        if isinstance(item, Exception):
            raise TelloIOError(str(item)) from item
        return item[:size]

    def drain(self) -> int:
        """Discard queued datagrams; return how many were dropped."""
        dropped = 0
        while not self._rx.empty():
            self._rx.get_nowait()
            dropped += 1
        return dropped


async def open_receiver(
    host: str, port: int
) -> Tuple[asyncio.DatagramTransport, DatagramQueue]:
    """Bind a receive-only UDP endpoint on (host, port)."""
    loop = asyncio.get_running_loop()
    try:
        transport, protocol = await loop.create_datagram_endpoint(
            DatagramQueue, local_addr=(host, port)
        )
    except OSError as e:
        raise TelloIOError(f"Cannot bind {host}:{port}: {e}") from e
    return cast(asyncio.DatagramTransport, transport), cast(DatagramQueue, protocol)


async def open_socket(
    sock: socket.socket,
) -> Tuple[asyncio.DatagramTransport, DatagramQueue]:
    """Wrap an already bound and connected UDP socket."""
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(
        DatagramQueue, sock=sock
    )
    return cast(asyncio.DatagramTransport, transport), cast(DatagramQueue, protocol)
