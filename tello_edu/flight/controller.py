"""Control channel: the Tello SDK command/response protocol.

Commands are ASCII strings sent to UDP port 8889; the drone answers each
with one short ASCII datagram ("ok", a number, or an error text). There
are no request ids, so only one exchange may be in flight at a time and
a lock serializes callers.

The drone also emits "forced stop" some time after a "stop" command.
That notification can arrive in place of a later command's response, so
send_raw() skips one such datagram and returns the next.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Callable, Optional, TypeVar

from tello_edu.comms.transport import DatagramQueue, open_socket
from tello_edu.config import TelloOptions
from tello_edu.errors import (
    DecodeResponseError,
    ParseResponseError,
    TelloIOError,
    error_for_response,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

FORCED_STOP = "forced stop"


def _seconds(text: str) -> int:
    # "time?" answers e.g. "12s" on some firmware
    return int(text[:-1] if text.endswith("s") else text)


class ControlChannel:
    """Typed flight commands and queries over the control socket."""

    def __init__(
        self,
        transport: asyncio.DatagramTransport,
        protocol: DatagramQueue,
        options: Optional[TelloOptions] = None,
    ):
        self._transport = transport
        self._protocol = protocol
        self._options = options or TelloOptions()
        self._lock = asyncio.Lock()
        # Set when a receive fails; its late reply may still be queued
        self._stale = False

    @classmethod
    async def open(
        cls, sock: socket.socket, options: Optional[TelloOptions] = None
    ) -> ControlChannel:
        """Take ownership of a bound, associated UDP socket."""
        transport, protocol = await open_socket(sock)
        return cls(transport, protocol, options)

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    @property
    def is_open(self) -> bool:
        return self._transport is not None

    # ── Primitives ────────────────────────────────────────────

    def _send(self, command: str) -> None:
        if self._transport is None:
            raise TelloIOError("Control channel is closed")
        if self._stale:
            dropped = self._protocol.drain()
            if dropped:
                logger.warning("Dropped %d stale response(s)", dropped)
            self._stale = False
        logger.debug("SEND %s", command)
        self._transport.sendto(command.encode("ascii"))

    async def _receive(self) -> str:
        try:
            data = await self._protocol.recv(
                self._options.response_size, timeout=self._options.command_timeout
            )
        except TelloIOError:
            self._stale = True
            raise
        try:
            response = data.decode("utf-8").strip()
        except UnicodeDecodeError as e:
            raise DecodeResponseError(f"Invalid UTF-8 response: {data!r}") from e
        logger.debug("RECEIVED %s", response)
        return response

    async def send_raw(self, command: str) -> str:
        """Send a command and return the drone's trimmed response."""
        async with self._lock:
            self._send(command)
            response = await self._receive()
            if response == FORCED_STOP:
                # Deferred notification from an earlier "stop"
                logger.debug("Skipping stray %r", FORCED_STOP)
                response = await self._receive()
            return response

    async def send_expect_ok(self, command: str) -> None:
        """Send a command that the drone acknowledges with "ok".

        Raises:
            NonSpecificError: response was "error".
            OutOfRange: response was "out of range".
            NotOkResponse: any other response.
        """
        response = await self.send_raw(command)
        if response != "ok":
            raise error_for_response(response)

    async def send_value_expect_ok(self, command: str, value) -> None:
        await self.send_expect_ok(f"{command} {value}")

    async def send_expect_nothing(self, command: str) -> None:
        """Send a command the drone never answers."""
        async with self._lock:
            self._send(command)

    async def send_expect_parsed(self, command: str, parse: Callable[[str], T]) -> T:
        response = await self.send_raw(command)
        try:
            return parse(response)
        except ValueError as e:
            raise ParseResponseError(response) from e

    # ── Flight Commands ───────────────────────────────────────

    async def take_off(self) -> None:
        await self.send_expect_ok("takeoff")

    async def land(self) -> None:
        await self.send_expect_ok("land")

    async def stop(self) -> None:
        """Stop and hover in place."""
        await self.send_expect_ok("stop")

    async def emergency_stop(self) -> None:
        """Stop all motors immediately. The drone drops like a stone."""
        await self.send_expect_nothing("emergency")

    async def turn_clockwise(self, degrees: int) -> None:
        """Rotate 1-360 degrees clockwise."""
        await self.send_value_expect_ok("cw", degrees)

    async def turn_counter_clockwise(self, degrees: int) -> None:
        """Rotate 1-360 degrees counter-clockwise."""
        await self.send_value_expect_ok("ccw", degrees)

    # Moves take a distance of 20-500 cm

    async def move_up(self, distance: int) -> None:
        await self.send_value_expect_ok("up", distance)

    async def move_down(self, distance: int) -> None:
        await self.send_value_expect_ok("down", distance)

    async def move_left(self, distance: int) -> None:
        await self.send_value_expect_ok("left", distance)

    async def move_right(self, distance: int) -> None:
        await self.send_value_expect_ok("right", distance)

    async def move_forward(self, distance: int) -> None:
        await self.send_value_expect_ok("forward", distance)

    async def move_back(self, distance: int) -> None:
        await self.send_value_expect_ok("back", distance)

    # Flips are refused by the drone when the battery is low

    async def flip_left(self) -> None:
        await self.send_value_expect_ok("flip", "l")

    async def flip_right(self) -> None:
        await self.send_value_expect_ok("flip", "r")

    async def flip_forward(self) -> None:
        await self.send_value_expect_ok("flip", "f")

    async def flip_back(self) -> None:
        await self.send_value_expect_ok("flip", "b")

    async def set_speed(self, speed: int) -> None:
        """Set forward speed, 10-100 cm/s."""
        await self.send_value_expect_ok("speed", speed)

    async def start_video(self) -> None:
        await self.send_expect_ok("streamon")

    async def stop_video(self) -> None:
        await self.send_expect_ok("streamoff")

    async def remote_control(
        self, left_right: int, forward_back: int, up_down: int, yaw: int
    ) -> None:
        """Set virtual stick positions, each -100..100. Not acknowledged."""
        await self.send_expect_nothing(
            f"rc {left_right} {forward_back} {up_down} {yaw}"
        )

    # ── Queries ───────────────────────────────────────────────

    async def battery(self) -> int:
        """Remaining battery, percent."""
        return await self.send_expect_parsed("battery?", int)

    async def wifi_signal_to_noise_ratio(self) -> int:
        return await self.send_expect_parsed("wifi?", int)

    async def flight_time(self) -> int:
        """Motor-on time in seconds."""
        return await self.send_expect_parsed("time?", _seconds)

    async def speed(self) -> float:
        """Current speed setting, cm/s."""
        return await self.send_expect_parsed("speed?", float)

    async def serial_number(self) -> str:
        return await self.send_expect_parsed("sn?", str)

    async def sdk_version(self) -> str:
        return await self.send_expect_parsed("sdk?", str)
