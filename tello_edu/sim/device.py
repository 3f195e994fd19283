"""Simulated Tello for running the client without hardware.

Answers the control protocol on a UDP port, and can broadcast telemetry
lines and fake video frames to given addresses. Behaviour follows the
real drone closely enough to exercise the client: range-checked
arguments, "out of range" and "error" answers, silence for "rc" and
"emergency", and a late "forced stop" after "stop".
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple, cast

logger = logging.getLogger(__name__)

# command -> (min, max) for commands taking a number
RANGES = {
    "cw": (1, 360),
    "ccw": (1, 360),
    "up": (20, 500),
    "down": (20, 500),
    "left": (20, 500),
    "right": (20, 500),
    "forward": (20, 500),
    "back": (20, 500),
    "speed": (10, 100),
}

SILENT = {"rc", "emergency"}


@dataclass
class DroneState:
    battery: int = 87
    speed: float = 10.0
    flying: bool = False
    streaming: bool = False
    height: int = 0
    yaw: int = 0
    flight_time: int = 0
    serial_number: str = "0TQDG2KEDB4F0Q"
    sdk_version: str = "30"
    snr: int = 90
    received: list = field(default_factory=list)

    def telemetry_line(self) -> str:
        return (
            f"mid:-1;x:-100;y:-100;z:-100;mpry:-1,-1,-1;pitch:0;roll:0;"
            f"yaw:{self.yaw};vgx:0;vgy:0;vgz:0;templ:58;temph:60;tof:{self.height + 10};"
            f"h:{self.height};bat:{self.battery};baro:-57.14;time:{self.flight_time};"
            f"agx:17.00;agy:-4.00;agz:-956.00;\r\n"
        )


class SimulatedTello(asyncio.DatagramProtocol):
    """Control-port responder."""

    def __init__(self, state: Optional[DroneState] = None, forced_stop_delay: float = 0.05):
        self.state = state or DroneState()
        self.forced_stop_delay = forced_stop_delay
        self.transport: Optional[asyncio.DatagramTransport] = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = cast(asyncio.DatagramTransport, transport)

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        command = data.decode("ascii", errors="replace").strip()
        self.state.received.append(command)
        logger.info("Rx %s from %s", command, addr)

        response = self.handle_command(command)
        if response is not None and self.transport:
            self.transport.sendto(response.encode(), addr)
        if command == "stop" and self.transport:
            asyncio.get_running_loop().call_later(
                self.forced_stop_delay, self.transport.sendto, b"forced stop", addr
            )

    def handle_command(self, command: str) -> Optional[str]:
        s = self.state
        name, _, arg = command.partition(" ")

        if name in SILENT:
            if name == "emergency":
                s.flying = False
                s.height = 0
            return None

        if name in RANGES:
            try:
                value = int(arg)
            except ValueError:
                return "error"
            low, high = RANGES[name]
            if not low <= value <= high:
                return "out of range"
            if name == "speed":
                s.speed = float(value)
            elif name == "up":
                s.height += value
            elif name == "down":
                s.height = max(0, s.height - value)
            elif name in ("cw", "ccw"):
                s.yaw = (s.yaw + (value if name == "cw" else -value)) % 360
            return "ok"

        if name == "flip":
            if arg not in ("l", "r", "f", "b"):
                return "error"
            return "ok" if s.battery >= 50 else "error"

        queries = {
            "battery?": lambda: str(s.battery),
            "speed?": lambda: f"{s.speed:.1f}",
            "time?": lambda: f"{s.flight_time}s",
            "wifi?": lambda: str(s.snr),
            "sn?": lambda: s.serial_number,
            "sdk?": lambda: s.sdk_version,
        }
        if command in queries:
            return queries[command]()

        if command == "command":
            return "ok"
        if command == "takeoff":
            s.flying = True
            s.height = 80
            return "ok"
        if command == "land":
            s.flying = False
            s.height = 0
            return "ok"
        if command == "stop":
            return "ok"
        if command == "streamon":
            s.streaming = True
            return "ok"
        if command == "streamoff":
            s.streaming = False
            return "ok"
        return "error"


def chunk_frame(frame: bytes, max_chunk_size: int = 1460) -> list[bytes]:
    """Split a frame the way the drone does: full chunks, then a short one.

    A frame whose length is a multiple of the chunk size gets a one-byte
    trailer, since an empty datagram would not end the frame.
    """
    chunks = [
        frame[i:i + max_chunk_size] for i in range(0, len(frame), max_chunk_size)
    ]
    if not chunks or len(chunks[-1]) == max_chunk_size:
        chunks.append(b"\x00")
    return chunks


async def serve_control(
    host: str = "127.0.0.1", port: int = 8889, state: Optional[DroneState] = None
) -> Tuple[asyncio.DatagramTransport, SimulatedTello]:
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(
        lambda: SimulatedTello(state), local_addr=(host, port)
    )
    logger.info("Simulated Tello listening on %s:%d", host, port)
    return cast(asyncio.DatagramTransport, transport), cast(SimulatedTello, protocol)


async def broadcast_telemetry(
    state: DroneState, target: Tuple[str, int], interval: float = 0.1, count: Optional[int] = None
) -> None:
    """Send telemetry lines to ``target`` until cancelled (or ``count`` sent)."""
    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(
        asyncio.DatagramProtocol, remote_addr=target
    )
    sent = 0
    try:
        while count is None or sent < count:
            transport.sendto(state.telemetry_line().encode())
            sent += 1
            await asyncio.sleep(interval)
    finally:
        transport.close()


async def stream_video(
    frames: list[bytes],
    target: Tuple[str, int],
    max_chunk_size: int = 1460,
    interval: float = 0.0,
) -> None:
    """Send each frame to ``target`` as a series of chunks."""
    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(
        asyncio.DatagramProtocol, remote_addr=target
    )
    try:
        for frame in frames:
            for chunk in chunk_frame(frame, max_chunk_size):
                transport.sendto(chunk)
                # Yield so the receiver's socket buffer does not overflow
                await asyncio.sleep(interval)
    finally:
        transport.close()
