"""Telemetry line parser and background listener.

Once in command mode the drone broadcasts one ASCII line per datagram
to UDP port 8890, e.g.::

    pitch:0;roll:0;yaw:-3;vgx:0;vgy:0;vgz:1;templ:58;temph:60;tof:71;
    h:50;bat:82;baro:-57.14;time:14;agx:17.00;agy:-4.00;agz:-956.00;

Each line becomes one independent TelemetrySnapshot.
"""

from __future__ import annotations

import re
from typing import Callable, Optional

from tello_edu.comms.channel import Channel
from tello_edu.comms.listener import Listener
from tello_edu.config import TelloOptions
from tello_edu.data.models import TelemetrySnapshot, Vector3
from tello_edu.errors import DecodeResponseError, ParseResponseError


_INTEGER = re.compile(r"[+-]?[0-9]+")
_FLOAT = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")


def _bounded(low: int, high: int) -> Callable[[str], int]:
    """Integer parser limited to the field's width on the drone."""

    def parse(value: str) -> int:
        if not _INTEGER.fullmatch(value):
            raise ValueError(f"not an integer: {value!r}")
        n = int(value)
        if not low <= n <= high:
            raise ValueError(f"{n} outside {low}..{high}")
        return n

    return parse


def _float(value: str) -> float:
    if not _FLOAT.fullmatch(value):
        raise ValueError(f"not a number: {value!r}")
    return float(value)


_i16 = _bounded(-32768, 32767)
_u16 = _bounded(0, 65535)
_percent = _bounded(0, 100)


# key -> (snapshot field, parser); vector components are "velocity.x" etc.
TELEMETRY_FIELDS: dict[str, tuple[str, Callable[[str], object]]] = {
    "roll": ("roll", _i16),
    "pitch": ("pitch", _i16),
    "yaw": ("yaw", _i16),
    "h": ("height", _i16),
    "baro": ("barometer", _float),
    "bat": ("battery", _percent),
    "tof": ("time_of_flight", _u16),
    "time": ("motor_time", _u16),
    "templ": ("temperature_low", _i16),
    "temph": ("temperature_high", _i16),
    "vgx": ("velocity.x", _i16),
    "vgy": ("velocity.y", _i16),
    "vgz": ("velocity.z", _i16),
    "agx": ("acceleration.x", _float),
    "agy": ("acceleration.y", _float),
    "agz": ("acceleration.z", _float),
}


def parse_telemetry(line: str) -> TelemetrySnapshot:
    """Parse one telemetry line.

    Fields are ``key:value`` pairs separated by ``;``. Unknown keys are
    ignored; fields missing from the line keep their zero default.

    Raises:
        ParseResponseError: a field without ``:`` or an unparsable
            value. No partial snapshot is returned.
    """
    values: dict = {}
    velocity = {"x": 0, "y": 0, "z": 0}
    acceleration = {"x": 0.0, "y": 0.0, "z": 0.0}

    for f in line.split(";"):
        if not f:
            continue
        key, sep, value = f.partition(":")
        if not sep:
            raise ParseResponseError(f)

        target = TELEMETRY_FIELDS.get(key)
        if target is None:
            continue
        name, parse = target
        try:
            parsed = parse(value)
        except ValueError as e:
            raise ParseResponseError(value) from e

        if name.startswith("velocity."):
            velocity[name[-1]] = parsed
        elif name.startswith("acceleration."):
            acceleration[name[-1]] = parsed
        else:
            values[name] = parsed

    return TelemetrySnapshot(
        velocity=Vector3(**velocity),
        acceleration=Vector3(**acceleration),
        **values,
    )


def decode_line(data: bytes) -> str:
    try:
        return data.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise DecodeResponseError(f"Invalid UTF-8 in telemetry: {data!r}") from e


class TelemetryListener(Listener):
    """Publishes one TelemetrySnapshot per datagram on the telemetry port.

    A malformed line terminates the listener rather than being skipped.
    """

    kind = "telemetry"
    recv_size = 1024

    @classmethod
    async def start(
        cls, channel: Channel, options: Optional[TelloOptions] = None
    ) -> TelemetryListener:
        options = options or TelloOptions()
        return await cls.listen(channel, options.listen_host, options.telemetry_port)

    def handle(self, data: bytes) -> None:
        self._channel.send(parse_telemetry(decode_line(data)))
