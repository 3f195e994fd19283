"""Data models passed between the listeners, the relay and callers.

Snapshots and frames are frozen: each one is produced once by a listener
and handed to a consumer through a channel, never mutated in between.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Union

VIDEO_WIDTH = 960
VIDEO_HEIGHT = 720


@dataclass(frozen=True)
class Vector3:
    x: Union[int, float] = 0
    y: Union[int, float] = 0
    z: Union[int, float] = 0


@dataclass(frozen=True)
class TelemetrySnapshot:
    """One telemetry line from the drone."""

    # Attitude
    roll: int = 0              # degrees
    pitch: int = 0             # degrees
    yaw: int = 0               # degrees

    height: int = 0            # cm
    barometer: float = 0.0
    battery: int = 0           # 0-100
    time_of_flight: int = 0
    motor_time: int = 0

    temperature_low: int = 0
    temperature_high: int = 0

    velocity: Vector3 = field(default_factory=Vector3)
    acceleration: Vector3 = field(
        default_factory=lambda: Vector3(0.0, 0.0, 0.0)
    )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class VideoFrame:
    """One encoded H.264 picture, reassembled from UDP chunks."""

    data: bytes = b""

    def __len__(self) -> int:
        return len(self.data)


# ── Commands ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Command:
    """Base for commands fed to a CommandRelay."""

    name = ""

    def to_dict(self) -> dict:
        d = asdict(self)
        d["command"] = self.name
        return d


@dataclass(frozen=True)
class TakeOff(Command):
    name = "takeoff"


@dataclass(frozen=True)
class Land(Command):
    name = "land"


@dataclass(frozen=True)
class StopAndHover(Command):
    name = "stop"


@dataclass(frozen=True)
class EmergencyStop(Command):
    name = "emergency"


@dataclass(frozen=True)
class RemoteControl(Command):
    """Stick positions, each -100..100."""

    name = "rc"

    left_right: int = 0
    forward_back: int = 0
    up_down: int = 0
    yaw: int = 0


@dataclass(frozen=True)
class FlipLeft(Command):
    name = "flip_left"


@dataclass(frozen=True)
class FlipRight(Command):
    name = "flip_right"


@dataclass(frozen=True)
class FlipForward(Command):
    name = "flip_forward"


@dataclass(frozen=True)
class FlipBack(Command):
    name = "flip_back"


COMMANDS = {
    cls.name: cls
    for cls in (
        TakeOff, Land, StopAndHover, EmergencyStop, RemoteControl,
        FlipLeft, FlipRight, FlipForward, FlipBack,
    )
}


def command_from_dict(data: dict) -> Command:
    """Build a Command from e.g. {"command": "rc", "yaw": 50}.

    Raises:
        ValueError: not a dict, unknown command name, or a stick value
            that is not an integer.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Command must be an object, got {type(data).__name__}")
    name = data.get("command", "")
    cls = COMMANDS.get(name) if isinstance(name, str) else None
    if cls is None:
        raise ValueError(f"Unknown command: {name!r}")
    if cls is RemoteControl:
        return RemoteControl(
            left_right=_stick(data, "left_right"),
            forward_back=_stick(data, "forward_back"),
            up_down=_stick(data, "up_down"),
            yaw=_stick(data, "yaw"),
        )
    return cls()


def _stick(data: dict, key: str) -> int:
    value = data.get(key, 0)
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Bad {key}: {value!r}") from e
