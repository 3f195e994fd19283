from tello_edu.config import TelloOptions
from tello_edu.data.models import (
    VIDEO_HEIGHT,
    VIDEO_WIDTH,
    Command,
    EmergencyStop,
    FlipBack,
    FlipForward,
    FlipLeft,
    FlipRight,
    Land,
    RemoteControl,
    StopAndHover,
    TakeOff,
    TelemetrySnapshot,
    Vector3,
    VideoFrame,
)
from tello_edu.errors import (
    CommandFailed,
    DecodeResponseError,
    GenericError,
    NetworkNotJoined,
    NonSpecificError,
    NotOkResponse,
    OutOfRange,
    ParseResponseError,
    StateConsumed,
    TelloError,
    TelloIOError,
)
from tello_edu.flight.drone import Connected, NetworkJoined, Tello

__all__ = [
    "Tello", "NetworkJoined", "Connected", "TelloOptions",
    "TelemetrySnapshot", "Vector3", "VideoFrame", "VIDEO_WIDTH", "VIDEO_HEIGHT",
    "Command", "TakeOff", "Land", "StopAndHover", "EmergencyStop",
    "RemoteControl", "FlipLeft", "FlipRight", "FlipForward", "FlipBack",
    "TelloError", "NetworkNotJoined", "StateConsumed", "TelloIOError",
    "DecodeResponseError", "ParseResponseError", "CommandFailed",
    "NotOkResponse", "NonSpecificError", "OutOfRange", "GenericError",
]
