"""Error taxonomy for the Tello client.

Every failure surfaced by the library derives from TelloError, so callers
can catch the whole family at once or pick out the device-reported
rejections (CommandFailed and its subclasses).
"""

from __future__ import annotations


class TelloError(Exception):
    """Base class for all Tello client errors."""


class NetworkNotJoined(TelloError):
    """An operation needed the drone's network before it was joined."""


class StateConsumed(TelloError):
    """A lifecycle state object was used after it transitioned."""


class TelloIOError(TelloError):
    """A socket operation failed."""


class DecodeResponseError(TelloError):
    """The device sent bytes that are not valid UTF-8."""


class ParseResponseError(TelloError):
    """A telemetry field or query answer could not be parsed."""

    def __init__(self, text: str):
        super().__init__(f"Cannot parse {text!r}")
        self.text = text


class CommandFailed(TelloError):
    """The device rejected a command."""


class NotOkResponse(CommandFailed):
    """The device answered with something other than "ok"."""

    def __init__(self, raw: str):
        super().__init__(f"Not ok: {raw!r}")
        self.raw = raw


class NonSpecificError(CommandFailed):
    """The device answered "error"."""


class OutOfRange(CommandFailed):
    """The device answered "out of range"."""


class GenericError(TelloError):
    """Platform shim failure, e.g. network enumeration."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def error_for_response(raw: str) -> CommandFailed:
    """Map a non-"ok" response to the matching exception."""
    if raw == "error":
        return NonSpecificError(raw)
    if raw == "out of range":
        return OutOfRange(raw)
    return NotOkResponse(raw)
