"""Tests for the telemetry parser and listener."""

import asyncio
import socket
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from tello_edu.comms.channel import Channel
from tello_edu.config import TelloOptions
from tello_edu.data.models import TelemetrySnapshot
from tello_edu.errors import DecodeResponseError, ParseResponseError
from tello_edu.flight.telemetry import TelemetryListener, decode_line, parse_telemetry

SAMPLE = (
    "roll:0;pitch:0;yaw:-3;h:50;bat:82;baro:-57.14;time:14;templ:58;temph:60;"
    "tof:71;vgx:0;vgy:0;vgz:1;agx:17.00;agy:-4.00;agz:-956.00;"
)


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_parse_sample_line():
    t = parse_telemetry(SAMPLE)
    assert t.battery == 82
    assert t.height == 50
    assert t.yaw == -3
    assert t.barometer == pytest.approx(-57.14)
    assert t.acceleration.z == -956.0
    assert t.velocity.z == 1
    assert t.motor_time == 14
    assert t.time_of_flight == 71
    assert (t.temperature_low, t.temperature_high) == (58, 60)


def test_unknown_keys_ignored():
    line = "mid:-1;x:-100;mpry:-1,-1,-1;bat:40;"
    t = parse_telemetry(line)
    assert t.battery == 40


def test_missing_fields_default_to_zero():
    t = parse_telemetry("bat:55")
    assert t == TelemetrySnapshot(battery=55)
    assert t.acceleration.x == 0.0


def test_each_line_is_independent():
    first = parse_telemetry("bat:55;h:30")
    second = parse_telemetry("h:10")
    assert first.battery == 55
    assert second.battery == 0
    assert second.height == 10


def test_field_without_separator_fails_whole_line():
    with pytest.raises(ParseResponseError):
        parse_telemetry("bat:82;garbage;h:50")


def test_unparsable_value_fails():
    with pytest.raises(ParseResponseError):
        parse_telemetry("h:fifty")
    with pytest.raises(ParseResponseError):
        parse_telemetry("yaw:1.5")


def test_negative_unsigned_value_fails():
    with pytest.raises(ParseResponseError):
        parse_telemetry("bat:-1")



@pytest.mark.parametrize(
    "line",
    ["bat:300", "bat:101", "time:70000", "tof:65536", "yaw:40000", "vgx:-32769"],
)
def test_value_outside_field_width_fails(line):
    with pytest.raises(ParseResponseError):
        parse_telemetry(line)


@pytest.mark.parametrize("line", ["h:1_0", "h: 50", "baro:1_0.5", "agz: -956.00", "bat:"])
def test_loosely_formatted_numbers_fail(line):
    with pytest.raises(ParseResponseError):
        parse_telemetry(line)


def test_field_width_limits_accepted():
    t = parse_telemetry("bat:100;time:65535;yaw:-32768;vgx:32767;baro:+1.5e2")
    assert (t.battery, t.motor_time, t.yaw, t.velocity.x) == (100, 65535, -32768, 32767)
    assert t.barometer == 150.0


def test_decode_line_strips_whitespace():
    assert decode_line(b"bat:82;\r\n") == "bat:82;"


def test_decode_line_rejects_invalid_utf8():
    with pytest.raises(DecodeResponseError):
        decode_line(b"\xff\xfe")


def test_listener_publishes_snapshots():
    async def scenario():
        options = TelloOptions(listen_host="127.0.0.1", telemetry_port=_free_port())
        channel = Channel()
        listener = await TelemetryListener.start(channel, options)
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.sendto(SAMPLE.encode() + b"\r\n", ("127.0.0.1", options.telemetry_port))
            s.sendto(b"bat:12;", ("127.0.0.1", options.telemetry_port))
            first = await asyncio.wait_for(channel.recv(), 2.0)
            second = await asyncio.wait_for(channel.recv(), 2.0)
        await listener.stop()
        return first, second, channel

    first, second, channel = asyncio.run(scenario())
    assert first.battery == 82
    assert second.battery == 12
    assert channel.closed


def test_malformed_line_terminates_listener():
    async def scenario():
        options = TelloOptions(listen_host="127.0.0.1", telemetry_port=_free_port())
        channel = Channel()
        listener = await TelemetryListener.start(channel, options)
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.sendto(b"bat:82;nonsense", ("127.0.0.1", options.telemetry_port))
            end = await asyncio.wait_for(channel.recv(), 2.0)
        await asyncio.wait_for(listener.wait(), 2.0)
        return end, listener

    end, listener = asyncio.run(scenario())
    assert end is None  # end-of-stream, no partial snapshot
    assert not listener.running
    assert isinstance(listener.error, ParseResponseError)


def test_stop_is_idempotent():
    async def scenario():
        options = TelloOptions(listen_host="127.0.0.1", telemetry_port=_free_port())
        listener = await TelemetryListener.start(Channel(), options)
        await listener.stop()
        await listener.stop()
        return listener

    listener = asyncio.run(scenario())
    assert not listener.running
    assert listener.error is None
