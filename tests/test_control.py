"""Tests for the control channel request/response protocol."""

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from tello_edu.comms.transport import DatagramQueue
from tello_edu.config import TelloOptions
from tello_edu.errors import (
    DecodeResponseError,
    NonSpecificError,
    NotOkResponse,
    OutOfRange,
    ParseResponseError,
    TelloIOError,
)
from tello_edu.flight.controller import ControlChannel

DRONE = ("192.168.10.1", 8889)


class FakeTransport:
    """Stands in for the control socket; replies are queued by the test."""

    def __init__(self, protocol: DatagramQueue):
        self.protocol = protocol
        self.sent = []
        self.closed = False

    def sendto(self, data, addr=None):
        self.sent.append(data.decode())

    def reply(self, *responses):
        for r in responses:
            data = r if isinstance(r, bytes) else r.encode()
            self.protocol.datagram_received(data, DRONE)

    def close(self):
        self.closed = True


def _channel(options=None):
    protocol = DatagramQueue()
    transport = FakeTransport(protocol)
    return ControlChannel(transport, protocol, options), transport


def test_value_command_ok():
    async def scenario():
        control, drone = _channel()
        drone.reply("ok")
        await control.send_value_expect_ok("speed", 50)
        return drone.sent

    assert asyncio.run(scenario()) == ["speed 50"]


@pytest.mark.parametrize(
    "response, error",
    [("out of range", OutOfRange), ("error", NonSpecificError), ("downvoted", NotOkResponse)],
)
def test_value_command_rejected(response, error):
    async def scenario():
        control, drone = _channel()
        drone.reply(response)
        await control.send_value_expect_ok("speed", 50)

    with pytest.raises(error) as info:
        asyncio.run(scenario())
    if error is NotOkResponse:
        assert info.value.raw == "downvoted"


def test_response_is_trimmed():
    async def scenario():
        control, drone = _channel()
        drone.reply(" 87\r\n")
        return await control.send_raw("battery?")

    assert asyncio.run(scenario()) == "87"


def test_forced_stop_is_skipped_once():
    async def scenario():
        control, drone = _channel()
        drone.reply("forced stop", "ok", "left over")
        response = await control.send_raw("stop")
        return response, drone.protocol._rx.qsize()

    response, remaining = asyncio.run(scenario())
    assert response == "ok"
    assert remaining == 1  # exactly one extra receive


def test_forced_stop_in_place_of_later_response():
    async def scenario():
        control, drone = _channel()
        drone.reply("ok")
        await control.stop()
        # the notification arrives before the next command's answer
        drone.reply("forced stop", "64")
        return await control.battery()

    assert asyncio.run(scenario()) == 64


def test_invalid_utf8_response():
    async def scenario():
        control, drone = _channel()
        drone.reply(b"\xc3\x28")
        await control.send_raw("sn?")

    with pytest.raises(DecodeResponseError):
        asyncio.run(scenario())


def test_response_truncated_to_buffer_size():
    async def scenario():
        control, drone = _channel()
        drone.reply("x" * 300)
        return await control.send_raw("sn?")

    assert len(asyncio.run(scenario())) == 256


def test_parsed_queries():
    async def scenario():
        control, drone = _channel()
        drone.reply("82", "90", "12s", "35.0", "0TQDG2KEDB4F0Q", "30")
        return (
            await control.battery(),
            await control.wifi_signal_to_noise_ratio(),
            await control.flight_time(),
            await control.speed(),
            await control.serial_number(),
            await control.sdk_version(),
            drone.sent,
        )

    *values, sent = asyncio.run(scenario())
    assert values == [82, 90, 12, 35.0, "0TQDG2KEDB4F0Q", "30"]
    assert sent == ["battery?", "wifi?", "time?", "speed?", "sn?", "sdk?"]


def test_parse_failure():
    async def scenario():
        control, drone = _channel()
        drone.reply("error")
        await control.battery()

    with pytest.raises(ParseResponseError):
        asyncio.run(scenario())


def test_fire_and_forget_commands_do_not_receive():
    async def scenario():
        control, drone = _channel()
        drone.reply("ok")
        await control.remote_control(-10, 0, 0, 50)
        await control.emergency_stop()
        return drone.sent, drone.protocol._rx.qsize()

    sent, pending = asyncio.run(scenario())
    assert sent == ["rc -10 0 0 50", "emergency"]
    assert pending == 1


def test_flight_command_strings():
    async def scenario():
        control, drone = _channel()
        drone.reply(*["ok"] * 17)
        await control.take_off()
        await control.turn_clockwise(90)
        await control.turn_counter_clockwise(45)
        await control.move_up(20)
        await control.move_down(30)
        await control.move_left(40)
        await control.move_right(50)
        await control.move_forward(60)
        await control.move_back(70)
        await control.flip_left()
        await control.flip_right()
        await control.flip_forward()
        await control.flip_back()
        await control.set_speed(25)
        await control.start_video()
        await control.stop_video()
        await control.land()
        return drone.sent

    assert asyncio.run(scenario()) == [
        "takeoff", "cw 90", "ccw 45", "up 20", "down 30", "left 40",
        "right 50", "forward 60", "back 70", "flip l", "flip r", "flip f",
        "flip b", "speed 25", "streamon", "streamoff", "land",
    ]


def test_concurrent_callers_are_serialized():
    class SlowDrone(FakeTransport):
        def __init__(self, protocol):
            super().__init__(protocol)
            self.outstanding = 0
            self.overlapped = False

        def sendto(self, data, addr=None):
            super().sendto(data, addr)
            if self.outstanding:
                self.overlapped = True
            self.outstanding += 1
            asyncio.get_running_loop().call_later(0.01, self._answer, data.decode())

        def _answer(self, command):
            self.outstanding -= 1
            self.reply(f"re:{command}")

    async def scenario():
        protocol = DatagramQueue()
        drone = SlowDrone(protocol)
        control = ControlChannel(drone, protocol)
        results = await asyncio.gather(*(control.send_raw(f"c{i}") for i in range(5)))
        return results, drone.overlapped

    results, overlapped = asyncio.run(scenario())
    assert results == [f"re:c{i}" for i in range(5)]
    assert not overlapped


def test_command_timeout():
    async def scenario():
        control, _ = _channel(TelloOptions(command_timeout=0.05))
        await control.take_off()

    with pytest.raises(TelloIOError):
        asyncio.run(scenario())


def test_late_reply_after_timeout_is_discarded():
    class AnsweringDrone(FakeTransport):
        answering = False

        def sendto(self, data, addr=None):
            super().sendto(data, addr)
            if self.answering:
                asyncio.get_running_loop().call_soon(self.reply, "87")

    async def scenario():
        protocol = DatagramQueue()
        drone = AnsweringDrone(protocol)
        control = ControlChannel(drone, protocol, TelloOptions(command_timeout=0.05))
        with pytest.raises(TelloIOError):
            await control.take_off()
        drone.reply("ok")  # the take_off reply, too late
        drone.answering = True
        return await control.battery(), protocol._rx.qsize()

    battery, pending = asyncio.run(scenario())
    assert battery == 87
    assert pending == 0


def test_socket_error_surfaces_as_io_error():
    async def scenario():
        control, drone = _channel()
        drone.protocol.error_received(ConnectionRefusedError("refused"))
        await control.land()

    with pytest.raises(TelloIOError):
        asyncio.run(scenario())


def test_closed_channel():
    async def scenario():
        control, drone = _channel()
        control.close()
        assert drone.closed
        assert not control.is_open
        await control.take_off()

    with pytest.raises(TelloIOError):
        asyncio.run(scenario())
