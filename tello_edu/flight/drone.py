"""Connection lifecycle for a Tello drone.

The drone moves through three states, each its own class::

    Tello (no network) --wait_for_wifi/assume_wifi--> NetworkJoined
    NetworkJoined --connect--> Connected --disconnect--> NetworkJoined

Only Connected owns a control socket, so flight commands are unreachable
before connect() succeeds. A transition consumes the state it started
from: using the old object afterwards raises StateConsumed.

Typical use::

    drone = await Tello().wait_for_wifi()
    drone = await drone.connect()
    await drone.control.take_off()
    await drone.control.turn_clockwise(360)
    await drone.control.land()
    await drone.disconnect()
"""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Awaitable, Callable, Optional

from tello_edu.comms.channel import Channel
from tello_edu.comms.relay import CommandRelay
from tello_edu.config import TelloOptions
from tello_edu.errors import NetworkNotJoined, StateConsumed, TelloIOError
from tello_edu.flight.controller import ControlChannel
from tello_edu.flight.telemetry import TelemetryListener
from tello_edu.network.wifi import WifiJoiner
from tello_edu.vision.video import VideoListener

logger = logging.getLogger(__name__)

_CONNECT_TOKEN = object()


async def associate(
    sock: socket.socket,
    address: tuple[str, int],
    interval: float = 0.1,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> int:
    """Connect a UDP socket to the drone, retrying until it succeeds.

    There is no attempt limit and no deadline: if the drone's network
    never becomes reachable this waits forever. Cancel the calling task
    to give up.

    Returns:
        The number of attempts made.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            sock.connect(address)
            return attempt
        except OSError as e:
            logger.debug(
                "Connection attempt #%d to %s:%d failed (%s), retrying...",
                attempt, address[0], address[1], e,
            )
            await sleep(interval)


class _State:
    def __init__(self, options: Optional[TelloOptions] = None):
        self._options = options or TelloOptions()
        self._consumed = False

    @property
    def options(self) -> TelloOptions:
        return self._options

    def _check(self) -> None:
        if self._consumed:
            raise StateConsumed(
                f"{type(self).__name__} was already used for a transition"
            )

    def _consume(self) -> None:
        self._check()
        self._consumed = True


class Tello(_State):
    """A drone whose WiFi network has not been joined yet."""

    def __init__(
        self,
        options: Optional[TelloOptions] = None,
        joiner: Optional[WifiJoiner] = None,
    ):
        super().__init__(options)
        self._joiner = joiner or WifiJoiner()

    async def wait_for_wifi(self, ssid_prefix: Optional[str] = None) -> NetworkJoined:
        """Poll until this host is on a network named ``ssid_prefix*``.

        Joining the network is not done here; this only waits for it.
        """
        self._check()
        prefix = ssid_prefix or self._options.ssid_prefix
        logger.info("Waiting for WiFi network %s*...", prefix)
        while not await asyncio.to_thread(
            self._joiner.is_associated_with_prefix, prefix
        ):
            await asyncio.sleep(self._options.wifi_poll_interval)
        logger.info("WiFi joined")
        self._consume()
        return NetworkJoined(self._options)

    def assume_wifi(self) -> NetworkJoined:
        """Skip the WiFi check, for hosts already on the drone's network."""
        self._consume()
        return NetworkJoined(self._options)


class NetworkJoined(_State):
    """On the drone's network but not yet in command mode."""

    async def connect(self, options: Optional[TelloOptions] = None) -> Connected:
        """Open the control channel and put the drone in command mode.

        Blocks until the socket can be associated with the drone, however
        long that takes. Listeners and the command relay are started as
        requested by ``options``.

        Raises:
            TelloIOError: the local control port cannot be bound.
            CommandFailed: the drone did not answer "ok" to "command".
        """
        self._check()
        options = options or self._options
        local = (options.listen_host, options.local_control_port)
        remote = (options.drone_host, options.control_port)
        logger.info("CONNECT %s:%d -> %s:%d", *local, *remote)

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setblocking(False)
        try:
            sock.bind(local)
            await associate(sock, remote, options.retry_interval)
            control = await ControlChannel.open(sock, options)
        except OSError as e:
            sock.close()
            raise TelloIOError(f"Cannot open control socket: {e}") from e
        except BaseException:
            sock.close()
            raise

        telemetry: Optional[TelemetryListener] = None
        video: Optional[VideoListener] = None
        relay: Optional[CommandRelay] = None
        try:
            logger.info("Putting drone in command mode...")
            await control.send_expect_ok("command")

            battery = await control.battery()
            if battery < options.low_battery_threshold:
                logger.warning("Battery low: %d%%", battery)
            else:
                logger.info("Battery: %d%%", battery)

            if options.with_telemetry:
                telemetry = await TelemetryListener.start(Channel(), options)
            if options.with_video:
                video = await VideoListener.start(Channel(), options)
            if options.with_commands:
                relay = CommandRelay(control, Channel()).start()
        except BaseException:
            await _shutdown(control, telemetry, video, relay)
            raise

        self._consume()
        logger.info("CONNECTED")
        return Connected(
            control, options, telemetry, video, relay, _token=_CONNECT_TOKEN
        )


class Connected(_State):
    """In command mode; owns the control channel and any listeners."""

    def __init__(
        self,
        control: ControlChannel,
        options: Optional[TelloOptions] = None,
        telemetry: Optional[TelemetryListener] = None,
        video: Optional[VideoListener] = None,
        relay: Optional[CommandRelay] = None,
        *,
        _token: object = None,
    ):
        if _token is not _CONNECT_TOKEN:
            raise NetworkNotJoined(
                "Connected can only be obtained from NetworkJoined.connect()"
            )
        super().__init__(options)
        self._control = control
        self._telemetry = telemetry
        self._video = video
        self._relay = relay

    @property
    def control(self) -> ControlChannel:
        self._check()
        return self._control

    @property
    def telemetry(self) -> Optional[Channel]:
        """Snapshots from the telemetry listener, if started."""
        return self._telemetry.channel if self._telemetry else None

    @property
    def video(self) -> Optional[Channel]:
        """Frames from the video listener, if started."""
        return self._video.channel if self._video else None

    @property
    def commands(self) -> Optional[Channel]:
        """Feed for the command relay, if installed."""
        return self._relay.commands if self._relay else None

    @property
    def telemetry_listener(self) -> Optional[TelemetryListener]:
        return self._telemetry

    @property
    def video_listener(self) -> Optional[VideoListener]:
        return self._video

    @property
    def relay(self) -> Optional[CommandRelay]:
        return self._relay

    async def disconnect(self) -> NetworkJoined:
        """Stop listeners and the relay, close the control socket."""
        self._check()
        await _shutdown(self._control, self._telemetry, self._video, self._relay)
        self._consume()
        logger.info("DISCONNECTED")
        return NetworkJoined(self._options)

    async def __aenter__(self) -> Connected:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self._consumed:
            await self.disconnect()


async def _shutdown(
    control: ControlChannel,
    telemetry: Optional[TelemetryListener],
    video: Optional[VideoListener],
    relay: Optional[CommandRelay],
) -> None:
    if relay is not None:
        await relay.stop()
    if telemetry is not None:
        await telemetry.stop()
    if video is not None:
        await video.stop()
    control.close()
