"""Command relay: drives a ControlChannel from a command channel.

Remote-control style drivers (a gamepad loop, the MQTT bridge) push
Command values into a Channel; the relay performs exactly one control
call per command, in order, until the producer closes the channel.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from tello_edu.comms.channel import Channel
from tello_edu.data.models import (
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
)
from tello_edu.flight.controller import ControlChannel

logger = logging.getLogger(__name__)


async def perform(control: ControlChannel, command: Command) -> None:
    """Issue the control call matching one command."""
    if isinstance(command, RemoteControl):
        await control.remote_control(
            command.left_right, command.forward_back, command.up_down, command.yaw
        )
    elif isinstance(command, TakeOff):
        await control.take_off()
    elif isinstance(command, Land):
        await control.land()
    elif isinstance(command, StopAndHover):
        await control.stop()
    elif isinstance(command, EmergencyStop):
        await control.emergency_stop()
    elif isinstance(command, FlipLeft):
        await control.flip_left()
    elif isinstance(command, FlipRight):
        await control.flip_right()
    elif isinstance(command, FlipForward):
        await control.flip_forward()
    elif isinstance(command, FlipBack):
        await control.flip_back()
    else:
        raise TypeError(f"Not a command: {command!r}")


class CommandRelay:
    """Background consumer of a command channel.

    The first failed control call ends the relay; the exception is
    raised again from wait().
    """

    def __init__(self, control: ControlChannel, commands: Channel):
        self._control = control
        self._commands = commands
        self._task: Optional[asyncio.Task] = None
        self.relayed = 0

    @property
    def commands(self) -> Channel:
        return self._commands

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> CommandRelay:
        if self._task is None:
            self._task = asyncio.create_task(self.run())
            logger.info("Command relay started")
        return self

    async def run(self) -> None:
        """Relay commands until the channel is closed."""
        async for command in self._commands:
            logger.debug("Relay: %s", command)
            await perform(self._control, command)
            self.relayed += 1
        logger.info("Command relay finished after %d commands", self.relayed)

    async def wait(self) -> None:
        """Wait for the relay to finish, re-raising its failure."""
        if self._task is not None:
            await self._task

    async def stop(self) -> None:
        """Cancel the relay without waiting for the channel to close."""
        if self._task is None:
            return
        task = self._task
        if task.done():
            if not task.cancelled() and task.exception() is not None:
                logger.warning("Command relay had failed: %s", task.exception())
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Command relay stopped")
