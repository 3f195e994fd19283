"""Tello CLI: entry point for interactive drone operations.

Usage:
    tello-cli status             Show battery, signal and firmware info
    tello-cli fly                Take off, optionally turn, and land
    tello-cli telemetry          Print telemetry snapshots
    tello-cli video              Save raw H.264 frames to a file
    tello-cli relay              Remote control via MQTT commands
    tello-cli emergency          Stop all motors immediately
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

import click

from tello_edu.comms.mqtt_client import MQTTCommandBridge
from tello_edu.config import TelloOptions, load_config
from tello_edu.errors import TelloError
from tello_edu.flight.drone import Connected, Tello


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)-7s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


async def connect(ctx, **flags) -> Connected:
    """Join (or assume) the network and connect with extra option flags."""
    options = dataclasses.replace(ctx.obj["options"], **flags)
    drone = Tello(options)
    if ctx.obj["assume_wifi"]:
        joined = drone.assume_wifi()
    else:
        click.echo(f"Waiting for WiFi {options.ssid_prefix}*...")
        joined = await drone.wait_for_wifi()
    click.echo(f"Connecting to {options.drone_host}:{options.control_port}...")
    return await joined.connect(options)


def run(coro) -> None:
    try:
        asyncio.run(coro)
    except TelloError as e:
        click.echo(f"FAILED: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nAborted by operator.")


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Config file path")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--assume-wifi", is_flag=True, help="Skip waiting for the drone's WiFi")
@click.pass_context
def main(ctx, config_path, verbose, assume_wifi):
    """Tello EDU command-line control over UDP."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    config = load_config(config_path)
    ctx.obj["config"] = config
    ctx.obj["options"] = TelloOptions.from_dict(config.get("tello"))
    ctx.obj["assume_wifi"] = assume_wifi


@main.command()
@click.pass_context
def status(ctx):
    """Show battery, WiFi signal and firmware details."""

    async def _status():
        async with await connect(ctx) as drone:
            control = drone.control
            click.echo("")
            click.echo("=== STATUS ===")
            click.echo(f"  Battery:     {await control.battery()}%")
            click.echo(f"  WiFi SNR:    {await control.wifi_signal_to_noise_ratio()}")
            click.echo(f"  Speed:       {await control.speed():.1f} cm/s")
            click.echo(f"  Flight time: {await control.flight_time()}s")
            click.echo(f"  SDK:         {await control.sdk_version()}")
            click.echo(f"  Serial:      {await control.serial_number()}")

    run(_status())


@main.command()
@click.option("--turn", "-t", default=0, help="Degrees to turn clockwise before landing")
@click.option("--speed", "-s", default=None, type=int, help="Speed (10-100 cm/s)")
@click.pass_context
def fly(ctx, turn, speed):
    """Take off, optionally turn on the spot, and land."""

    async def _fly():
        async with await connect(ctx) as drone:
            control = drone.control
            if speed is not None:
                await control.set_speed(speed)
            click.echo("Taking off...")
            await control.take_off()
            try:
                if turn:
                    click.echo(f"Turning {turn} degrees...")
                    await control.turn_clockwise(turn)
            finally:
                click.echo("Landing...")
                await control.land()

    run(_fly())


@main.command()
@click.option("--count", "-n", default=10, help="Number of snapshots to print")
@click.pass_context
def telemetry(ctx, count):
    """Print telemetry snapshots as they arrive."""

    async def _telemetry():
        async with await connect(ctx, with_telemetry=True) as drone:
            received = 0
            async for t in drone.telemetry:
                click.echo(
                    f"  bat {t.battery:3d}% | h {t.height:4d}cm | "
                    f"rpy {t.roll:4d} {t.pitch:4d} {t.yaw:4d} | "
                    f"v {t.velocity.x} {t.velocity.y} {t.velocity.z} | "
                    f"baro {t.barometer:.2f}"
                )
                received += 1
                if received >= count:
                    break
            if received < count:
                click.echo("Telemetry stream ended.")

    run(_telemetry())


@main.command()
@click.option("--output", "-o", default="tello.h264", help="Output file")
@click.option("--frames", "-n", default=300, help="Number of frames to record")
@click.pass_context
def video(ctx, output, frames):
    """Record raw H.264 frames to a file."""

    async def _video():
        async with await connect(ctx, with_video=True) as drone:
            await drone.control.start_video()
            written = 0
            try:
                with open(Path(output), "wb") as f:
                    async for frame in drone.video:
                        f.write(frame.data)
                        written += 1
                        if written >= frames:
                            break
            finally:
                await drone.control.stop_video()
            click.echo(f"Wrote {written} frames to {output}")

    run(_video())


@main.command()
@click.pass_context
def relay(ctx):
    """Fly from MQTT commands and publish telemetry back."""
    mqtt_cfg = ctx.obj["config"].get("mqtt", {})
    if not mqtt_cfg.get("broker"):
        click.echo("No MQTT broker configured (mqtt.broker).")
        return

    async def _relay():
        async with await connect(ctx, with_telemetry=True, with_commands=True) as drone:
            bridge = MQTTCommandBridge(
                drone.commands,
                asyncio.get_running_loop(),
                broker=mqtt_cfg.get("broker", "localhost"),
                port=mqtt_cfg.get("port", 1883),
                drone_id=mqtt_cfg.get("drone_id", "tello"),
                topic_prefix=mqtt_cfg.get("topic_prefix", "tello"),
                use_tls=mqtt_cfg.get("use_tls", False),
                qos=mqtt_cfg.get("qos", 1),
            )
            if not await asyncio.to_thread(bridge.connect):
                click.echo("FAILED: Cannot connect to MQTT broker.")
                return

            async def forward_telemetry():
                async for snapshot in drone.telemetry:
                    bridge.publish_telemetry(snapshot)

            forwarder = asyncio.create_task(forward_telemetry())
            click.echo(f"Relaying commands from {bridge.command_topic}")
            try:
                await drone.relay.wait()
            finally:
                forwarder.cancel()
                bridge.disconnect()

    run(_relay())


@main.command()
@click.pass_context
def emergency(ctx):
    """Stop all motors immediately."""

    async def _emergency():
        async with await connect(ctx) as drone:
            await drone.control.emergency_stop()
            click.echo("Emergency stop sent.")

    run(_emergency())


if __name__ == "__main__":
    main()
