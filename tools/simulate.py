"""Simulation helper: run a fake Tello on this machine.

Serves the control protocol and broadcasts telemetry (and optionally
fake video) so tello-cli can be tried without a drone:

Usage:
    python tools/simulate.py --port 9889 --telemetry-port 8890
    python cli.py -c sim.yaml --assume-wifi status

with sim.yaml pointing drone_host at 127.0.0.1, control_port at 9889 and
local_control_port at 0.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from tello_edu.sim.device import (
    DroneState,
    broadcast_telemetry,
    serve_control,
    stream_video,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)-7s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("simulate")


async def run_simulation(
    host: str = "127.0.0.1",
    port: int = 8889,
    telemetry_port: int = 8890,
    video_port: int = 0,
    battery: int = 87,
) -> None:
    state = DroneState(battery=battery)
    transport, _ = await serve_control(host, port, state)

    logger.info("=== SIMULATED TELLO ===")
    logger.info("Control: %s:%d", host, port)
    logger.info("Telemetry -> %s:%d", host, telemetry_port)

    tasks = [
        asyncio.create_task(broadcast_telemetry(state, (host, telemetry_port)))
    ]
    if video_port:
        logger.info("Video -> %s:%d", host, video_port)

        async def video_loop():
            while True:
                if state.streaming:
                    await stream_video([os.urandom(4000)], (host, video_port))
                await asyncio.sleep(1 / 30)

        tasks.append(asyncio.create_task(video_loop()))

    try:
        await asyncio.gather(*tasks)
    finally:
        for t in tasks:
            t.cancel()
        transport.close()
        logger.info("Commands received: %d", len(state.received))


def main():
    parser = argparse.ArgumentParser(description="Run a simulated Tello drone")
    parser.add_argument("--host", default="127.0.0.1", help="Address to serve on")
    parser.add_argument("--port", "-p", type=int, default=8889, help="Control port")
    parser.add_argument(
        "--telemetry-port", "-t", type=int, default=8890,
        help="Where to send telemetry (default: 8890)",
    )
    parser.add_argument(
        "--video-port", "-V", type=int, default=0,
        help="Where to send video after streamon (default: no video)",
    )
    parser.add_argument("--battery", "-b", type=int, default=87, help="Battery percent")
    args = parser.parse_args()

    try:
        asyncio.run(run_simulation(
            host=args.host,
            port=args.port,
            telemetry_port=args.telemetry_port,
            video_port=args.video_port,
            battery=args.battery,
        ))
    except KeyboardInterrupt:
        logger.info("Simulation stopped")


if __name__ == "__main__":
    main()
