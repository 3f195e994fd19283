"""Connection options and YAML configuration loading."""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[1]


@dataclass
class TelloOptions:
    """Ports, addresses and tuning for one drone connection.

    The defaults match the Tello EDU in AP mode (the drone's own WiFi).
    Everything is overridable so tests can point the client at a
    simulated device on localhost.
    """

    drone_host: str = "192.168.10.1"
    control_port: int = 8889         # drone side
    local_control_port: int = 8889   # our side; 0 picks a free port
    listen_host: str = "0.0.0.0"
    telemetry_port: int = 8890
    video_port: int = 11111

    max_chunk_size: int = 1460       # bytes per video datagram
    response_size: int = 256         # bytes per control response
    retry_interval: float = 0.1      # seconds between association attempts
    low_battery_threshold: int = 10  # percent; warning only
    # None waits forever. After a timeout, replies already queued are
    # dropped before the next command; one arriving later still
    # answers the next command.
    command_timeout: Optional[float] = None

    ssid_prefix: str = "TELLO"
    wifi_poll_interval: float = 1.0

    with_telemetry: bool = False
    with_video: bool = False
    with_commands: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> TelloOptions:
        """Build options from a config section, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})


def load_config(config_path: Optional[str] = None) -> dict:
    """Load configuration from YAML file."""
    paths = [
        config_path,
        "/etc/tello/config.yaml",
        str(PROJECT_ROOT / "config" / "default.yaml"),
    ]
    for p in paths:
        if p and Path(p).exists():
            with open(p) as f:
                return yaml.safe_load(f) or {}
    return {}
