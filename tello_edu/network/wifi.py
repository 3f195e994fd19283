"""Best-effort detection of the WiFi network this host is joined to.

Joining the drone's network is left to the user or the OS; this module
only answers "is the current SSID one of the drone's?". Each platform is
queried through its own command line tool, so results depend on what is
installed.
"""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess
from typing import Optional

from tello_edu.errors import GenericError

logger = logging.getLogger(__name__)


def _run(args: list[str]) -> str:
    try:
        result = subprocess.run(
            args, capture_output=True, text=True, timeout=5.0, check=False
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise GenericError(f"{args[0]} failed: {e}") from e
    return result.stdout


def parse_nmcli(output: str) -> Optional[str]:
    # nmcli -t -f active,ssid dev wifi  ->  "yes:TELLO-5A1B2C"
    for line in output.splitlines():
        active, _, ssid = line.partition(":")
        if active == "yes" and ssid:
            return ssid.replace("\\:", ":")
    return None


def parse_networksetup(output: str) -> Optional[str]:
    # "Current Wi-Fi Network: TELLO-5A1B2C"
    _, sep, ssid = output.strip().partition(": ")
    if not sep or not ssid:
        return None
    return ssid


def parse_netsh(output: str) -> Optional[str]:
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip() == "SSID":
            return value.strip() or None
    return None


class WifiJoiner:
    """Reports the SSID of the active WiFi network."""

    def __init__(self, system: Optional[str] = None):
        self._system = system or platform.system()

    def current_ssid(self) -> Optional[str]:
        """SSID of the joined network, or None if not associated.

        Raises:
            GenericError: no supported tool on this platform.
        """
        if self._system == "Linux":
            if shutil.which("nmcli"):
                return parse_nmcli(_run(["nmcli", "-t", "-f", "active,ssid", "dev", "wifi"]))
            if shutil.which("iwgetid"):
                return _run(["iwgetid", "-r"]).strip() or None
            raise GenericError("Neither nmcli nor iwgetid is available")
        if self._system == "Darwin":
            return parse_networksetup(_run(["networksetup", "-getairportnetwork", "en0"]))
        if self._system == "Windows":
            return parse_netsh(_run(["netsh", "wlan", "show", "interfaces"]))
        raise GenericError(f"Unsupported platform: {self._system}")

    def is_associated_with_prefix(self, prefix: str) -> bool:
        ssid = self.current_ssid()
        logger.debug("Current SSID: %s", ssid)
        return ssid is not None and ssid.startswith(prefix)
