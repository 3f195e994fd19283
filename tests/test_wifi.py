"""Tests for SSID detection output parsing."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from tello_edu.errors import GenericError
from tello_edu.network import wifi
from tello_edu.network.wifi import WifiJoiner, parse_netsh, parse_networksetup, parse_nmcli


def test_parse_nmcli():
    out = "no:HomeNet\nyes:TELLO-5A1B2C\nno:Other\n"
    assert parse_nmcli(out) == "TELLO-5A1B2C"
    assert parse_nmcli("no:HomeNet\n") is None


def test_parse_networksetup():
    assert parse_networksetup("Current Wi-Fi Network: TELLO-ABCDEF\n") == "TELLO-ABCDEF"
    assert parse_networksetup("You are not associated with an AirPort network.\n") is None


def test_parse_netsh():
    out = (
        "    Name                   : Wi-Fi\n"
        "    State                  : connected\n"
        "    SSID                   : TELLO-99AA00\n"
        "    BSSID                  : 60:60:1f:00:00:00\n"
    )
    assert parse_netsh(out) == "TELLO-99AA00"
    assert parse_netsh("    State : disconnected\n") is None


def test_prefix_match_on_linux(monkeypatch):
    monkeypatch.setattr(wifi.shutil, "which", lambda name: "/usr/bin/" + name)
    monkeypatch.setattr(wifi, "_run", lambda args: "yes:TELLO-5A1B2C\n")
    joiner = WifiJoiner(system="Linux")
    assert joiner.is_associated_with_prefix("TELLO")
    assert not joiner.is_associated_with_prefix("RMTT")


def test_missing_tools_raise_generic_error(monkeypatch):
    monkeypatch.setattr(wifi.shutil, "which", lambda name: None)
    with pytest.raises(GenericError):
        WifiJoiner(system="Linux").current_ssid()


def test_unsupported_platform():
    with pytest.raises(GenericError):
        WifiJoiner(system="Plan9").is_associated_with_prefix("TELLO")
