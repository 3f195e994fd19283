"""Tests for options and YAML config loading."""

import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from tello_edu.config import TelloOptions, load_config


def test_defaults_match_drone():
    o = TelloOptions()
    assert (o.drone_host, o.control_port) == ("192.168.10.1", 8889)
    assert o.telemetry_port == 8890
    assert o.video_port == 11111
    assert o.max_chunk_size == 1460
    assert o.response_size == 256
    assert o.retry_interval == 0.1
    assert o.command_timeout is None


def test_from_dict_ignores_unknown_keys():
    o = TelloOptions.from_dict({"drone_host": "127.0.0.1", "colour": "red"})
    assert o.drone_host == "127.0.0.1"
    assert o.control_port == 8889


def test_from_dict_none():
    assert TelloOptions.from_dict(None) == TelloOptions()


def test_load_config_from_file():
    with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as f:
        f.write("tello:\n  control_port: 9889\n  with_telemetry: true\n")
    config = load_config(f.name)
    o = TelloOptions.from_dict(config["tello"])
    assert o.control_port == 9889
    assert o.with_telemetry


def test_load_config_falls_back_to_bundled_default():
    config = load_config("/nonexistent/config.yaml")
    assert config["tello"]["drone_host"] == "192.168.10.1"
    assert TelloOptions.from_dict(config["tello"]) == TelloOptions()
