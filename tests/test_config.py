"""Tests for configuration loading."""

from pathlib import Path

import pytest

from mnet_sniffer.config import load_config, validate_unit


@pytest.fixture
def write_config(tmp_path):
    def _write(text):
        path = tmp_path / "config.yaml"
        path.write_text(text)
        return path

    return _write


def test_full_config(write_config):
    config = load_config(
        write_config(
            """
lines:
  - name: upstairs
    port: /dev/ttyUSB0
    baud: 19200
    parity: odd
    idle_gap_ms: 25
bridge:
  port: /dev/ttyUSB1
filter_unit: 5
log_file: log.txt
mqtt:
  broker: mqtt.local
  port: 1884
  username: user
  password: secret
  root_topic: hvac
"""
        )
    )
    (line,) = config.lines
    assert line.name == "upstairs"
    assert line.port == "/dev/ttyUSB0"
    assert line.baud == 19200
    assert line.parity == "odd"
    assert line.idle_gap_ms == 25
    assert config.bridge.port == "/dev/ttyUSB1"
    assert config.bridge.name == "bridge"
    assert config.bridge.parity == "none"
    assert config.filter_unit == 5
    assert config.log_file == Path("log.txt")
    assert config.mqtt.broker == "mqtt.local"
    assert config.mqtt.port == 1884
    assert config.mqtt.username == "user"
    assert config.mqtt.root_topic == "hvac"


def test_defaults(write_config):
    config = load_config(
        write_config(
            """
lines:
  - port: /dev/ttyUSB0
  - port: /dev/ttyUSB2
"""
        )
    )
    first, second = config.lines
    assert first.name == "mnet"
    assert second.name == "mnet1"
    assert first.baud == 9600
    assert first.parity == "even"
    assert first.idle_gap_ms == 10
    assert config.bridge is None
    assert config.filter_unit is None
    assert config.log_file is None
    assert config.mqtt is None


def test_bridge_only(write_config):
    config = load_config(write_config("bridge:\n  port: COM4\n"))
    assert config.lines == []
    assert config.bridge.port == "COM4"


def test_empty_file_rejected(write_config):
    with pytest.raises(ValueError, match="at least one of 'lines' or 'bridge'"):
        load_config(write_config(""))


def test_all_errors_reported_together(write_config):
    path = write_config(
        """
lines:
  - name: a
    parity: mark
  - name: a
    port: /dev/ttyUSB1
    idle_gap_ms: 0
filter_unit: 300
mqtt:
  port: 1883
"""
    )
    with pytest.raises(ValueError) as excinfo:
        load_config(path)
    message = str(excinfo.value)
    assert message.startswith("configuration validation failed: ")
    assert "lines[0].port is required" in message
    assert "lines[0].parity must be one of" in message
    assert "duplicate line name 'a'" in message
    assert "lines[1].idle_gap_ms must be a positive integer" in message
    assert "filter_unit must be an integer 0-255" in message
    assert "mqtt.broker is required" in message


@pytest.mark.parametrize("baud", ["fast", 0, -9600, 9600.5, True])
def test_bad_baud_rejected(write_config, baud):
    path = write_config(f"lines:\n  - port: /dev/ttyUSB0\nbridge:\n  port: COM4\n  baud: {baud}\n")
    with pytest.raises(ValueError, match=r"bridge\.baud must be a positive integer"):
        load_config(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


@pytest.mark.parametrize("unit, ok", [(0, True), (255, True), (256, False), (-1, False), ("5", False), (True, False)])
def test_validate_unit(unit, ok):
    assert validate_unit(unit) is ok
