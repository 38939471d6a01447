"""Configuration loading and validation."""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

PARITY_NAMES = ("none", "even", "odd")


@dataclass
class MqttConfig:
    broker: str
    port: int = 1883
    username: str | None = None
    password: str | None = None
    root_topic: str = "mnet"


@dataclass
class SerialConfig:
    port: str
    name: str = "mnet"
    baud: int = 9600
    parity: str = "even"
    idle_gap_ms: int = 10


@dataclass
class Config:
    lines: list[SerialConfig] = field(default_factory=list)
    bridge: SerialConfig | None = None
    filter_unit: int | None = None
    log_file: Path | None = None
    mqtt: MqttConfig | None = None


def _validate_serial(raw: dict, where: str, errors: list[str]) -> None:
    if not isinstance(raw, dict):
        errors.append(f"{where} must be a mapping")
        return
    if "port" not in raw:
        errors.append(f"{where}.port is required")
    baud = raw.get("baud", 9600)
    if not isinstance(baud, int) or isinstance(baud, bool) or baud <= 0:
        errors.append(f"{where}.baud must be a positive integer")
    parity = raw.get("parity", "even")
    if parity not in PARITY_NAMES:
        errors.append(f"{where}.parity must be one of {', '.join(PARITY_NAMES)}")
    gap = raw.get("idle_gap_ms", 10)
    if not isinstance(gap, int) or gap <= 0:
        errors.append(f"{where}.idle_gap_ms must be a positive integer")


def validate_unit(unit) -> bool:
    return isinstance(unit, int) and not isinstance(unit, bool) and 0 <= unit <= 255


def load_config(path: Path) -> Config:
    """Load and validate configuration from YAML file."""
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    errors = []

    lines_raw = raw.get("lines") or []
    bridge_raw = raw.get("bridge")

    if not lines_raw and not bridge_raw:
        errors.append("at least one of 'lines' or 'bridge' is required")

    names = set()
    for i, line in enumerate(lines_raw):
        _validate_serial(line, f"lines[{i}]", errors)
        if isinstance(line, dict):
            name = line.get("name", f"mnet{i}" if i else "mnet")
            if name in names:
                errors.append(f"duplicate line name '{name}'")
            names.add(name)

    if bridge_raw is not None:
        _validate_serial(bridge_raw, "bridge", errors)

    unit = raw.get("filter_unit")
    if unit is not None and not validate_unit(unit):
        errors.append("filter_unit must be an integer 0-255")

    mqtt_raw = raw.get("mqtt")
    if mqtt_raw is not None and (
        not isinstance(mqtt_raw, dict) or "broker" not in mqtt_raw
    ):
        errors.append("mqtt.broker is required")

    if errors:
        raise ValueError(f"configuration validation failed: {'; '.join(errors)}")

    lines = [
        SerialConfig(
            port=line["port"],
            name=line.get("name", f"mnet{i}" if i else "mnet"),
            baud=line.get("baud", 9600),
            parity=line.get("parity", "even"),
            idle_gap_ms=line.get("idle_gap_ms", 10),
        )
        for i, line in enumerate(lines_raw)
    ]

    bridge = None
    if bridge_raw is not None:
        bridge = SerialConfig(
            port=bridge_raw["port"],
            name=bridge_raw.get("name", "bridge"),
            baud=bridge_raw.get("baud", 9600),
            parity=bridge_raw.get("parity", "none"),
            idle_gap_ms=bridge_raw.get("idle_gap_ms", 10),
        )

    mqtt = None
    if mqtt_raw is not None:
        mqtt = MqttConfig(
            broker=mqtt_raw["broker"],
            port=mqtt_raw.get("port", 1883),
            username=mqtt_raw.get("username"),
            password=mqtt_raw.get("password"),
            root_topic=mqtt_raw.get("root_topic", "mnet"),
        )

    log_file = raw.get("log_file")

    return Config(
        lines=lines,
        bridge=bridge,
        filter_unit=unit,
        log_file=Path(log_file) if log_file else None,
        mqtt=mqtt,
    )
