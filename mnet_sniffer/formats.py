"""Command formats: masked-byte match table and per-command decoders.

Each rule is compared against the six bytes starting at the frame's
data-length field. Rules are tried in order and the first full match wins.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

from .protocol import LENGTH_OFFSET

MATCH_WINDOW = 6
M = 0xFF  # must equal

UNRECOGNIZED = "???"


class Variant(Enum):
    POWER = "power"
    POWER_ACK = "power ack"
    SET_MODE = "set mode"
    SET_MODE_ACK = "set mode ack"
    SET_TEMP = "set temp"
    SET_TEMP_ACK = "set temp ack"
    SET_FAN_SPEED = "set fan speed"
    SET_FAN_SPEED_ACK = "set fan speed ack"
    GET_STATUS = "get status"
    GET_STATUS_ACK = "get status ack"
    GET_MODE = "get mode"
    GET_MODE_ACK = "get mode ack"
    GET_SETPOINT = "get setpoint temp"
    GET_SETPOINT_ACK = "get setpoint temp ack"
    GET_FAN_SPEED = "get fan speed"
    GET_FAN_SPEED_ACK = "get fan speed ack"
    GET_CURRENT_TEMP = "get current temp"
    GET_CURRENT_TEMP_ACK = "get current temp ack"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class FormatRule:
    mask: tuple[int, ...]
    value: tuple[int, ...]
    variant: Variant

    def matches(self, window: bytes) -> bool:
        mask = self.mask + (0,) * (MATCH_WINDOW - len(self.mask))
        value = self.value + (0,) * (MATCH_WINDOW - len(self.value))
        return all((b & m) == v for b, m, v in zip(window, mask, value))


FORMAT_TABLE: tuple[FormatRule, ...] = (
    FormatRule((M, M, M), (5, 0x0D, 0x01), Variant.POWER),
    FormatRule((M, M, M, M), (3, 0x0D, 0x81, 0x00), Variant.POWER_ACK),
    FormatRule((M, M, M), (3, 0x0D, 0x02), Variant.SET_MODE),
    FormatRule((M, M, M, M), (3, 0x0D, 0x82, 0x00), Variant.SET_MODE_ACK),
    FormatRule((M, M, M), (5, 0x05, 0x01), Variant.SET_TEMP),
    FormatRule((M, M, M, M), (3, 0x05, 0x81, 0x00), Variant.SET_TEMP_ACK),
    FormatRule((M, M, M), (3, 0x0D, 0x0E), Variant.SET_FAN_SPEED),
    FormatRule((M, M, M, M), (3, 0x0D, 0x8E, 0x00), Variant.SET_FAN_SPEED_ACK),
    FormatRule((M, M, M), (2, 0x2D, 0x01), Variant.GET_STATUS),
    FormatRule((M, M, M), (5, 0x2D, 0x81), Variant.GET_STATUS_ACK),
    FormatRule((M, M, M), (2, 0x2D, 0x02), Variant.GET_MODE),
    FormatRule((M, M, M), (3, 0x2D, 0x82), Variant.GET_MODE_ACK),
    FormatRule((M, M, M), (2, 0x25, 0x01), Variant.GET_SETPOINT),
    FormatRule((M, M, M), (5, 0x25, 0x81), Variant.GET_SETPOINT_ACK),
    FormatRule((M, M, M), (2, 0x2D, 0x0E), Variant.GET_FAN_SPEED),
    FormatRule((M, M, M), (3, 0x2D, 0x8E), Variant.GET_FAN_SPEED_ACK),
    FormatRule((M, M, M, M), (3, 0x35, 0x03, 0x22), Variant.GET_CURRENT_TEMP),
    FormatRule((M, M, M, M), (5, 0x35, 0x83, 0x22), Variant.GET_CURRENT_TEMP_ACK),
)


def match_window(raw: bytes) -> bytes:
    """Return the six bytes starting at the length field, zero padded."""
    window = raw[LENGTH_OFFSET : LENGTH_OFFSET + MATCH_WINDOW]
    return bytes(window) + bytes(MATCH_WINDOW - len(window))


def match(raw: bytes, table: tuple[FormatRule, ...] = FORMAT_TABLE) -> Variant:
    """Select the decode variant for a frame; never fails."""
    window = match_window(raw)
    for rule in table:
        if rule.matches(window):
            return rule.variant
    return Variant.UNKNOWN


# Field decoders


class Temperature(NamedTuple):
    celsius: float
    fahrenheit: float

    def __str__(self) -> str:
        return f"{self.celsius:.1f} deg C, {self.fahrenheit:.1f} deg F"


def decode_temperature(b0: int, b1: int) -> Temperature:
    """Decode a two-byte temperature: b0 tens, b1 high nibble units, low nibble tenths."""
    whole = b0 * 10 + (b1 >> 4)
    celsius = whole + (b1 & 0x0F) / 10
    return Temperature(celsius, celsius * 9 / 5 + 32)


POWER_STATES = {1: "on", 0: "off"}
RUN_STATES = {0: "stopped", 1: "running"}
MODES = {7: "heat", 8: "cool", 32: "auto"}
FAN_SPEEDS = {4: "low", 5: "medium", 6: "high", 0x0B: "auto"}


def _lookup(table: dict[int, str], data: bytes, pos: int) -> str:
    if pos >= len(data):
        return UNRECOGNIZED
    return table.get(data[pos], UNRECOGNIZED)


def _temperature_at(data: bytes, pos: int) -> str:
    if pos + 1 >= len(data):
        return UNRECOGNIZED
    return str(decode_temperature(data[pos], data[pos + 1]))


def _ok(data: bytes) -> str:
    return "ok"


def _text(label: str) -> Callable[[bytes], str]:
    return lambda data: label


DECODERS: dict[Variant, Callable[[bytes], str]] = {
    Variant.POWER: lambda d: f"turn {_lookup(POWER_STATES, d, 2)}",
    Variant.POWER_ACK: _ok,
    Variant.SET_MODE: lambda d: f"set mode {_lookup(MODES, d, 2)}",
    Variant.SET_MODE_ACK: _ok,
    Variant.SET_TEMP: lambda d: f"set temp {_temperature_at(d, 2)}",
    Variant.SET_TEMP_ACK: _ok,
    Variant.SET_FAN_SPEED: lambda d: f"set fan speed {_lookup(FAN_SPEEDS, d, 2)}",
    Variant.SET_FAN_SPEED_ACK: _ok,
    Variant.GET_STATUS: _text("get status"),
    Variant.GET_STATUS_ACK: lambda d: _lookup(RUN_STATES, d, 2),
    Variant.GET_MODE: _text("get mode"),
    Variant.GET_MODE_ACK: lambda d: _lookup(MODES, d, 2),
    Variant.GET_SETPOINT: _text("get setpoint temp"),
    Variant.GET_SETPOINT_ACK: lambda d: _temperature_at(d, 2),
    Variant.GET_FAN_SPEED: _text("get fan speed"),
    Variant.GET_FAN_SPEED_ACK: lambda d: _lookup(FAN_SPEEDS, d, 2),
    Variant.GET_CURRENT_TEMP: _text("get current temp"),
    Variant.GET_CURRENT_TEMP_ACK: lambda d: _temperature_at(d, 3),
    Variant.UNKNOWN: _text(UNRECOGNIZED),
}


def describe(variant: Variant, data: bytes) -> str:
    """Render the human-readable description of a frame's data bytes."""
    return DECODERS[variant](data)
