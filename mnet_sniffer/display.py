"""Console/log line rendering for decoded records."""

from .monitor import DecodedFrame, DisplayBreak, Record
from .protocol import (
    BRIDGE_ADDRESS,
    BadChecksum,
    MissingHandshake,
    NakReceived,
    Overflow,
)

BRIDGE_INDENT = 27  # keeps M-NET lines clear of bridge traffic
DESCRIPTION_COLUMN = 18


def format_address(addr: int) -> str:
    if addr == BRIDGE_ADDRESS:
        return "CM"
    return f"{addr:02X}"


def format_bytes(raw: bytes) -> str:
    return "".join(f"{b:02X} " for b in raw)


def format_elapsed(seconds: float) -> str:
    millis = int(round(seconds * 1000))
    return f"{millis // 1000:5d}.{millis % 1000:03d}  "


def render_frame(record: DecodedFrame, indent: int = 0) -> str:
    pad = max(0, DESCRIPTION_COLUMN - 3 * record.frame.display_length)
    source = "  " if record.reply else format_address(record.source)
    line = (
        " " * indent
        + format_elapsed(record.elapsed)
        + format_bytes(record.raw)
        + " " * pad
        + f"{source}->{format_address(record.destination)} "
        + record.description
    )
    if record.nak:
        line += "  *** Received NAK"
    return line


def render(record: Record, indent: int = 0) -> str:
    """Render any monitor record as one output line."""
    if isinstance(record, DecodedFrame):
        return render_frame(record, indent)
    if isinstance(record, DisplayBreak):
        return " " * indent + format_elapsed(record.elapsed)
    if isinstance(record, Overflow):
        return "***too much data " + format_bytes(record.raw).rstrip()
    if isinstance(record, BadChecksum):
        return "*** bad CRC *** " + format_bytes(record.raw).rstrip()
    if isinstance(record, MissingHandshake):
        return f"Missing ACK or NAK (got {record.byte:02X})"
    if isinstance(record, NakReceived):
        return "*** Received NAK"
    raise TypeError(f"cannot render {type(record).__name__}")
