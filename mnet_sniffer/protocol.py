"""M-NET framing, checksum and resynchronization.

Frame format (as observed on the wire):
    [role][source][destination][unclassified][length][data...][checksum][handshake]

- Role: 0xBD command, 0xBE response, 0x3D also seen
- Length: number of data bytes, 0-20
- Checksum: 8-bit additive, sum of role..checksum must be 0 mod 256
- Handshake: ACK (0x06) or NAK (0x21) from the addressed unit

Bytes arrive one at a time with no lookahead. The framer never raises on bad
input; every problem is reported as an event and the state always ends up in
either Skipping or Idle.
"""

from dataclasses import dataclass, field
from enum import Enum

MAX_DATA = 20
DISPLAY_DATA_CLAMP = 16
HEADER_SIZE = 5  # role, source, destination, unclassified, length
FRAME_CAPACITY = HEADER_SIZE + MAX_DATA + 2  # checksum + handshake

ACK = 0x06
NAK = 0x21
HANDSHAKE_BYTES = (ACK, NAK)

BRIDGE_ADDRESS = 0xFB  # CoolMaster bridge, displayed as "CM"

SOURCE_OFFSET = 1
DESTINATION_OFFSET = 2
LENGTH_OFFSET = 4


class Role(Enum):
    COMMAND = 0xBD
    RESPONSE = 0xBE
    OTHER = 0x3D
    UNKNOWN = -1

    @classmethod
    def from_byte(cls, value: int) -> "Role":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class ChecksumAccumulator:
    """Running 8-bit additive sum over the bytes of the current frame."""

    total: int = 0

    def reset(self) -> None:
        self.total = 0

    def add(self, byte: int) -> None:
        self.total = (self.total + byte) & 0xFF

    def is_valid(self) -> bool:
        return self.total == 0


def checksum_byte(data: bytes) -> int:
    """Return the checksum byte that makes data + checksum sum to 0 mod 256."""
    return (256 - sum(data)) % 256


def unit_filter_passes(source: int, destination: int, unit: int | None) -> bool:
    """True if no unit is configured or the frame is to or from that unit."""
    return unit is None or unit == source or unit == destination


@dataclass(frozen=True)
class Frame:
    """A complete frame, including the trailing handshake byte."""

    raw: bytes

    @property
    def role(self) -> Role:
        return Role.from_byte(self.raw[0])

    @property
    def source(self) -> int:
        return self.raw[SOURCE_OFFSET]

    @property
    def destination(self) -> int:
        return self.raw[DESTINATION_OFFSET]

    @property
    def unclassified(self) -> int:
        return self.raw[3]

    @property
    def data_length(self) -> int:
        return self.raw[LENGTH_OFFSET]

    @property
    def data(self) -> bytes:
        return self.raw[HEADER_SIZE : HEADER_SIZE + self.data_length]

    @property
    def checksum(self) -> int:
        return self.raw[HEADER_SIZE + self.data_length]

    @property
    def handshake(self) -> int:
        return self.raw[-1]

    @property
    def display_length(self) -> int:
        return min(DISPLAY_DATA_CLAMP, self.data_length)


# Framer events


@dataclass(frozen=True)
class FrameReady:
    frame: Frame


@dataclass(frozen=True)
class Overflow:
    raw: bytes


@dataclass(frozen=True)
class BadChecksum:
    raw: bytes


@dataclass(frozen=True)
class MissingHandshake:
    raw: bytes
    byte: int


@dataclass(frozen=True)
class NakReceived:
    raw: bytes  # a frame closed by NAK that was not surfaced as FrameReady


@dataclass(frozen=True)
class IdleGap:
    raw: bytes  # bytes discarded by the reset, empty between frames


FramerEvent = (
    FrameReady | Overflow | BadChecksum | MissingHandshake | NakReceived | IdleGap
)


class Phase(Enum):
    IDLE = "idle"
    HEADER = "header"
    DATA = "data"
    EXPECT_CHECKSUM = "expect checksum"
    EXPECT_HANDSHAKE = "expect handshake"
    SKIPPING = "skipping"


@dataclass
class FramerState:
    """Caller-owned state of one line's frame assembly."""

    buffer: bytearray = field(default_factory=bytearray)
    checksum: ChecksumAccumulator = field(default_factory=ChecksumAccumulator)
    skipping: bool = False
    overflowed: bool = False
    filtered: bool = False

    def reset(self) -> None:
        self.buffer.clear()
        self.checksum.reset()
        self.skipping = False
        self.overflowed = False
        self.filtered = False

    @property
    def phase(self) -> Phase:
        count = len(self.buffer)
        if self.skipping:
            return Phase.SKIPPING
        if count == 0:
            return Phase.IDLE
        if count < HEADER_SIZE:
            return Phase.HEADER
        length = self.buffer[LENGTH_OFFSET]
        if count < HEADER_SIZE + length:
            return Phase.DATA
        if count == HEADER_SIZE + length:
            return Phase.EXPECT_CHECKSUM
        return Phase.EXPECT_HANDSHAKE


@dataclass(frozen=True)
class StepResult:
    events: tuple[FramerEvent, ...] = ()
    leftover: int | None = None  # byte to re-feed as the start of a new frame


def _finish_frame(state: FramerState, byte: int) -> StepResult:
    events: list[FramerEvent] = []
    raw = bytes(state.buffer)
    if not state.skipping and not state.filtered:
        events.append(FrameReady(Frame(raw)))
    elif byte == NAK:
        events.append(NakReceived(raw))
    state.reset()
    if byte in HANDSHAKE_BYTES:
        return StepResult(tuple(events))
    events.append(MissingHandshake(raw, byte))
    return StepResult(tuple(events), leftover=byte)


def step(state: FramerState, byte: int, filter_unit: int | None = None) -> StepResult:
    """Apply one received byte to state and return what it produced."""
    if len(state.buffer) >= FRAME_CAPACITY:
        if not state.overflowed:
            state.skipping = True
            state.overflowed = True
            return StepResult((Overflow(bytes(state.buffer)),))
        if byte in HANDSHAKE_BYTES:
            # handshake position is past the buffer, take the first one seen
            state.reset()
        return StepResult()

    state.checksum.add(byte)
    state.buffer.append(byte)
    count = len(state.buffer)

    if count == LENGTH_OFFSET and not state.skipping:
        state.filtered = not unit_filter_passes(
            state.buffer[SOURCE_OFFSET], state.buffer[DESTINATION_OFFSET], filter_unit
        )
    if count <= LENGTH_OFFSET:
        return StepResult()

    length = state.buffer[LENGTH_OFFSET]
    if length > MAX_DATA:
        # cannot complete inside the buffer: ends by overflow or idle gap
        return StepResult()

    if count == HEADER_SIZE + length + 1 and not state.skipping:
        if not state.checksum.is_valid():
            raw = bytes(state.buffer)
            state.skipping = True
            state.checksum.reset()
            return StepResult((BadChecksum(raw),))
        return StepResult()

    if count == HEADER_SIZE + length + 2:
        return _finish_frame(state, byte)
    return StepResult()


class Framer:
    """Byte-at-a-time frame assembler for one monitored line."""

    def __init__(self, filter_unit: int | None = None) -> None:
        self._filter_unit = filter_unit
        self._state = FramerState()
        self._active = False

    @property
    def state(self) -> FramerState:
        return self._state

    @property
    def phase(self) -> Phase:
        return self._state.phase

    def ingest(self, byte: int) -> list[FramerEvent]:
        """Feed one byte, returning the events it caused in order."""
        self._active = True
        events: list[FramerEvent] = []
        pending: int | None = byte
        while pending is not None:
            result = step(self._state, pending, self._filter_unit)
            events.extend(result.events)
            pending = result.leftover
        return events

    def idle(self) -> list[FramerEvent]:
        """Signal that no byte arrived within the idle gap.

        Only the first call after byte activity resets the framer; further
        calls during the same gap return nothing.
        """
        if not self._active:
            return []
        self._active = False
        raw = bytes(self._state.buffer)
        self._state.reset()
        return [IdleGap(raw)]

    def reset(self) -> None:
        self._state.reset()
        self._active = False
