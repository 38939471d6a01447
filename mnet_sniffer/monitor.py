"""Per-line decoding pipeline: framer, format dispatch and session context."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from .formats import Variant, describe, match
from .protocol import (
    LENGTH_OFFSET,
    NAK,
    BadChecksum,
    Frame,
    FrameReady,
    Framer,
    IdleGap,
    MissingHandshake,
    NakReceived,
    Overflow,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedFrame:
    line: str
    frame: Frame
    variant: Variant
    description: str
    elapsed: float  # seconds since the previous displayed record on this line
    reply: bool  # mirrors the previous frame's addresses
    checksum_valid: bool = True

    @property
    def source(self) -> int:
        return self.frame.source

    @property
    def destination(self) -> int:
        return self.frame.destination

    @property
    def raw(self) -> bytes:
        return self.frame.raw

    @property
    def nak(self) -> bool:
        return self.frame.handshake == NAK

    def to_dict(self) -> dict:
        return {
            "line": self.line,
            "source": self.source,
            "destination": self.destination,
            "raw": self.raw.hex(" ").upper(),
            "checksum_valid": self.checksum_valid,
            "variant": self.variant.value,
            "description": self.description,
            "role": self.frame.role.name.lower(),
            "handshake": self.frame.handshake,
            "elapsed": round(self.elapsed, 3),
        }


@dataclass(frozen=True)
class DisplayBreak:
    line: str
    elapsed: float
    discarded: bytes


Diagnostic = Overflow | BadChecksum | MissingHandshake | NakReceived
Record = DecodedFrame | DisplayBreak | Diagnostic


@dataclass
class SessionContext:
    """Addresses of the last displayed frame, for eliding mirrored replies."""

    prev_source: int | None = None
    prev_destination: int | None = None

    def is_reply(self, frame: Frame) -> bool:
        return (
            frame.source == self.prev_destination
            and frame.destination == self.prev_source
        )

    def remember(self, frame: Frame) -> None:
        self.prev_source = frame.source
        self.prev_destination = frame.destination


class LineMonitor:
    """Decodes the byte stream of one monitored M-NET line."""

    def __init__(
        self,
        name: str,
        filter_unit: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._framer = Framer(filter_unit)
        self._session = SessionContext()
        self._clock = clock
        self._last_shown = clock()
        self._header_at: float | None = None

    @property
    def framer(self) -> Framer:
        return self._framer

    @property
    def session(self) -> SessionContext:
        return self._session

    def feed(self, byte: int | None) -> list[Record]:
        """Process one poll result: a byte, or None when the line went quiet."""
        if byte is None:
            events = self._framer.idle()
        else:
            events = self._framer.ingest(byte)
            self._latch_header_time()
        records = []
        for event in events:
            record = self._handle(event)
            if record is not None:
                records.append(record)
        return records

    def _latch_header_time(self) -> None:
        # shown frames are timed from the end of the header
        state = self._framer.state
        if len(state.buffer) == LENGTH_OFFSET and not state.skipping and not state.filtered:
            self._header_at = self._clock()

    def _elapsed(self, at: float | None = None) -> float:
        now = self._clock() if at is None else at
        elapsed = now - self._last_shown
        self._last_shown = now
        return elapsed

    def _handle(self, event) -> Record | None:
        if isinstance(event, FrameReady):
            return self._decode(event.frame)
        if isinstance(event, IdleGap):
            if not event.raw:
                return None
            logger.debug("%s: idle gap discarded %d bytes", self.name, len(event.raw))
            return DisplayBreak(self.name, self._elapsed(), event.raw)
        logger.warning(
            "%s: %s after %d bytes",
            self.name,
            type(event).__name__,
            len(event.raw),
        )
        return event

    def _decode(self, frame: Frame) -> DecodedFrame:
        variant = match(frame.raw)
        decoded = DecodedFrame(
            line=self.name,
            frame=frame,
            variant=variant,
            description=describe(variant, frame.data),
            elapsed=self._elapsed(self._header_at),
            reply=self._session.is_reply(frame),
        )
        self._session.remember(frame)
        self._header_at = None
        logger.debug(
            "%s: %02X->%02X %s", self.name, frame.source, frame.destination, variant.value
        )
        return decoded
