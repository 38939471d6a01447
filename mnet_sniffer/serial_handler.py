"""Byte sources for monitored lines: serial ports and hex capture replay."""

import logging
import time
from collections.abc import Callable
from pathlib import Path

import serial

from .config import SerialConfig

logger = logging.getLogger(__name__)

# Reconnection settings
RECONNECT_DELAY_MIN = 1  # seconds
RECONNECT_DELAY_MAX = 60  # seconds

PARITIES = {
    "none": serial.PARITY_NONE,
    "even": serial.PARITY_EVEN,
    "odd": serial.PARITY_ODD,
}


class SerialHandler:
    """Receive-only serial port polled without blocking."""

    def __init__(
        self,
        config: SerialConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._clock = clock
        self._port: serial.Serial | None = None
        self._reconnect_delay = RECONNECT_DELAY_MIN
        self._next_attempt = 0.0
        self._last_activity = clock()

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def connected(self) -> bool:
        """Return True if serial port is open."""
        return self._port is not None and self._port.is_open

    def open(self) -> None:
        """Open the serial port."""
        self._port = serial.Serial(
            port=self._config.port,
            baudrate=self._config.baud,
            bytesize=serial.EIGHTBITS,
            parity=PARITIES[self._config.parity],
            stopbits=serial.STOPBITS_ONE,
            timeout=0,  # poll only, idle gaps are timed by poll()
        )
        self._reconnect_delay = RECONNECT_DELAY_MIN  # Reset backoff on success
        self._last_activity = self._clock()
        logger.info(
            "Opened %s on %s at %d baud, parity %s",
            self._config.name,
            self._config.port,
            self._config.baud,
            self._config.parity,
        )

    def close(self) -> None:
        """Close the serial port."""
        if self._port and self._port.is_open:
            self._port.close()
            logger.info("Closed %s serial port", self._config.name)
        self._port = None

    def try_reconnect(self) -> bool:
        """
        Attempt to (re)open the serial port if its retry time has come.

        Returns True if the port opened, False otherwise.
        Uses exponential backoff between attempts without sleeping, so the
        caller can keep polling its other lines.
        """
        now = self._clock()
        if now < self._next_attempt:
            return False

        self.close()
        try:
            self.open()
            return True
        except serial.SerialException as e:
            logger.warning(
                "%s open failed: %s (retrying in %ds)",
                self._config.name,
                e,
                self._reconnect_delay,
            )
            self._next_attempt = now + self._reconnect_delay
            # Exponential backoff
            self._reconnect_delay = min(
                self._reconnect_delay * 2,
                RECONNECT_DELAY_MAX,
            )
            return False

    def read_bytes(self) -> bytes:
        """
        Read whatever has arrived, without waiting.

        Raises SerialDisconnected if the port is no longer available.
        """
        if not self.connected:
            return b""

        try:
            data = self._port.read(self._port.in_waiting or 1)
        except serial.SerialException as e:
            logger.error("%s read error: %s", self._config.name, e)
            raise SerialDisconnected() from e

        if data:
            self._last_activity = self._clock()
        return data

    def poll(self) -> list[int | None]:
        """
        Return the poll results since the last call.

        Received bytes come back one int each. Once the line has been quiet
        for its idle gap, an empty read returns [None], the "no data" signal.
        """
        data = self.read_bytes()
        if data:
            return list(data)
        if self._clock() - self._last_activity >= self._config.idle_gap_ms / 1000:
            return [None]
        return []


class HexReplay:
    """Replays a capture stored as whitespace-separated hex byte pairs."""

    def __init__(self, path: Path, name: str = "replay") -> None:
        self.name = name
        self._path = path
        self._bytes = iter(parse_hex_capture(path.read_text()))
        logger.info("Replaying M-NET capture from %s", path)

    @property
    def connected(self) -> bool:
        return True

    def poll(self) -> list[int]:
        try:
            return [next(self._bytes)]
        except StopIteration:
            raise ReplayFinished(str(self._path)) from None


def parse_hex_capture(text: str) -> bytes:
    """Parse hex text such as "BD 01 02 3F" or "BD01023F" into bytes."""
    out = bytearray()
    for token in text.split():
        for i in range(0, len(token), 2):
            pair = token[i : i + 2]
            try:
                out.append(int(pair, 16))
            except ValueError:
                raise ValueError(f"invalid hex byte {pair!r} in capture") from None
    return bytes(out)


class SerialDisconnected(Exception):
    """Raised when serial port becomes unavailable."""

    pass


class ReplayFinished(Exception):
    """Raised when a replayed capture has no more bytes."""

    pass
