"""Pass-through of the ASCII bridge protocol (CoolMaster/Control4)."""

CR = 0x0D
LF = 0x0A
MAX_LINE = 80


class AsciiLineCollector:
    """Assembles CR/LF terminated ASCII lines one byte at a time."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, byte: int | None) -> str | None:
        """Feed one byte, return a completed line or None."""
        if byte is None or byte == CR:
            return None
        if len(self._buffer) < MAX_LINE:
            self._buffer.append(byte)
        if byte != LF:
            return None

        line = self._buffer
        self._buffer = bytearray()
        # ignore empty or nearly empty lines
        if len(line) <= 2:
            return None
        return line.decode("ascii", errors="replace").rstrip("\n")
