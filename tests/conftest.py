import pytest

from mnet_sniffer.protocol import ACK, checksum_byte


def build_frame(source, destination, data, role=0xBD, handshake=ACK, unclassified=0x3F):
    """Return a complete frame with a valid checksum."""
    body = bytes([role, source, destination, unclassified, len(data)]) + bytes(data)
    return body + bytes([checksum_byte(body), handshake])


@pytest.fixture
def make_frame():
    return build_frame


@pytest.fixture
def setpoint_request():
    # 01 -> 02 get setpoint temp
    return build_frame(0x01, 0x02, [0x25, 0x01])


@pytest.fixture
def setpoint_reply():
    # 02 -> 01 setpoint is 19.5 C
    return build_frame(0x02, 0x01, [0x25, 0x81, 0x01, 0x95, 0x00], role=0xBE)


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()
