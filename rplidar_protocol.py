"""Wire-level constants and sample decoding for the RPLIDAR legacy scan."""

from __future__ import annotations

from dataclasses import dataclass, replace

SYNC_BYTE = 0xA5
SYNC_BYTE2 = 0x5A

CMD_SCAN = 0x20
CMD_STOP = 0x25
CMD_GET_INFO = 0x50
CMD_GET_HEALTH = 0x52

DESCRIPTOR_SIGNATURE = bytes((SYNC_BYTE, SYNC_BYTE2))
DESCRIPTOR_LEN = 7
SAMPLE_LEN = 5


# Two-byte request: sync byte followed by the command
def build_command(cmd: int) -> bytes:
    return bytes((SYNC_BYTE, cmd & 0xFF))


SCAN_COMMAND = build_command(CMD_SCAN)
STOP_COMMAND = build_command(CMD_STOP)
GET_INFO_COMMAND = build_command(CMD_GET_INFO)
GET_HEALTH_COMMAND = build_command(CMD_GET_HEALTH)


@dataclass(frozen=True, slots=True)
class RawSample:
    angle_raw: int       # Q6, 1/64 degree
    distance_raw: int    # Q2, 1/4 mm
    quality: int
    start_flag: bool
    angle: float         # degrees, may be replaced by frame correction
    distance: float      # mm

    def with_angle(self, angle: float) -> RawSample:
        return replace(self, angle=angle)


def is_sample_valid(b0: int, b1: int) -> bool:
    """Start bit and inverted start bit must differ, and the check bit must be set."""
    s = b0 & 0x01
    not_s = (b0 >> 1) & 0x01
    return (s ^ not_s) == 1 and (b1 & 0x01) == 1


def decode_sample(data, offset: int = 0) -> RawSample | None:
    """Decode the 5-byte record at ``offset``.

    Returns None when the start-bit parity or the check bit fails, which tells
    the caller to slide the window by one byte.
    """
    b0 = data[offset]
    b1 = data[offset + 1]
    if not is_sample_valid(b0, b1):
        return None
    b2 = data[offset + 2]
    b3 = data[offset + 3]
    b4 = data[offset + 4]

    angle_raw = ((b1 >> 1) | (b2 << 7)) & 0x7FFF
    distance_raw = b3 | (b4 << 8)
    return RawSample(
        angle_raw=angle_raw,
        distance_raw=distance_raw,
        quality=(b0 >> 2) & 0x3F,
        start_flag=(b0 & 0x01) != 0,
        angle=angle_raw / 64.0,
        distance=distance_raw / 4.0,
    )


def encode_sample(angle: float, distance: float, quality: int = 0, start_flag: bool = False) -> bytes:
    """Build a valid 5-byte record; used by simulators and tests."""
    angle_raw = int(round(angle * 64.0)) & 0x7FFF
    distance_raw = int(round(distance * 4.0)) & 0xFFFF
    s = 1 if start_flag else 0
    b0 = ((quality & 0x3F) << 2) | ((s ^ 1) << 1) | s
    b1 = ((angle_raw << 1) & 0xFF) | 0x01
    b2 = (angle_raw >> 7) & 0xFF
    return bytes((b0, b1, b2, distance_raw & 0xFF, (distance_raw >> 8) & 0xFF))


def build_descriptor() -> bytes:
    # Response descriptor of the legacy scan: size 5, multi-response, type 0x81
    return DESCRIPTOR_SIGNATURE + bytes((0x05, 0x00, 0x00, 0x40, 0x81))
