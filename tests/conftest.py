import pytest

from rplidar_protocol import build_descriptor, encode_sample


def revolution(n, distance=1000.0, quality=15, start_angle=0.0):
    """One revolution of n evenly spaced samples, the first one start-flagged."""
    step = 360.0 / n
    return b"".join(
        encode_sample((start_angle + i * step) % 360.0, distance, quality, start_flag=(i == 0))
        for i in range(n)
    )


def scan_stream(revolutions, n=90, descriptor=True):
    """Descriptor, `revolutions` full turns with distinct distances, and one closing start sample."""
    body = b"".join(revolution(n, distance=1000.0 + 10 * r) for r in range(revolutions))
    closing = encode_sample(0.0, 500.0, 15, start_flag=True)
    return (build_descriptor() if descriptor else b"") + body + closing


@pytest.fixture
def make_revolution():
    return revolution


@pytest.fixture
def make_stream():
    return scan_stream
