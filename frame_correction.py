"""Angle reconstruction ("ascend") and output filtering for one revolution.

The sensor's per-sample angle is only trusted next to samples that returned a
distance. Everything else is extrapolated with uniform spacing of 360/n
degrees, and the frame is then sorted so angles ascend.
"""

from __future__ import annotations

from dataclasses import dataclass
from operator import attrgetter

import numpy as np

DEFAULT_MAX_RANGE_MM = 12000


def wrap360(angle: float) -> float:
    return ((angle % 360.0) + 360.0) % 360.0


def _first_valid(frame) -> int:
    for i, sample in enumerate(frame):
        if sample.distance > 0:
            return i
    return -1


def _last_valid(frame) -> int:
    for i in range(len(frame) - 1, -1, -1):
        if frame[i].distance > 0:
            return i
    return -1


# Walks backward from the first valid sample, spacing the leading misses by -inc
def head_tune(frame, inc: float) -> int:
    first = _first_valid(frame)
    for j in range(first - 1, -1, -1):
        frame[j] = frame[j].with_angle(wrap360(frame[j + 1].angle - inc))
    return first


# Walks forward from the last valid sample, spacing the trailing misses by +inc
def tail_tune(frame, inc: float) -> int:
    last = _last_valid(frame)
    if last < 0:
        return last
    for j in range(last + 1, len(frame)):
        frame[j] = frame[j].with_angle(wrap360(frame[j - 1].angle + inc))
    return last


def fill_invalid(frame, inc: float) -> None:
    """Re-derive the angle of every miss after frame[0] from frame[0] and uniform spacing.

    Tail-tuned misses are rewritten too; only frame[0] anchors the spacing.
    """
    front_angle = frame[0].angle
    for k in range(1, len(frame)):
        if frame[k].distance <= 0:
            frame[k] = frame[k].with_angle(wrap360(front_angle + k * inc))


def correct_frame(samples) -> list:
    """Return a new, angle-corrected and ascending copy of ``samples``.

    A frame with no valid distance at all is returned as is (in arrival order).
    """
    frame = list(samples)
    n = len(frame)
    if n == 0:
        return frame

    inc = 360.0 / n
    first = head_tune(frame, inc)
    if first < 0:
        return frame
    tail_tune(frame, inc)
    fill_invalid(frame, inc)

    # sorted() is stable, equal angles keep arrival order
    return sorted(frame, key=attrgetter("angle"))


@dataclass(frozen=True, eq=False)
class DecodedOutput:
    angles: np.ndarray       # float32 degrees
    distances: np.ndarray    # float32 mm
    qualities: np.ndarray    # uint8

    @property
    def count(self) -> int:
        return int(self.angles.shape[0])

    def __len__(self):
        return self.count

    def points(self):
        """Yield (angle, distance, quality) tuples; handy for consumers that want rows."""
        for i in range(self.count):
            yield float(self.angles[i]), float(self.distances[i]), int(self.qualities[i])


def filter_frame(frame, max_range_mm: float = DEFAULT_MAX_RANGE_MM, decimation: int = 1) -> DecodedOutput | None:
    """Keep every ``decimation``-th sample with 0 < distance < max_range_mm.

    Returns None when nothing survives.
    """
    if decimation < 1:
        raise ValueError(f"decimation must be >= 1, got {decimation}")

    n0 = len(frame)
    if n0 == 0:
        return None

    upper = -(-n0 // decimation)
    angles = np.empty(upper, dtype=np.float32)
    distances = np.empty(upper, dtype=np.float32)
    qualities = np.empty(upper, dtype=np.uint8)

    j = 0
    for i in range(0, n0, decimation):
        sample = frame[i]
        if sample.distance <= 0 or sample.distance >= max_range_mm:
            continue
        angles[j] = sample.angle
        distances[j] = sample.distance
        qualities[j] = sample.quality
        j += 1

    if j == 0:
        return None

    angles = angles[:j].copy()
    distances = distances[:j].copy()
    qualities = qualities[:j].copy()
    for arr in (angles, distances, qualities):
        arr.setflags(write=False)
    return DecodedOutput(angles, distances, qualities)
