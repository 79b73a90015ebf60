import math
import logging

import numpy as np

logger = logging.getLogger(__name__)

# Distances in mm, angles in degrees (0 = straight ahead)
DISPARITY_THRESHOLD = 200
WIDTH_OF_CAR = 300
MIN_QUALITY = 5          # legacy scan quality is 6-bit

# Distance threshold to consider an obstacle dangerous (in mm)
DANGER_THRESHOLD = 300


# Check if an angle is in the front-facing field of view
def in_front(angle): return angle <= 30 or angle >= 330


def front_view(frame, min_quality=MIN_QUALITY):
    """Angles and distances of the forward half-plane, ordered from right (270) to left (90)."""
    angles = frame.angles
    mask = ((angles <= 90) | (angles >= 270)) & (frame.qualities > min_quality)
    a = angles[mask].astype(np.float64)
    d = frame.distances[mask].astype(np.float64)
    # -90..90 so neighbouring indices are neighbouring directions
    signed = np.where(a >= 270, a - 360, a)
    order = np.argsort(signed, kind="stable")
    return a[order], d[order]


def get_disparities(distances, threshold=DISPARITY_THRESHOLD):
    disparities = []
    for i in range(len(distances) - 1):
        d1 = distances[i]
        d2 = distances[i + 1]
        if abs(d1 - d2) > threshold:
            # Always extend toward the farther point (higher distance)
            if d2 >= d1:
                disparities.append((i + 1, d1, 1))
            else:
                disparities.append((i, d2, -1))
    return disparities


def extend_disparities(distances, samples_per_degree, width=WIDTH_OF_CAR):
    """Clip the far side of every disparity to the near distance over the car's width."""
    extended = np.array(distances, dtype=np.float64)
    for farther_idx, closer_distance, step in get_disparities(extended):
        if closer_distance <= 0:
            continue
        theta_deg = math.degrees(math.atan(width / closer_distance))
        samples_to_cover = int(theta_deg * samples_per_degree)
        i = farther_idx
        for _ in range(samples_to_cover):
            if i < 0 or i >= len(extended):
                break
            if extended[i] > closer_distance: # Only overwrite if it's farther
                extended[i] = closer_distance
            i += step
    return extended


def find_open_angle(frame, min_quality=MIN_QUALITY):
    """Returns (angle, distance) of the deepest direction ahead, or None if nothing is visible."""
    angles, distances = front_view(frame, min_quality)
    if len(distances) == 0:
        return None
    samples_per_degree = frame.count / 360.0
    extended = extend_disparities(distances, samples_per_degree)
    best = int(np.argmax(extended))
    return float(angles[best]), float(extended[best])


class OpenPathTracker:
    """Keeps the steering target up to date from the lidar's full-scan callback."""

    def __init__(self, danger_threshold=DANGER_THRESHOLD):
        self.danger_threshold = danger_threshold
        self.obj_detected = False
        self.target_angle = 0.0
        self.target_distance = 0.0

    # Callback function called every time a full 360° scan is complete
    def on_full_scan(self, frame):
        front = np.array([in_front(a) for a in frame.angles], dtype=bool)
        close = frame.distances[front] < self.danger_threshold
        self.obj_detected = bool(close.any())

        target = find_open_angle(frame)
        if target is None:
            self.target_angle = 0.0
            self.target_distance = 0.0
            return
        self.target_angle, self.target_distance = target
        if self.obj_detected:
            logger.info("obstacle ahead, steering to %.1f° (%.0f mm open)", self.target_angle, self.target_distance)
