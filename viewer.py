"""Live radar view of the latest RPLIDAR revolution.

Keys: s = start scan, x = stop scan, esc/q = quit.
"""

import argparse
import logging
import math
import threading
from dataclasses import dataclass

import numpy as np
import pygame

from lidar import DEFAULT_BAUDRATE, DEFAULT_PORT, Lidar
from frame_correction import DEFAULT_MAX_RANGE_MM
from scan_decoder import DecoderConfig

SCREEN_WIDTH = 900
SCREEN_HEIGHT = 900
FPS = 15
BACKGROUND = (0, 0, 0)
GRID_COLOR = (51, 51, 51)
GRID_BOLD_COLOR = (62, 62, 62)
AXIS_COLOR = (68, 68, 68)
LABEL_COLOR = (158, 158, 158)
POINT_COLOR = (0, 255, 120)


@dataclass(frozen=True)
class RadiusMapper:
    """Non-linear radius: linear up to 1 m, 1-4 m spread over inner_frac of the radius, then out to max range."""

    max_range_mm: float = DEFAULT_MAX_RANGE_MM
    knee_start_mm: float = 1000
    knee_end_mm: float = 4000
    inner_frac: float = 0.60

    def map_mm_to_px(self, d_mm, total_r):
        if d_mm <= 0:
            return 0.0
        if d_mm >= self.max_range_mm:
            return float(total_r)
        r1 = total_r * self.inner_frac
        r2 = total_r - r1
        r_at_knee = r1 * (self.knee_start_mm / self.knee_end_mm)
        if d_mm <= self.knee_start_mm:
            return d_mm / self.knee_start_mm * r_at_knee
        if d_mm <= self.knee_end_mm:
            t = (d_mm - self.knee_start_mm) / (self.knee_end_mm - self.knee_start_mm)
            return r_at_knee + t * (r1 - r_at_knee)
        t = (d_mm - self.knee_end_mm) / (self.max_range_mm - self.knee_end_mm)
        return r1 + t * r2


# 0° points up and angles grow counter-clockwise on screen
def direction(angle_deg):
    rad = math.radians(angle_deg)
    return -math.sin(rad), -math.cos(rad)


def frame_to_screen(frame, center, total_r, mapper):
    """Pixel coordinates (N x 2 int array) for every point of a DecodedOutput."""
    if frame is None or frame.count == 0:
        return np.empty((0, 2), dtype=np.int32)
    rad = np.radians(frame.angles.astype(np.float64))
    radius = np.array([mapper.map_mm_to_px(d, total_r) for d in frame.distances])
    xs = center[0] - np.sin(rad) * radius
    ys = center[1] - np.cos(rad) * radius
    return np.stack([xs, ys], axis=1).round().astype(np.int32)


def draw_grid(screen, font, center, total_r):
    width, height = screen.get_size()
    pygame.draw.line(screen, AXIS_COLOR, (center[0], 0), (center[0], height))
    pygame.draw.line(screen, AXIS_COLOR, (0, center[1]), (width, center[1]))
    for deg in range(0, 360, 10):
        dx, dy = direction(deg)
        major = deg % 30 == 0
        r_inner = total_r * (0.85 if major else 0.9)
        start = (center[0] + dx * r_inner, center[1] + dy * r_inner)
        end = (center[0] + dx * total_r, center[1] + dy * total_r)
        pygame.draw.line(screen, GRID_BOLD_COLOR if major else GRID_COLOR, start, end)
        if major:
            label = font.render(f"{deg}°", True, LABEL_COLOR)
            pos = (center[0] + dx * (total_r + 12), center[1] + dy * (total_r + 12))
            screen.blit(label, label.get_rect(center=pos))


def main():
    parser = argparse.ArgumentParser(description="Live RPLIDAR radar view")
    parser.add_argument("--port", "-p", default=DEFAULT_PORT, help=f"Serial port (default: {DEFAULT_PORT})")
    parser.add_argument("--baudrate", "-b", type=int, default=DEFAULT_BAUDRATE)
    parser.add_argument("--max-range", type=float, default=DEFAULT_MAX_RANGE_MM, help="Drop points at or beyond this range (mm)")
    parser.add_argument("--decimate", type=int, default=2, help="Keep every n-th point")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    mapper = RadiusMapper(max_range_mm=args.max_range)

    latest = {"frame": None, "version": 0}
    lock = threading.Lock()

    def on_full_scan(frame):
        with lock:
            latest["frame"] = frame
            latest["version"] += 1

    lidar = Lidar(args.port, args.baudrate, DecoderConfig(args.max_range, args.decimate))
    lidar.set_callback(on_full_scan)
    lidar.start_scanning()
    lidar.get_info_and_health()
    lidar.start_scan()

    pygame.init()
    screen = pygame.display.set_mode((SCREEN_WIDTH, SCREEN_HEIGHT))
    pygame.display.set_caption("RPLIDAR")
    clock = pygame.time.Clock()
    font = pygame.font.SysFont(None, 18)
    center = (SCREEN_WIDTH // 2, SCREEN_HEIGHT // 2)
    total_r = min(SCREEN_WIDTH, SCREEN_HEIGHT) * 0.45

    painted_version = -1
    running = True
    try:
        while running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN:
                    if event.key in (pygame.K_ESCAPE, pygame.K_q):
                        running = False
                    elif event.key == pygame.K_s:
                        lidar.start_scan()
                    elif event.key == pygame.K_x:
                        lidar.stop_scan()

            with lock:
                frame, version = latest["frame"], latest["version"]

            # Repaint only when a new revolution came in
            if version != painted_version:
                screen.fill(BACKGROUND)
                draw_grid(screen, font, center, total_r)
                for x, y in frame_to_screen(frame, center, total_r, mapper):
                    screen.set_at((int(x), int(y)), POINT_COLOR)
                count = frame.count if frame is not None else 0
                screen.blit(font.render(f"Points: {count}", True, LABEL_COLOR), (10, 10))
                pygame.display.flip()
                painted_version = version

            clock.tick(FPS)
    except KeyboardInterrupt:
        print("\nInterrupted by keyboard")
    finally:
        lidar.close()
        pygame.quit()


if __name__ == "__main__":
    main()
