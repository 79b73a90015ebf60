import argparse
import logging
import time

from lidar import DEFAULT_BAUDRATE, DEFAULT_PORT, Lidar
from frame_correction import DEFAULT_MAX_RANGE_MM
from scan_decoder import DecoderConfig


def main():
    parser = argparse.ArgumentParser(description="Print a summary of every RPLIDAR revolution")
    parser.add_argument("--port", "-p", default=DEFAULT_PORT, help=f"Serial port (default: {DEFAULT_PORT})")
    parser.add_argument("--baudrate", "-b", type=int, default=DEFAULT_BAUDRATE)
    parser.add_argument("--max-range", type=float, default=DEFAULT_MAX_RANGE_MM)
    parser.add_argument("--decimate", type=int, default=1)
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    prev_time = time.time()

    def on_full_scan(frame):
        nonlocal prev_time
        now = time.time()
        print(f"[Frame] {frame.count:4d} points | "
              f"range {frame.distances.min():6.0f} - {frame.distances.max():6.0f} mm | "
              f"took {(now - prev_time) * 1000:.0f} ms")
        prev_time = now

    lidar = Lidar(args.port, args.baudrate, DecoderConfig(args.max_range, args.decimate))
    try:
        lidar.set_callback(on_full_scan)
        lidar.start_scanning()
        lidar.start_scan()
        while lidar.reader_thread.is_alive():
            time.sleep(0.5)
        if lidar.error:
            print(f"Serial error: {lidar.error}")
    except KeyboardInterrupt:
        print("Interrupted by keyboard")
    finally:
        decoder = lidar.worker.decoder
        print(f"{decoder.frames_emitted} frames, {decoder.samples_decoded} samples, "
              f"{decoder.bytes_skipped} bytes skipped, {lidar.worker.dropped_frames} frames dropped")
        lidar.close()


if __name__ == "__main__":
    main()
