import logging
import threading
import time

import serial

from decoder_worker import DecoderWorker
from rplidar_protocol import GET_HEALTH_COMMAND, GET_INFO_COMMAND, SCAN_COMMAND, STOP_COMMAND

logger = logging.getLogger(__name__)

DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_BAUDRATE = 460800
READ_CHUNK = 4096


class LidarError(Exception):
    '''Raised when talking to a lidar whose port is not open'''


class Lidar:

    def __init__(self, port=DEFAULT_PORT, baudrate=DEFAULT_BAUDRATE, config=None, timeout=0.05, backlog=1):
        # serial_for_url also accepts plain device paths
        self.ser = serial.serial_for_url(port, baudrate=baudrate, timeout=timeout)
        self.ser.dtr = True
        self.ser.rts = True
        self.worker = DecoderWorker(config, backlog)
        self.latest_full_scan = None
        self.error = None
        self._stop = threading.Event()

        self.full_scan_callback = None # User-defined function to call on full scan

        # Threads for reading serial data and handing decoded frames to the callback
        self.reader_thread = threading.Thread(target=self._serial_reader_thread, name="rplidar-reader", daemon=True)
        self.dispatch_thread = threading.Thread(target=self._frame_dispatch_thread, name="rplidar-dispatch", daemon=True)

    def _write(self, data):
        if self.ser is None or not self.ser.is_open:
            raise LidarError("serial port is not open")
        self.ser.write(data)
        logger.debug("command sent: %s", data.hex(" "))

    # Info/health answers are left in the stream; the decoder resyncs past them
    def get_info_and_health(self):
        self._write(GET_INFO_COMMAND)
        time.sleep(0.01)
        self._write(GET_HEALTH_COMMAND)

    # Stops any running scan, drops the old session state, then starts a fresh scan
    def start_scan(self):
        self._write(STOP_COMMAND)
        time.sleep(0.005)
        self.worker.reset()
        self._write(SCAN_COMMAND)
        logger.info("scan started")

    def stop_scan(self):
        if self.ser is not None and self.ser.is_open:
            self._write(STOP_COMMAND)
            time.sleep(0.005)
            logger.info("scan stopped")

    # Continuously reads whatever the port has and passes it to the decoder worker
    def _serial_reader_thread(self):
        while not self._stop.is_set():
            try:
                data = self.ser.read(self.ser.in_waiting or 1)
            except serial.SerialException as e:
                self.error = e
                logger.error("serial read failed: %s", e)
                break
            if data:
                self.worker.feed(data)
        self.worker.close()

    # Delivers every decoded frame to the registered callback
    def _frame_dispatch_thread(self):
        for frame in self.worker.frames():
            self.latest_full_scan = frame
            if self.full_scan_callback:
                try:
                    self.full_scan_callback(frame)
                except Exception:
                    # logged, later frames still get dispatched
                    logger.exception("full scan callback failed")

    # Register a callback to be invoked on every full 360° scan
    def set_callback(self, callback_func):
        self.full_scan_callback = callback_func

    # Start background threads for decoding, serial reading and dispatch
    def start_scanning(self):
        self.worker.start()
        self.reader_thread.start()
        self.dispatch_thread.start()

    # Gracefully stop scanning and close the serial port
    def close(self):
        try:
            self.stop_scan()
        except serial.SerialException as e:
            logger.warning("could not send stop command: %s", e)
        self._stop.set()
        if self.reader_thread.is_alive():
            self.reader_thread.join(timeout=1.0)
        self.worker.close()
        if self.dispatch_thread.is_alive():
            self.dispatch_thread.join(timeout=1.0)
        self.ser.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
