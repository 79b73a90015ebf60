import logging
import queue
import threading

from scan_decoder import ScanDecoder

logger = logging.getLogger(__name__)

# Control messages; anything else on the inbox is a bytes chunk
RESET = "reset"
CLOSE = "close"


class DecoderWorker:
    """Runs one ScanDecoder on its own thread.

    Byte chunks and control messages go in through an unbounded inbox and are
    handled strictly in order. Decoded frames come out through a bounded outbox.
    When the consumer falls behind, the oldest frame is dropped (latest wins).
    """

    def __init__(self, config=None, backlog=1):
        self.decoder = ScanDecoder(config)
        self._inbox = queue.SimpleQueue()
        self._outbox = queue.Queue(maxsize=max(1, backlog))
        self._closed = threading.Event()
        self.dropped_frames = 0
        self.error = None

        self.thread = threading.Thread(target=self._decoder_thread, name="rplidar-decoder", daemon=True)

    def start(self):
        self.thread.start()
        return self

    @property
    def closed(self):
        return self._closed.is_set()

    # Copies into an immutable bytes object so the transport can reuse its buffer
    def feed(self, chunk):
        if self._closed.is_set() or not chunk:
            return
        self._inbox.put(bytes(chunk))

    def reset(self):
        if self._closed.is_set():
            return
        self._inbox.put(RESET)

    def close(self):
        if self._closed.is_set():
            return
        self._closed.set()
        self._inbox.put(CLOSE)

    def join(self, timeout=None):
        self.thread.join(timeout)

    def get_frame(self, timeout=None):
        """Next decoded frame, or None if none arrived within ``timeout``."""
        try:
            return self._outbox.get(timeout=timeout)
        except queue.Empty:
            return None

    def frames(self, poll=0.1):
        # Runs until the worker thread has ended and the outbox is drained
        while True:
            frame = self.get_frame(timeout=poll)
            if frame is not None:
                yield frame
            elif not self.thread.is_alive():
                return

    def _publish(self, output):
        try:
            self._outbox.put_nowait(output)
        except queue.Full:
            try:
                self._outbox.get_nowait()
                self.dropped_frames += 1
            except queue.Empty:
                pass
            self._outbox.put_nowait(output)

    def _decoder_thread(self):
        try:
            while True:
                msg = self._inbox.get()
                if msg is CLOSE:
                    break
                if msg is RESET:
                    self.decoder.reset()
                    continue
                for output in self.decoder.feed(msg):
                    self._publish(output)
        except Exception as e:
            # MemoryError from buffer growth lands here too; the worker stops
            self.error = e
            self._closed.set()
            logger.exception("decoder worker terminated")
        finally:
            self.decoder.stop()
            logger.debug("decoder worker exited after %d frames", self.decoder.frames_emitted)
