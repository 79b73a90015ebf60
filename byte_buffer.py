import logging

logger = logging.getLogger(__name__)

INITIAL_CAPACITY = 8192


class ByteAccumulator:
    """Growable byte buffer with a read cursor and a write cursor.

    The parser reads ``data[read_pos:write_pos]`` directly and reports how far
    it got with ``consume_to``. ``compact`` drops the consumed prefix so the
    memory in use follows the unconsumed tail, not the length of the stream.
    """

    def __init__(self, capacity=INITIAL_CAPACITY):
        self._buf = bytearray(max(1, capacity))
        self._r = 0
        self._w = 0

    @property
    def data(self):
        return self._buf

    @property
    def read_pos(self):
        return self._r

    @property
    def write_pos(self):
        return self._w

    @property
    def available(self):
        return self._w - self._r

    @property
    def capacity(self):
        return len(self._buf)

    # Doubles the backing store until `need` bytes fit, keeping only the unread tail
    def _ensure_capacity(self, need):
        if len(self._buf) >= need:
            return
        tail = self._w - self._r
        n = len(self._buf)
        if n >= need - self._r:
            self.compact()
            return
        while n < need - self._r:
            n <<= 1
        grown = bytearray(n)
        grown[:tail] = self._buf[self._r:self._w]
        self._buf = grown
        self._w = tail
        self._r = 0
        logger.debug("byte buffer grown to %d bytes", n)

    def append(self, chunk):
        size = len(chunk)
        if size == 0:
            return
        self._ensure_capacity(self._w + size)
        self._buf[self._w:self._w + size] = chunk
        self._w += size

    def consume_to(self, pos):
        if pos < self._r or pos > self._w:
            raise ValueError(f"read cursor {pos} outside [{self._r}, {self._w}]")
        self._r = pos

    def compact(self):
        if self._r == 0:
            return
        tail = self._w - self._r
        if tail:
            self._buf[:tail] = self._buf[self._r:self._w]
        self._r = 0
        self._w = tail

    def clear(self):
        self._r = 0
        self._w = 0

    def __len__(self):
        return self.available
