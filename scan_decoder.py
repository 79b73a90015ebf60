"""Streaming decoder for the RPLIDAR legacy scan.

Bytes go in through ``ScanDecoder.feed``. Completed, corrected and filtered
revolutions come out as ``DecodedOutput`` objects.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from byte_buffer import ByteAccumulator
from frame_correction import DEFAULT_MAX_RANGE_MM, correct_frame, filter_frame
from rplidar_protocol import DESCRIPTOR_LEN, SAMPLE_LEN, SYNC_BYTE, SYNC_BYTE2, decode_sample

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DecoderConfig:
    max_range_mm: float = DEFAULT_MAX_RANGE_MM
    decimation: int = 1

    def __post_init__(self):
        if self.decimation < 1:
            raise ValueError(f"decimation must be >= 1, got {self.decimation}")
        if self.max_range_mm <= 0:
            raise ValueError(f"max_range_mm must be positive, got {self.max_range_mm}")


class SessionState(enum.Enum):
    IDLE = "idle"
    SYNCHRONIZING = "synchronizing"
    STREAMING = "streaming"


class FrameAssembler:
    """Groups samples into revolutions using the per-sample start flag."""

    def __init__(self, on_complete):
        self._on_complete = on_complete
        self.current_frame = []
        self.seen_start = False

    def add(self, sample):
        if sample.start_flag and self.seen_start and self.current_frame:
            self._on_complete(self.current_frame)
            self.current_frame = []
        self.current_frame.append(sample)
        if sample.start_flag:
            self.seen_start = True

    def clear(self):
        self.current_frame = []
        self.seen_start = False


class ScanDecoder:
    def __init__(self, config: DecoderConfig | None = None, on_frame=None):
        self.config = config or DecoderConfig()
        self.on_frame = on_frame
        self.buffer = ByteAccumulator()
        self.assembler = FrameAssembler(self._finish_frame)
        self.state = SessionState.IDLE
        self.descriptor_skipped = False
        self._seen_sample = False
        self._pending = []

        self.samples_decoded = 0
        self.bytes_skipped = 0
        self.frames_emitted = 0

    # Clears everything that belongs to the current scan session
    def reset(self):
        self.buffer.clear()
        self.assembler.clear()
        self.descriptor_skipped = False
        self._seen_sample = False
        self._pending = []
        if self.state is not SessionState.IDLE:
            logger.debug("scan session reset (was %s)", self.state.value)
        self.state = SessionState.IDLE

    def stop(self):
        self.reset()

    def _finish_frame(self, frame):
        corrected = correct_frame(frame)
        output = filter_frame(corrected, self.config.max_range_mm, self.config.decimation)
        if output is None:
            logger.debug("dropped frame of %d samples, nothing in range", len(frame))
            return
        self.frames_emitted += 1
        self._pending.append(output)

    def feed(self, chunk):
        """Process one chunk to completion and return the frames it finished."""
        if self.state is SessionState.IDLE:
            self.state = SessionState.SYNCHRONIZING

        self.buffer.append(chunk)
        self._parse()
        self.buffer.compact()

        emitted, self._pending = self._pending, []
        if self.on_frame is not None:
            for output in emitted:
                self.on_frame(output)
        return emitted

    def _parse(self):
        buf = self.buffer.data
        w = self.buffer.write_pos
        i = head = self.buffer.read_pos
        skipped_run = 0

        while i + SAMPLE_LEN <= w:
            # head of every pass, or any sync position before the first sample
            if not self.descriptor_skipped and (i == head or not self._seen_sample) \
                    and buf[i] == SYNC_BYTE and buf[i + 1] == SYNC_BYTE2:
                if i + DESCRIPTOR_LEN > w:
                    # descriptor split across chunks, wait for the rest
                    break
                i += DESCRIPTOR_LEN
                self.descriptor_skipped = True
                self.state = SessionState.STREAMING
                logger.debug("response descriptor skipped")
                continue

            sample = decode_sample(buf, i)
            if sample is None:
                i += 1
                skipped_run += 1
                continue

            if skipped_run:
                self.bytes_skipped += skipped_run
                logger.debug("resynchronized after skipping %d bytes", skipped_run)
                skipped_run = 0

            self._seen_sample = True
            self.samples_decoded += 1
            self.assembler.add(sample)
            i += SAMPLE_LEN

        self.bytes_skipped += skipped_run
        self.buffer.consume_to(i)
