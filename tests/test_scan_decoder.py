import numpy as np
import pytest

from rplidar_protocol import build_descriptor, encode_sample
from scan_decoder import DecoderConfig, FrameAssembler, ScanDecoder, SessionState


def feed_in_chunks(decoder, data, size):
    frames = []
    for i in range(0, len(data), size):
        frames.extend(decoder.feed(data[i:i + size]))
    return frames


def collect_samples(decoder):
    samples = []
    decoder.assembler.add = samples.append
    return samples


def test_descriptor_is_skipped_once(make_revolution):
    decoder = ScanDecoder()
    samples = collect_samples(decoder)
    decoder.feed(build_descriptor() + make_revolution(8))
    assert decoder.descriptor_skipped
    assert decoder.state is SessionState.STREAMING
    assert decoder.bytes_skipped == 0
    assert len(samples) == 8


def test_descriptor_split_across_chunks(make_revolution):
    decoder = ScanDecoder()
    samples = collect_samples(decoder)
    data = build_descriptor() + make_revolution(8)
    decoder.feed(data[:5])
    assert decoder.state is SessionState.SYNCHRONIZING
    assert samples == []
    decoder.feed(data[5:])
    assert decoder.descriptor_skipped
    assert len(samples) == 8
    assert decoder.bytes_skipped == 0


def test_samples_decode_without_descriptor(make_revolution):
    decoder = ScanDecoder()
    samples = collect_samples(decoder)
    decoder.feed(make_revolution(8))
    assert not decoder.descriptor_skipped
    assert decoder.state is SessionState.SYNCHRONIZING
    assert len(samples) == 8


def test_trailing_partial_sample_is_kept(make_revolution):
    decoder = ScanDecoder()
    samples = collect_samples(decoder)
    data = make_revolution(4)
    decoder.feed(data[:12])
    assert len(samples) == 2
    assert decoder.buffer.available == 2
    decoder.feed(data[12:])
    assert len(samples) == 4
    assert decoder.buffer.available == 0


def test_n_starts_close_n_minus_one_frames():
    data = b""
    for rev in range(4):
        data += encode_sample(0.0, 1000.0, 10, start_flag=True)
        data += b"".join(encode_sample(float(i * 30), 1000.0, 10) for i in range(1, 11))
    frames = ScanDecoder().feed(data)
    assert len(frames) == 3
    assert all(f.count == 11 for f in frames)


def test_first_start_never_emits_early():
    data = encode_sample(0.0, 1000.0, 10, start_flag=True)
    data += encode_sample(180.0, 1000.0, 10)
    assert ScanDecoder().feed(data) == []


def test_no_start_flag_never_emits():
    data = b"".join(encode_sample(float(i), 1000.0, 10) for i in range(50))
    decoder = ScanDecoder()
    assert decoder.feed(data) == []
    assert decoder.frames_emitted == 0


def test_assembler_keeps_samples_before_first_start():
    completed = []
    assembler = FrameAssembler(completed.append)
    for s in (False, False, True, False, True):
        assembler.add(type("S", (), {"start_flag": s})())
    assert len(completed) == 1
    assert len(completed[0]) == 4
    assert len(assembler.current_frame) == 1


def test_resync_after_inserted_byte(make_revolution):
    clean = make_revolution(20)
    corrupted = clean[:25] + b"\x00" + clean[25:]
    decoder = ScanDecoder()
    samples = collect_samples(decoder)
    decoder.feed(corrupted)
    assert len(samples) == 20
    assert decoder.bytes_skipped == 1
    assert [s.angle for s in samples] == [i * 18.0 for i in range(20)]


def test_resync_after_missing_byte():
    clean = b"".join(encode_sample(float(i), 1000.0, 15, start_flag=(i == 0)) for i in range(12))
    corrupted = clean[:20] + clean[21:]
    decoder = ScanDecoder()
    samples = collect_samples(decoder)
    decoder.feed(corrupted)
    # sample 4 lost its first byte, everything after it decodes again
    assert [s.angle for s in samples] == [0.0, 1.0, 2.0, 3.0] + [float(i) for i in range(5, 12)]
    assert decoder.bytes_skipped == 4


def test_end_to_end_single_revolution():
    data = build_descriptor()
    data += encode_sample(0.0, 1000.0, 20, start_flag=True)
    data += b"".join(encode_sample(0.0, 0.0, 0) for _ in range(358))
    data += encode_sample(359.0, 1004.0, 20)
    data += encode_sample(0.0, 1000.0, 20, start_flag=True)
    frames = ScanDecoder().feed(data)
    assert len(frames) == 1
    assert frames[0].count == 2
    assert frames[0].angles.tolist() == [0.0, 359.0]
    assert frames[0].distances.tolist() == [1000.0, 1004.0]
    assert frames[0].qualities.tolist() == [20, 20]


@pytest.mark.parametrize("size", [1, 3, 5000])
def test_chunking_does_not_change_output(make_stream, size):
    data = make_stream(5)
    # a stray byte between two revolutions
    data = data[:7 + 90 * 5 * 2] + b"\x00" + data[7 + 90 * 5 * 2:]
    expected = ScanDecoder().feed(data)
    got = feed_in_chunks(ScanDecoder(), data, size)
    assert len(expected) == 5
    assert len(got) == len(expected)
    for a, b in zip(got, expected):
        assert np.array_equal(a.angles, b.angles)
        assert np.array_equal(a.distances, b.distances)
        assert np.array_equal(a.qualities, b.qualities)


def test_frames_are_ascending_and_filtered(make_stream):
    frames = ScanDecoder(DecoderConfig(max_range_mm=1015)).feed(make_stream(3))
    # third revolution is at 1020 mm, beyond range
    assert [f.count for f in frames] == [90, 90]
    for f in frames:
        assert np.all(np.diff(f.angles) >= 0)
        assert np.all(f.distances > 0)


def test_decimation(make_stream):
    frames = ScanDecoder(DecoderConfig(decimation=3)).feed(make_stream(1))
    assert frames[0].count == 30


def test_reset_drops_partial_frame_and_descriptor_state(make_revolution, make_stream):
    decoder = ScanDecoder()
    decoder.feed(build_descriptor() + make_revolution(10, distance=2000.0)[:-3])
    decoder.reset()
    assert decoder.state is SessionState.IDLE
    assert not decoder.descriptor_skipped
    assert decoder.buffer.available == 0

    frames = decoder.feed(make_stream(1))
    assert decoder.descriptor_skipped
    assert len(frames) == 1
    assert set(frames[0].distances.tolist()) == {1000.0}


def test_on_frame_callback(make_stream):
    seen = []
    decoder = ScanDecoder(on_frame=seen.append)
    frames = decoder.feed(make_stream(2))
    assert seen == frames
    assert decoder.frames_emitted == 2


def test_invalid_config():
    with pytest.raises(ValueError):
        DecoderConfig(decimation=0)
    with pytest.raises(ValueError):
        DecoderConfig(max_range_mm=0)


def test_descriptor_after_stale_sample_is_still_skipped(make_revolution, make_stream):
    decoder = ScanDecoder()
    decoder.feed(make_revolution(8))
    decoder.reset()
    # a sample from the previous scan lands after the reset, ahead of the new descriptor
    decoder.feed(encode_sample(300.0, 1000.0, 15))
    frames = decoder.feed(make_stream(2))
    assert decoder.descriptor_skipped
    assert decoder.state is SessionState.STREAMING
    assert decoder.bytes_skipped == 0
    assert [f.count for f in frames] == [91, 90]
    assert frames[0].distances.max() == 1000.0


def test_decimation_after_tail_misses_are_respaced():
    data = encode_sample(0.0, 100.0, 10, start_flag=True)
    data += encode_sample(200.0, 100.0, 10)
    data += encode_sample(5.0, 0.0, 10)
    data += encode_sample(7.0, 0.0, 10)
    data += encode_sample(0.0, 100.0, 10, start_flag=True)
    frames = ScanDecoder(DecoderConfig(decimation=2)).feed(data)
    # corrected order is 0, 180 (miss), 200, 270 (miss)
    assert len(frames) == 1
    assert frames[0].angles.tolist() == [0.0, 200.0]
