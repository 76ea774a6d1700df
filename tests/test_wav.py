from __future__ import annotations

import struct
from pathlib import Path

import numpy as np
import pytest

from stormscape.errors import InvalidConfigError
from stormscape.wav import encode_pcm16, encode_wav, read_wav, write_wav


def test_extremes_encode_to_int16_limits() -> None:
    data = encode_wav(np.array([[1.0, -1.0]], dtype=np.float32), 44_100)
    assert data[44:] == bytes([0xFF, 0x7F, 0x00, 0x80])


def test_all_zero_input_gives_zero_payload() -> None:
    frames, channels = 100, 2
    data = encode_wav(np.zeros((frames, channels)), 44_100)
    assert len(data) == 44 + frames * channels * 2
    assert data[44:] == bytes(frames * channels * 2)


def test_header_fields() -> None:
    samples = np.zeros((10, 2))
    data = encode_wav(samples, 22_050)
    (
        riff,
        riff_size,
        wave,
        fmt,
        fmt_size,
        tag,
        channels,
        rate,
        byte_rate,
        block_align,
        bits,
        data_id,
        data_size,
    ) = struct.unpack("<4sI4s4sIHHIIHH4sI", data[:44])
    assert (riff, wave, fmt, data_id) == (b"RIFF", b"WAVE", b"fmt ", b"data")
    assert riff_size == len(data) - 8
    assert (fmt_size, tag, channels, rate, bits) == (16, 1, 2, 22_050, 16)
    assert byte_rate == 22_050 * 2 * 2
    assert block_align == 4
    assert data_size == 40


def test_pcm_scaling_clamps_and_truncates() -> None:
    encoded = encode_pcm16(np.array([2.0, -3.0, 0.5, -0.5, 1e-6, -1e-6]))
    assert encoded.tolist() == [32767, -32768, 16383, -16384, 0, 0]


def test_frames_are_interleaved() -> None:
    samples = np.array([[0.5, -0.5], [0.25, -0.25]])
    payload = np.frombuffer(encode_wav(samples, 8_000)[44:], dtype="<i2")
    assert payload.tolist() == [16383, -16384, 8191, -8192]


def test_mono_input_is_single_channel() -> None:
    data = encode_wav([0.0, 0.1, -0.1], 8_000)
    assert struct.unpack("<H", data[22:24])[0] == 1
    assert len(data) == 44 + 3 * 2


def test_invalid_sample_rate_is_rejected() -> None:
    with pytest.raises(InvalidConfigError):
        encode_wav(np.zeros((4, 2)), 0)


def test_write_and_read_pcm(tmp_path: Path) -> None:
    samples = np.array([[0.5, -0.5], [0.0, 0.25]], dtype=np.float32)
    target = write_wav(tmp_path / "nested" / "out.wav", samples, sample_rate=16_000)
    assert target.read_bytes() == encode_wav(samples, 16_000)
    audio, rate = read_wav(target)
    assert rate == 16_000
    assert audio.shape == (2, 2)
    assert audio == pytest.approx(samples, abs=1e-4)


def test_write_float_round_trips_exactly(tmp_path: Path) -> None:
    samples = np.array([[0.123, -0.456], [0.789, -1.5]], dtype=np.float32)
    target = write_wav(tmp_path / "float.wav", samples, sample_rate=48_000, subtype="FLOAT")
    audio, rate = read_wav(target)
    assert rate == 48_000
    assert np.array_equal(audio, samples)


def test_unknown_subtype_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigError):
        write_wav(tmp_path / "x.wav", np.zeros(4), sample_rate=8_000, subtype="PCM_24")  # type: ignore[arg-type]
