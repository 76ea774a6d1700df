# pyright: reportUnknownMemberType=false

"""16-bit PCM WAV encoding (bit-exact) plus soundfile-backed float I/O."""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Literal

import numpy as np
import soundfile as sf  # type: ignore[import]
from numpy.typing import NDArray

from .audio import AudioNumbers, ensure_frames
from .errors import InvalidConfigError
from .logging_utils import get_logger

_LOGGER = get_logger("wav")

WavSubtype = Literal["PCM_16", "FLOAT"]

# RIFF header, 16-byte PCM fmt chunk and data chunk header.
_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")
_FMT_CHUNK_SIZE = 16
_FORMAT_PCM = 1
_BITS_PER_SAMPLE = 16


def encode_pcm16(samples: AudioNumbers) -> NDArray[np.int16]:
    """Clamp to [-1, 1] and scale asymmetrically, truncating toward zero."""
    clamped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(clamped < 0.0, clamped * 0x8000, clamped * 0x7FFF)
    return np.trunc(scaled).astype("<i2")


def encode_wav(samples: AudioNumbers, sample_rate: int) -> bytes:
    """RIFF/WAVE bytes with interleaved little-endian int16 frames.

    Input is `(frames, channels)` or mono 1-D.
    """
    if sample_rate <= 0:
        raise InvalidConfigError(f"sample_rate must be positive, got {sample_rate}")
    frames = ensure_frames(samples)
    channels = frames.shape[1]
    payload = encode_pcm16(frames).tobytes()
    block_align = channels * _BITS_PER_SAMPLE // 8
    header = _HEADER.pack(
        b"RIFF",
        _HEADER.size - 8 + len(payload),
        b"WAVE",
        b"fmt ",
        _FMT_CHUNK_SIZE,
        _FORMAT_PCM,
        channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        _BITS_PER_SAMPLE,
        b"data",
        len(payload),
    )
    return header + payload


def write_wav(
    path: str | Path,
    samples: AudioNumbers,
    *,
    sample_rate: int,
    subtype: WavSubtype = "PCM_16",
) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    match subtype:
        case "PCM_16":
            target.write_bytes(encode_wav(samples, sample_rate))
        case "FLOAT":
            sf.write(target, ensure_frames(samples), sample_rate, subtype="FLOAT")
        case _:
            raise InvalidConfigError(f"Unsupported WAV subtype: {subtype!r}")
    _LOGGER.info("Wrote %s (%s, sr=%d)", target, subtype, sample_rate)
    return target


def read_wav(path: str | Path) -> tuple[NDArray[np.float32], int]:
    """Read any soundfile-supported file as `(frames, channels)` float32."""
    data, sample_rate = sf.read(str(path), dtype="float32", always_2d=True)
    return np.asarray(data, dtype=np.float32), int(sample_rate)
