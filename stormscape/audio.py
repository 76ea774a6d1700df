from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TypeAlias

import numpy as np
from numpy.typing import NDArray

from .errors import InvalidConfigError

FloatArray: TypeAlias = NDArray[np.float64]
AudioNumbers = NDArray[np.floating[Any]] | Sequence[float] | Sequence[Sequence[float]]

SAMPLE_RATE = 44_100
CHANNELS = 2


def ensure_frames(audio: AudioNumbers) -> NDArray[np.float32]:
    """Normalize audio to a `(frames, channels)` float32 array.

    1-D input is treated as mono. Samples are not clipped; the PCM encoder
    clamps on write.
    """

    frames = np.asarray(audio, dtype=np.float32)
    match frames.ndim:
        case 1:
            return frames.reshape(-1, 1)
        case 2:
            return frames
        case _:
            raise InvalidConfigError(f"Audio must be 1-D or 2-D, got shape {frames.shape}")


def peak(audio: AudioNumbers) -> float:
    samples = np.asarray(audio)
    if samples.size == 0:
        return 0.0
    return float(np.max(np.abs(samples)))
