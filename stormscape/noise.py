# pyright: reportUnknownVariableType=false
# pyright: reportUnknownArgumentType=false

"""Procedural noise buffers: noise colours, reverb kernels and event grains.

Every function is pure given its random source and returns a finite buffer.
Buffers are float64 arrays; multichannel buffers are `(channels, length)`.
"""

from __future__ import annotations

import numpy as np
from scipy.signal import lfilter  # type: ignore[import]

from .audio import FloatArray

# Paul Kellet's refined pink filter: (pole, input gain) per running state b0..b5.
_KELLET_POLES: tuple[tuple[float, float], ...] = (
    (0.99886, 0.0555179),
    (0.99332, 0.0750759),
    (0.96900, 0.1538520),
    (0.86650, 0.3104856),
    (0.55000, 0.5329522),
    (-0.7616, -0.0168980),
)
_KELLET_DIRECT = 0.5362
_KELLET_DELAYED = 0.115926
_KELLET_SCALE = 0.11


def _length(duration: float, sample_rate: int) -> int:
    return max(0, int(sample_rate * duration))


def white_noise(length: int, rng: np.random.Generator) -> FloatArray:
    """i.i.d. uniform samples in [-1, 1)."""
    return rng.uniform(-1.0, 1.0, max(0, length))


def pink_noise(length: int, rng: np.random.Generator) -> FloatArray:
    """Pink noise from the Kellet 6-pole filter bank (~ -3 dB/octave)."""
    white = white_noise(length, rng)
    if white.size == 0:
        return white
    pink = white * _KELLET_DIRECT
    for pole, gain in _KELLET_POLES:
        pink += lfilter([gain], [1.0, -pole], white)
    # b6 holds the previous sample's white contribution
    pink[1:] += white[:-1] * _KELLET_DELAYED
    return pink * _KELLET_SCALE


def impulse_response(
    channels: int,
    duration: float,
    decay: float,
    sample_rate: int,
    rng: np.random.Generator,
) -> FloatArray:
    """Decaying noise kernel: `U(-1,1) * (1 - i/length)**decay` per channel."""
    length = _length(duration, sample_rate)
    shape = (1.0 - np.arange(length) / max(length, 1)) ** decay
    kernel = rng.uniform(-1.0, 1.0, (channels, length)) * shape
    kernel.setflags(write=False)
    return kernel


def grain_envelope(length: int, shape: float, rng: np.random.Generator) -> FloatArray:
    """Noise transient for a single raindrop, faded by `(1 - i/length)**shape`."""
    length = max(0, length)
    fade = (1.0 - np.arange(length) / max(length, 1)) ** shape
    return white_noise(length, rng) * fade


def thunder_body(duration: float, sample_rate: int, rng: np.random.Generator) -> FloatArray:
    """Burst transient with a quarter-duration build-up and exponential decay.

    The squared uniform factor concentrates energy into sparse peaks, which
    reads as a sharper attack than plain white noise.
    """
    length = _length(duration, sample_rate)
    span = sample_rate * duration
    index = np.arange(length)
    build_up = np.minimum(1.0, index / (span * 0.25))
    decay = np.exp(-index / span)
    grain = white_noise(length, rng) * rng.random(length) ** 2
    return grain * decay * build_up


def crackle_tail(
    duration: float,
    sample_rate: int,
    crackle_amount: float,
    rng: np.random.Generator,
) -> FloatArray:
    """Leaky-integrated noise, 1.5x the burst duration, for the rumble tail."""
    length = _length(duration * 1.5, sample_rate)
    white = white_noise(length, rng)
    if length == 0:
        return white
    divisor = 1.02 + 0.05 * crackle_amount
    # y[n] = (y[n-1] + 0.02*w[n]*c) / divisor
    integrated = lfilter([0.02 * crackle_amount / divisor], [1.0, -1.0 / divisor], white)
    envelope = np.exp(-np.arange(length) / (sample_rate * duration))
    return integrated * 1.5 * envelope


def crackle_pop(length: int, rng: np.random.Generator) -> FloatArray:
    """Sparse clicks: roughly 30% of samples carry noise, the rest are silent."""
    length = max(0, length)
    gate = rng.random(length) > 0.7
    return np.where(gate, white_noise(length, rng), 0.0)
