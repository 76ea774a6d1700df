# pyright: reportUnknownVariableType=false
# pyright: reportUnknownMemberType=false
# pyright: reportUnknownArgumentType=false

"""
DSP primitives the generators build voices from:

1. Biquad filters (coefficients, static, swept and stateful block filters)
2. Equal-power stereo panning and mono up-mix
3. Sine oscillator driven by a frequency curve
4. Streaming convolver for the shared reverb
"""

from __future__ import annotations

import math
from typing import Literal

import numpy as np
from numpy.typing import NDArray
from scipy.signal import lfilter, oaconvolve  # type: ignore[import]

from .audio import FloatArray

FilterKind = Literal["lowpass", "highpass", "bandpass", "peaking"]

SWEEP_SEGMENT = 128
_MIN_FREQ = 1.0


# =============================================================================
# BIQUADS
# =============================================================================


def biquad_coefficients(
    kind: FilterKind,
    frequency: float,
    q: float,
    sample_rate: int,
    gain_db: float = 0.0,
) -> tuple[FloatArray, FloatArray]:
    """Normalized (b, a) for the cookbook biquads.

    Lowpass/highpass read Q in dB (resonance); bandpass/peaking read it as
    the linear quality factor.
    """
    nyquist = sample_rate / 2.0
    freq = min(max(frequency, _MIN_FREQ), nyquist * 0.999)
    w0 = 2.0 * math.pi * freq / sample_rate
    cos_w = math.cos(w0)
    sin_w = math.sin(w0)

    match kind:
        case "lowpass":
            alpha = sin_w / (2.0 * 10.0 ** (q / 20.0))
            b = ((1.0 - cos_w) / 2.0, 1.0 - cos_w, (1.0 - cos_w) / 2.0)
            a = (1.0 + alpha, -2.0 * cos_w, 1.0 - alpha)
        case "highpass":
            alpha = sin_w / (2.0 * 10.0 ** (q / 20.0))
            b = ((1.0 + cos_w) / 2.0, -(1.0 + cos_w), (1.0 + cos_w) / 2.0)
            a = (1.0 + alpha, -2.0 * cos_w, 1.0 - alpha)
        case "bandpass":
            alpha = sin_w / (2.0 * max(q, 1e-4))
            b = (alpha, 0.0, -alpha)
            a = (1.0 + alpha, -2.0 * cos_w, 1.0 - alpha)
        case "peaking":
            gain = 10.0 ** (gain_db / 40.0)
            alpha = sin_w / (2.0 * max(q, 1e-4))
            b = (1.0 + alpha * gain, -2.0 * cos_w, 1.0 - alpha * gain)
            a = (1.0 + alpha / gain, -2.0 * cos_w, 1.0 - alpha / gain)
        case _:
            raise ValueError(f"Unknown filter kind: {kind!r}")

    a0 = a[0]
    return np.asarray(b) / a0, np.asarray(a) / a0


def filter_static(
    signal: FloatArray,
    kind: FilterKind,
    frequency: float,
    q: float,
    sample_rate: int,
) -> FloatArray:
    """Filter along the last axis with fixed coefficients."""
    if signal.shape[-1] == 0:
        return signal
    b, a = biquad_coefficients(kind, frequency, q, sample_rate)
    return np.asarray(lfilter(b, a, signal, axis=-1), dtype=np.float64)


def filter_swept(
    signal: FloatArray,
    kind: FilterKind,
    frequency_curve: FloatArray,
    q: float,
    sample_rate: int,
    *,
    segment: int = SWEEP_SEGMENT,
) -> FloatArray:
    """Filter with a cutoff that follows `frequency_curve` (control-rate)."""
    length = signal.shape[-1]
    out = np.empty_like(signal, dtype=np.float64)
    state = np.zeros(signal.shape[:-1] + (2,))
    for begin in range(0, length, segment):
        end = min(begin + segment, length)
        b, a = biquad_coefficients(kind, float(frequency_curve[begin]), q, sample_rate)
        out[..., begin:end], state = lfilter(b, a, signal[..., begin:end], axis=-1, zi=state)
    return out


class BiquadFilter:
    """Stateful filter for persistent graph nodes processed block by block."""

    def __init__(
        self,
        kind: FilterKind,
        frequency: float,
        *,
        sample_rate: int,
        q: float = 1.0,
        gain_db: float = 0.0,
        channels: int = 2,
    ) -> None:
        self.kind: FilterKind = kind
        self.frequency = frequency
        self.q = q
        self.gain_db = gain_db
        self._sample_rate = sample_rate
        self._channels = channels
        self._state = np.zeros((channels, 2))

    def process(self, block: FloatArray) -> FloatArray:
        if block.shape[-1] == 0:
            return block
        b, a = biquad_coefficients(self.kind, self.frequency, self.q, self._sample_rate, self.gain_db)
        out, self._state = lfilter(b, a, block, axis=-1, zi=self._state)
        return np.asarray(out, dtype=np.float64)

    def reset(self) -> None:
        self._state = np.zeros((self._channels, 2))


# =============================================================================
# PANNING / OSCILLATORS
# =============================================================================


def upmix(mono: FloatArray) -> FloatArray:
    """Copy a mono signal into both stereo channels."""
    return np.vstack((mono, mono))


def pan_stereo(mono: FloatArray, pan: float | FloatArray) -> FloatArray:
    """Equal-power pan of a mono signal; `pan` in [-1, 1] (scalar or per-sample)."""
    position = (np.clip(pan, -1.0, 1.0) + 1.0) / 2.0
    left = mono * np.cos(position * math.pi / 2.0)
    right = mono * np.sin(position * math.pi / 2.0)
    return np.vstack((left, right))


def sine_oscillator(frequency_curve: FloatArray, sample_rate: int) -> FloatArray:
    """Sine wave whose instantaneous frequency follows `frequency_curve`."""
    if frequency_curve.size == 0:
        return np.zeros(0)
    phase = np.concatenate(([0.0], np.cumsum(frequency_curve[:-1]))) / sample_rate
    return np.sin(2.0 * np.pi * phase)


# =============================================================================
# CONVOLUTION
# =============================================================================


class Convolver:
    """Block-streaming convolution reverb with an overlap-add tail.

    The kernel is replaced, never mutated: `set_kernel` swaps the reference,
    and tail samples already produced by the old kernel keep playing out.
    """

    def __init__(self, kernel: FloatArray, *, channels: int = 2) -> None:
        self._channels = channels
        self._kernel = kernel
        self._tail: NDArray[np.float64] = np.zeros((channels, 0))

    @property
    def kernel(self) -> FloatArray:
        return self._kernel

    @property
    def tail_length(self) -> int:
        return int(self._tail.shape[-1])

    def set_kernel(self, kernel: FloatArray) -> None:
        self._kernel = kernel

    def process(self, block: FloatArray) -> FloatArray:
        length = block.shape[-1]
        if self._kernel.shape[-1] > 0 and np.any(block):
            wet = oaconvolve(block, self._kernel, axes=-1)
        else:
            wet = np.zeros((self._channels, length))
        span = max(wet.shape[-1], self.tail_length, length)
        acc = np.zeros((self._channels, span))
        acc[:, : wet.shape[-1]] += wet
        acc[:, : self.tail_length] += self._tail
        remainder = acc[:, length:]
        self._tail = remainder if np.any(remainder) else np.zeros((self._channels, 0))
        return acc[:, :length]

    def reset(self) -> None:
        self._tail = np.zeros((self._channels, 0))
