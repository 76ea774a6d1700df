from __future__ import annotations

import math

import numpy as np
import pytest

from stormscape.dsp import (
    BiquadFilter,
    Convolver,
    biquad_coefficients,
    filter_static,
    filter_swept,
    pan_stereo,
    sine_oscillator,
    upmix,
)

_SR = 44_100


def _sine(freq: float, length: int = _SR) -> np.ndarray:
    return np.sin(2.0 * np.pi * freq * np.arange(length) / _SR)


def _rms(signal: np.ndarray) -> float:
    return float(np.sqrt(np.mean(signal**2)))


def test_lowpass_has_unity_dc_gain() -> None:
    b, a = biquad_coefficients("lowpass", 1000.0, 1.0, _SR)
    assert b.sum() / a.sum() == pytest.approx(1.0)


def test_highpass_blocks_dc() -> None:
    b, a = biquad_coefficients("highpass", 1000.0, 1.0, _SR)
    assert b.sum() / a.sum() == pytest.approx(0.0, abs=1e-12)


def test_flat_peaking_band_is_identity() -> None:
    b, a = biquad_coefficients("peaking", 1000.0, 1.0, _SR, gain_db=0.0)
    assert b == pytest.approx(a)


def test_unknown_filter_kind_raises() -> None:
    with pytest.raises(ValueError):
        biquad_coefficients("notch", 1000.0, 1.0, _SR)  # type: ignore[arg-type]


def test_bandpass_passes_centre_and_rejects_far_bands() -> None:
    centre = filter_static(_sine(1000.0), "bandpass", 1000.0, 5.0, _SR)[_SR // 2 :]
    far = filter_static(_sine(8000.0), "bandpass", 1000.0, 5.0, _SR)[_SR // 2 :]
    assert _rms(centre) == pytest.approx(_rms(_sine(1000.0)), rel=0.02)
    assert _rms(far) < 0.05


def test_lowpass_attenuates_high_frequencies() -> None:
    out = filter_static(_sine(5000.0), "lowpass", 200.0, 1.0, _SR)[_SR // 2 :]
    assert _rms(out) < 0.01


def test_filter_static_works_along_last_axis() -> None:
    stereo = np.vstack((_sine(100.0, 4096), _sine(100.0, 4096)))
    out = filter_static(stereo, "lowpass", 500.0, 1.0, _SR)
    assert out.shape == stereo.shape
    assert np.allclose(out[0], out[1])


def test_constant_sweep_matches_static_filter() -> None:
    signal = np.random.default_rng(0).uniform(-1.0, 1.0, 5000)
    swept = filter_swept(signal, "lowpass", np.full(5000, 800.0), 1.0, _SR)
    static = filter_static(signal, "lowpass", 800.0, 1.0, _SR)
    assert np.allclose(swept, static)


def test_stateful_filter_matches_one_shot_filter() -> None:
    signal = np.random.default_rng(1).uniform(-1.0, 1.0, (2, 2048))
    node = BiquadFilter("highpass", 300.0, sample_rate=_SR)
    blocks = [node.process(signal[:, start : start + 512]) for start in range(0, 2048, 512)]
    assert np.allclose(np.concatenate(blocks, axis=1), filter_static(signal, "highpass", 300.0, 1.0, _SR))


def test_equal_power_pan_positions() -> None:
    mono = np.ones(4)
    centre = pan_stereo(mono, 0.0)
    assert centre[0] == pytest.approx([math.sqrt(0.5)] * 4)
    assert centre[1] == pytest.approx([math.sqrt(0.5)] * 4)
    hard_left = pan_stereo(mono, -1.0)
    assert hard_left[0] == pytest.approx([1.0] * 4)
    assert hard_left[1] == pytest.approx([0.0] * 4, abs=1e-12)


def test_pan_curve_sweeps_across_the_field() -> None:
    stereo = pan_stereo(np.ones(3), np.array([-1.0, 0.0, 1.0]))
    assert stereo[0] == pytest.approx([1.0, math.sqrt(0.5), 0.0], abs=1e-12)
    assert stereo[1] == pytest.approx([0.0, math.sqrt(0.5), 1.0], abs=1e-12)


def test_upmix_duplicates_channels() -> None:
    stereo = upmix(np.array([0.1, 0.2]))
    assert stereo.shape == (2, 2)
    assert np.array_equal(stereo[0], stereo[1])


def test_sine_oscillator_constant_frequency() -> None:
    tone = sine_oscillator(np.full(200, 441.0), _SR)
    assert tone[0] == 0.0
    assert tone[25] == pytest.approx(1.0)
    assert tone[75] == pytest.approx(-1.0)


def test_convolver_streams_tail_across_blocks() -> None:
    kernel = np.array([[1.0, 0.5, 0.25], [1.0, 0.5, 0.25]])
    convolver = Convolver(kernel)
    first = convolver.process(np.array([[1.0, 0.0], [1.0, 0.0]]))
    second = convolver.process(np.zeros((2, 2)))
    assert first[0] == pytest.approx([1.0, 0.5])
    assert second[0] == pytest.approx([0.25, 0.0], abs=1e-9)
    assert convolver.tail_length == 0


def test_kernel_replacement_keeps_old_tail() -> None:
    convolver = Convolver(np.array([[1.0, 0.5, 0.25], [1.0, 0.5, 0.25]]))
    convolver.process(np.array([[1.0, 0.0], [1.0, 0.0]]))
    old_kernel = convolver.kernel
    convolver.set_kernel(np.array([[2.0], [2.0]]))
    assert old_kernel[0].tolist() == [1.0, 0.5, 0.25]
    tail = convolver.process(np.zeros((2, 2)))
    assert tail[1] == pytest.approx([0.25, 0.0], abs=1e-9)
    fresh = convolver.process(np.array([[1.0, 0.0], [1.0, 0.0]]))
    assert fresh[0] == pytest.approx([2.0, 0.0], abs=1e-9)
