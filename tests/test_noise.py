from __future__ import annotations

import numpy as np
import pytest

from stormscape.noise import (
    crackle_pop,
    crackle_tail,
    grain_envelope,
    impulse_response,
    pink_noise,
    thunder_body,
    white_noise,
)

_SR = 44_100
_OCTAVES = ((100.0, 200.0), (200.0, 400.0), (400.0, 800.0), (800.0, 1600.0))


def _octave_densities_db(signal: np.ndarray) -> np.ndarray:
    power = np.abs(np.fft.rfft(signal)) ** 2
    freqs = np.fft.rfftfreq(signal.size, d=1.0 / _SR)
    densities = [power[(freqs >= low) & (freqs < high)].mean() for low, high in _OCTAVES]
    return 10.0 * np.log10(np.array(densities))


def test_pink_noise_falls_three_db_per_octave() -> None:
    signal = pink_noise(2**18, np.random.default_rng(11))
    steps = np.diff(_octave_densities_db(signal))
    assert steps == pytest.approx([-3.0, -3.0, -3.0], abs=1.0)


def test_white_noise_is_flat() -> None:
    signal = white_noise(2**18, np.random.default_rng(11))
    steps = np.diff(_octave_densities_db(signal))
    assert steps == pytest.approx([0.0, 0.0, 0.0], abs=0.75)


def test_white_noise_range() -> None:
    signal = white_noise(10_000, np.random.default_rng(0))
    assert signal.min() >= -1.0
    assert signal.max() < 1.0


def test_zero_length_requests_are_empty() -> None:
    rng = np.random.default_rng(0)
    assert white_noise(0, rng).size == 0
    assert pink_noise(0, rng).size == 0
    assert grain_envelope(0, 2.5, rng).size == 0
    assert crackle_pop(0, rng).size == 0
    assert impulse_response(2, 0.0, 2.0, _SR, rng).shape == (2, 0)


def test_impulse_response_shape_and_decay() -> None:
    kernel = impulse_response(2, 0.5, 2.5, _SR, np.random.default_rng(4))
    assert kernel.shape == (2, int(_SR * 0.5))
    head = np.abs(kernel[:, :1000]).mean()
    tail = np.abs(kernel[:, -1000:]).mean()
    assert tail < head * 0.01
    assert not kernel.flags.writeable


def test_grain_envelope_fades_out() -> None:
    grain = grain_envelope(4410, 2.5, np.random.default_rng(2))
    assert grain.size == 4410
    assert np.abs(grain[-100:]).max() < 1e-3
    assert np.abs(grain).max() <= 1.0


def test_thunder_body_length_and_build_up() -> None:
    body = thunder_body(1.0, _SR, np.random.default_rng(5))
    assert body.size == _SR
    assert body[0] == 0.0
    assert np.abs(body).max() <= 1.0


def test_crackle_tail_is_one_and_a_half_durations() -> None:
    tail = crackle_tail(0.4, _SR, 1.0, np.random.default_rng(5))
    assert tail.size == int(_SR * 0.6)
    assert np.all(np.isfinite(tail))


def test_crackle_pop_is_sparse() -> None:
    pop = crackle_pop(20_000, np.random.default_rng(9))
    active = np.count_nonzero(pop) / pop.size
    assert active == pytest.approx(0.3, abs=0.03)
