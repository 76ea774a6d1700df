"""Rain generator: granular raindrops plus a filtered looping noise bed."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np

from .audio import FloatArray
from .config import NoiseType, RainParams
from .dsp import BiquadFilter, Convolver, filter_static, pan_stereo, upmix
from .generator import BaseGenerator
from .graph import EngineContext
from .modulation import evaluate_osc, uniform
from .noise import grain_envelope, impulse_response, pink_noise, white_noise
from .scheduler import DropClock

GRAIN_MAX_SECONDS = 0.2
GRAIN_SHAPE = 2.5
NOISE_LOOP_SECONDS = 2.0
NOISE_INPUT_GAIN = 0.4


@dataclass(frozen=True, slots=True)
class _RainModulation:
    """Oscillating parameters evaluated once for the current tick."""

    noise_filter_freq: float
    min_pitch: float
    max_pitch: float
    reverb_level: float
    pan_range: float


class RainGenerator(BaseGenerator[RainParams]):
    name = "rain"

    def __init__(self, context: EngineContext, params: RainParams | None = None) -> None:
        super().__init__(context, params if params is not None else RainParams())
        self._clock = DropClock()
        self._time = 0.0
        self._reverb = Convolver(self._build_kernel())
        self._noise_filter = BiquadFilter(
            "lowpass",
            self._params.noise_filter_freq.value,
            sample_rate=context.sample_rate,
            channels=1,
        )
        self._noise_loop: FloatArray | None = None
        self._noise_cursor = 0
        self._mod = self._evaluate_modulation()

    @property
    def reverb(self) -> Convolver:
        return self._reverb

    @property
    def drops_fired(self) -> int:
        return self._pool.spawned["drop"]

    # -------------------------------------------------------------------------
    # Explicit setters
    # -------------------------------------------------------------------------

    def set_volume(self, volume: float) -> None:
        self.update_params({"volume": volume})

    def set_noise_type(self, noise_type: NoiseType) -> None:
        self.update_params({"noise_type": noise_type})

    def set_noise_level(self, level: float) -> None:
        self.update_params({"noise_level": level})

    def set_noise_filter_freq(self, freq: float) -> None:
        self.update_params({"noise_filter_freq": {"value": freq}})

    def set_drop_rate(self, rate: float) -> None:
        self.update_params({"drop_rate": rate})

    def set_pitch_range(self, min_pitch: float, max_pitch: float) -> None:
        self.update_params({"drop_min_pitch": {"value": min_pitch}, "drop_max_pitch": {"value": max_pitch}})

    def set_decay_time(self, decay_time: float) -> None:
        self.update_params({"drop_decay_time": decay_time})

    def set_drop_q(self, q: float) -> None:
        self.update_params({"drop_q": q})

    def set_pan_range(self, pan_range: float) -> None:
        self.update_params({"drop_pan_range": {"value": pan_range}})

    def set_drop_dry_level(self, level: float) -> None:
        self.update_params({"drop_dry_level": level})

    def set_drop_wet_level(self, level: float) -> None:
        self.update_params({"drop_wet_level": level})

    def set_drop_reverb_level(self, level: float) -> None:
        self.update_params({"drop_reverb_level": {"value": level}})

    def set_eq_gains(self, gains: tuple[float, ...]) -> None:
        self.update_params({"eq_gains": gains})

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def _output_gain(self, params: RainParams) -> float:
        return params.volume

    def _on_start(self) -> None:
        self._time = 0.0
        self._clock.reset()
        self._mod = self._evaluate_modulation()
        self._build_noise_loop()

    def _on_stop(self) -> None:
        self._clock.reset()
        self._noise_loop = None
        self._noise_filter.reset()

    def _on_destroy(self) -> None:
        self._reverb.reset()

    def _on_params_changed(self, previous: RainParams, changed: frozenset[str]) -> None:
        if changed & {"reverb_duration", "reverb_decay"}:
            self._reverb.set_kernel(self._build_kernel())
            self._logger.debug("Rain reverb kernel rebuilt")
        if "noise_type" in changed and self._running:
            self._build_noise_loop()

    def _tick(self, start: float, dt: float) -> None:
        self._mod = self._evaluate_modulation()
        for when in self._clock.advance(start, dt, self._params.drop_rate):
            self._schedule_drop(when)
        self._time += dt

    def _process(self, buses: Mapping[str, FloatArray], length: int) -> FloatArray:
        out = buses["dry"]
        if self._noise_loop is not None:
            out = out + self._render_noise(length)
        return out + self._reverb.process(buses["send"]) * self._mod.reverb_level

    # -------------------------------------------------------------------------
    # Synthesis
    # -------------------------------------------------------------------------

    def _evaluate_modulation(self) -> _RainModulation:
        params, t = self._params, self._time
        return _RainModulation(
            noise_filter_freq=evaluate_osc(params.noise_filter_freq, t),
            min_pitch=evaluate_osc(params.drop_min_pitch, t),
            max_pitch=evaluate_osc(params.drop_max_pitch, t),
            reverb_level=evaluate_osc(params.drop_reverb_level, t),
            pan_range=evaluate_osc(params.drop_pan_range, t),
        )

    def _build_kernel(self) -> FloatArray:
        params = self._params
        return impulse_response(
            2, params.reverb_duration, params.reverb_decay, self._ctx.sample_rate, self._ctx.rng
        )

    def _build_noise_loop(self) -> None:
        length = int(self._ctx.sample_rate * NOISE_LOOP_SECONDS)
        match self._params.noise_type:
            case "pink":
                self._noise_loop = pink_noise(length, self._ctx.rng)
            case "white":
                self._noise_loop = white_noise(length, self._ctx.rng)
        self._noise_cursor = 0

    def _render_noise(self, length: int) -> FloatArray:
        loop = self._noise_loop
        if loop is None or loop.size == 0:
            return np.zeros((2, length))
        index = (self._noise_cursor + np.arange(length)) % loop.size
        self._noise_cursor = (self._noise_cursor + length) % loop.size
        params = self._params
        self._noise_filter.frequency = self._mod.noise_filter_freq
        bed = self._noise_filter.process((loop[index] * NOISE_INPUT_GAIN * params.volume)[np.newaxis, :])
        return upmix(bed[0] * params.noise_level)

    def _schedule_drop(self, when: float) -> None:
        params, mod = self._params, self._mod
        rng, sample_rate = self._ctx.rng, self._ctx.sample_rate
        grain = grain_envelope(int(sample_rate * min(params.drop_decay_time, GRAIN_MAX_SECONDS)), GRAIN_SHAPE, rng)
        centre = uniform(rng, mod.min_pitch, mod.max_pitch)
        filtered = filter_static(grain, "bandpass", centre, params.drop_q, sample_rate)
        stereo = pan_stereo(filtered, uniform(rng, -mod.pan_range, mod.pan_range))
        self._spawn(
            "drop",
            when,
            {"dry": stereo * params.drop_dry_level, "send": stereo * params.drop_wet_level},
        )
