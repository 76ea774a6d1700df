"""Thunder generator: scheduled strikes made of bursts, a rumble and crackle."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np

from .audio import FloatArray
from .automation import ParamAutomation
from .config import JitterMode, ThunderParams
from .dsp import Convolver, filter_static, filter_swept, pan_stereo, sine_oscillator, upmix
from .generator import BaseGenerator
from .graph import EngineContext
from .modulation import evaluate_rand, uniform
from .noise import crackle_pop, crackle_tail, impulse_response, thunder_body
from .scheduler import StrikeScheduler

BURST_GAP = (0.2, 0.6)
BURST_DURATION_SPREAD = (0.8, 1.2)
BURST_VOLUME_SPREAD = (0.7, 1.3)
BODY_FILTER_END_HZ = 100.0
SEND_HIGH_PASS_HZ = 80.0
SUB_FREQ_START_HZ = 25.0
SUB_FREQ_END_HZ = 15.0
SUB_SPAN = 2.5
ENVELOPE_SPAN = 3.0
TAIL_HIGH_PASS_HZ = 30.0
TAIL_LOW_PASS_HZ = 1500.0
POP_START_MAX = 0.6
POP_LENGTH = (0.02, 0.05)
POP_VOLUME = (0.1, 0.3)
FADE_FLOOR = 0.001
MIN_SPAN = 1e-3
MIN_LEVEL = 1e-4
FILTER_Q = 1.0


@dataclass(frozen=True, slots=True)
class Strike:
    """Every randomized thunder parameter, drawn once per strike."""

    volume: float
    duration: float
    filter_freq: float
    burst_count: float
    sub_level: float
    pan_range: float
    high_pass_freq: float
    reverb_wet_level: float
    crackle_amount: float
    rumble_freq_start: float
    rumble_freq_end: float
    rumble_volume: float
    rumble_decay: float

    @classmethod
    def draw(cls, params: ThunderParams, rng: np.random.Generator, mode: JitterMode) -> "Strike":
        def value(name: str) -> float:
            return evaluate_rand(getattr(params, name), rng, mode=mode)

        return cls(
            volume=value("volume"),
            duration=max(value("duration"), MIN_SPAN),
            filter_freq=value("filter_freq"),
            burst_count=value("burst_count"),
            sub_level=value("sub_level"),
            pan_range=value("pan_range"),
            high_pass_freq=value("high_pass_freq"),
            reverb_wet_level=value("reverb_wet_level"),
            crackle_amount=value("crackle_amount"),
            rumble_freq_start=value("rumble_freq_start"),
            rumble_freq_end=value("rumble_freq_end"),
            rumble_volume=value("rumble_volume"),
            rumble_decay=max(value("rumble_decay"), MIN_SPAN),
        )


def round_half_up(value: float) -> int:
    return max(0, int(math.floor(value + 0.5)))


def burst_total(burst_count: float) -> int:
    """Bursts per strike: none below one, otherwise rounded half up."""
    if burst_count < 1.0:
        return 0
    return round_half_up(burst_count)


def _level(value: float) -> float:
    return max(value, MIN_LEVEL)


def _fade(level: float, span: float, length: int, sample_rate: int) -> FloatArray:
    """Exponential decay from `level` to the fade floor over `span` seconds."""
    level = _level(level)
    return (
        ParamAutomation(level)
        .set_value_at_time(level, 0.0)
        .exponential_ramp_to_value_at_time(FADE_FLOOR, span)
        .render(length, sample_rate)
    )


# -----------------------------------------------------------------------------
# Voice synthesis
# -----------------------------------------------------------------------------


def render_rumble(strike: Strike, sample_rate: int) -> dict[str, FloatArray]:
    """Low sine sweeping from the start to the end frequency while fading out."""
    decay = strike.rumble_decay
    length = max(1, int(sample_rate * decay))
    freq = (
        ParamAutomation(strike.rumble_freq_start)
        .set_value_at_time(strike.rumble_freq_start, 0.0)
        .linear_ramp_to_value_at_time(strike.rumble_freq_end, decay)
        .render(length, sample_rate)
    )
    tone = sine_oscillator(freq, sample_rate) * _fade(strike.rumble_volume, decay, length, sample_rate)
    return {"dry": upmix(tone)}


def render_burst(
    strike: Strike,
    duration: float,
    volume: float,
    sample_rate: int,
    rng: np.random.Generator,
    *,
    with_tail: bool,
) -> dict[str, FloatArray]:
    """One burst: filtered body, sub drop and optional crackle tail, sample-aligned."""
    length = max(1, int(sample_rate * duration * SUB_SPAN))

    body = np.zeros(length)
    raw = thunder_body(duration, sample_rate, rng)[:length]
    body[: raw.size] = raw
    sweep = (
        ParamAutomation(strike.filter_freq)
        .set_value_at_time(strike.filter_freq, 0.0)
        .exponential_ramp_to_value_at_time(BODY_FILTER_END_HZ, duration)
        .render(length, sample_rate)
    )
    body = filter_swept(body, "lowpass", sweep, FILTER_Q, sample_rate)
    body = filter_static(body, "highpass", strike.high_pass_freq, FILTER_Q, sample_rate)

    envelope = (
        ParamAutomation(0.1)
        .set_value_at_time(0.1, 0.0)
        .exponential_ramp_to_value_at_time(_level(volume * 0.8), 0.05)
        .exponential_ramp_to_value_at_time(_level(volume * 0.5), duration * 0.9)
        .exponential_ramp_to_value_at_time(FADE_FLOOR, duration * ENVELOPE_SPAN)
        .render(length, sample_rate)
    )
    shaped = body * envelope

    base_pan = uniform(rng, -1.0, 1.0) * strike.pan_range * 0.3
    pan = (
        ParamAutomation(base_pan)
        .set_value_at_time(base_pan, 0.0)
        .linear_ramp_to_value_at_time(-base_pan, duration)
        .render(length, sample_rate)
    )
    dry = pan_stereo(shaped, pan)
    send = upmix(filter_static(shaped, "highpass", SEND_HIGH_PASS_HZ, FILTER_Q, sample_rate))
    send *= strike.reverb_wet_level

    sub_span = duration * SUB_SPAN
    sub_freq = (
        ParamAutomation(SUB_FREQ_START_HZ)
        .set_value_at_time(SUB_FREQ_START_HZ, 0.0)
        .linear_ramp_to_value_at_time(SUB_FREQ_END_HZ, sub_span)
        .render(length, sample_rate)
    )
    sub_gain = _fade(strike.sub_level * volume * 0.6, sub_span, length, sample_rate)
    dry += upmix(sine_oscillator(sub_freq, sample_rate) * sub_gain)

    if with_tail:
        tail = crackle_tail(duration, sample_rate, strike.crackle_amount, rng)[:length]
        tail = filter_static(tail, "highpass", TAIL_HIGH_PASS_HZ, FILTER_Q, sample_rate)
        tail = filter_static(tail, "lowpass", TAIL_LOW_PASS_HZ, FILTER_Q, sample_rate)
        tail = tail * _fade(volume * 0.6, sub_span, tail.size, sample_rate)
        dry[:, : tail.size] += upmix(tail)

    return {"dry": dry, "send": send}


def render_pop(strike: Strike, sample_rate: int, rng: np.random.Generator) -> dict[str, FloatArray]:
    """Short panned click cluster sent dry and to the reverb."""
    span = uniform(rng, *POP_LENGTH)
    length = max(1, int(sample_rate * span))
    pan = uniform(rng, -strike.pan_range, strike.pan_range)
    level = uniform(rng, *POP_VOLUME)
    clicks = crackle_pop(length, rng) * _fade(level, span, length, sample_rate)
    stereo = pan_stereo(clicks, pan)
    return {"dry": stereo, "send": stereo * strike.reverb_wet_level}


# -----------------------------------------------------------------------------
# Generator
# -----------------------------------------------------------------------------


class ThunderGenerator(BaseGenerator[ThunderParams]):
    name = "thunder"

    def __init__(self, context: EngineContext, params: ThunderParams | None = None) -> None:
        super().__init__(context, params if params is not None else ThunderParams())
        self._scheduler = StrikeScheduler(context.rng)
        self._reverb = Convolver(self._build_kernel())
        self.strikes_fired = 0

    @property
    def reverb(self) -> Convolver:
        return self._reverb

    @property
    def scheduler(self) -> StrikeScheduler:
        return self._scheduler

    def trigger(self, when: float | None = None) -> None:
        """Fire a strike immediately (or at `when`) outside the schedule."""
        self._fire(self._ctx.current_time if when is None else when)

    def regenerate_reverb(self) -> None:
        """Draw a fresh kernel from the current reverb parameters."""
        self._reverb.set_kernel(self._build_kernel())
        self._logger.debug("Thunder reverb kernel rebuilt")

    def set_delay_between_thunders(self, min_delay: float, max_delay: float) -> None:
        self.update_params({"delay_between_thunders": {"min": min_delay, "max": max_delay}})

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def _on_start(self) -> None:
        self._scheduler.arm(self._ctx.current_time, self._params.delay_between_thunders)

    def _on_stop(self) -> None:
        self._scheduler.cancel()

    def _on_destroy(self) -> None:
        self._reverb.reset()

    def _on_params_changed(self, previous: ThunderParams, changed: frozenset[str]) -> None:
        if changed & {"reverb_duration", "reverb_decay"}:
            self.regenerate_reverb()

    def _tick(self, start: float, dt: float) -> None:
        self._scheduler.advance(start + dt, lambda: self._params.delay_between_thunders, self._fire)

    def _process(self, buses: Mapping[str, FloatArray], length: int) -> FloatArray:
        return buses["dry"] + self._reverb.process(buses["send"])

    # -------------------------------------------------------------------------
    # Strikes
    # -------------------------------------------------------------------------

    def _build_kernel(self) -> FloatArray:
        params, rng = self._params, self._ctx.rng
        duration = max(evaluate_rand(params.reverb_duration, rng, mode=params.jitter), MIN_SPAN)
        decay = max(evaluate_rand(params.reverb_decay, rng, mode=params.jitter), 0.0)
        return impulse_response(2, duration, decay, self._ctx.sample_rate, rng)

    def _fire(self, when: float) -> None:
        params = self._params
        rng, sample_rate = self._ctx.rng, self._ctx.sample_rate
        strike = Strike.draw(params, rng, params.jitter)
        onset = when + params.delay_ms / 1000.0

        self._spawn("rumble", onset, render_rumble(strike, sample_rate))

        bursts = burst_total(strike.burst_count)
        with_tail = params.crackle_mode == "tail"
        for index in range(bursts):
            offset = index * uniform(rng, *BURST_GAP)
            duration = max(strike.duration * uniform(rng, *BURST_DURATION_SPREAD), MIN_SPAN)
            volume = strike.volume * uniform(rng, *BURST_VOLUME_SPREAD)
            outputs = render_burst(strike, duration, volume, sample_rate, rng, with_tail=with_tail)
            self._spawn("burst", onset + offset, outputs)

        if params.crackle_mode == "pops":
            for _ in range(max(0, int(math.floor(strike.crackle_amount)))):
                start = onset + uniform(rng, 0.0, POP_START_MAX)
                self._spawn("pop", start, render_pop(strike, sample_rate, rng))

        self.strikes_fired += 1
        self._logger.debug(
            "Strike %d at %.3fs: %d bursts, duration %.2fs, volume %.2f",
            self.strikes_fired,
            when,
            bursts,
            strike.duration,
            strike.volume,
        )
