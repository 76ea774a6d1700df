from __future__ import annotations

import math

import numpy as np
import pytest

from stormscape.config import DelayRange
from stormscape.scheduler import DropClock, StrikeScheduler, StrikeState


def _run_clock(rate: float, duration: float, block: float) -> list[float]:
    clock = DropClock()
    times: list[float] = []
    t = 0.0
    while t < duration - 1e-12:
        dt = min(block, duration - t)
        times.extend(clock.advance(t, dt, rate))
        t += dt
    return times


@pytest.mark.parametrize("rate", [1.0, 7.5, 30.0, 120.0])
def test_drop_count_matches_rate(rate: float) -> None:
    duration = 2.0
    times = _run_clock(rate, duration, 512 / 44_100)
    assert abs(len(times) - math.floor(duration * rate)) <= 1


def test_drop_times_stay_inside_their_tick() -> None:
    clock = DropClock()
    times = clock.advance(1.0, 0.125, 32.0)
    assert len(times) == 4
    assert all(1.0 <= when <= 1.125 for when in times)
    assert times == sorted(times)


def test_drop_clock_rate_change_applies_next_tick() -> None:
    clock = DropClock()
    assert len(clock.advance(0.0, 1.0, 8.0)) == 8
    assert len(clock.advance(1.0, 1.0, 2.0)) == 2


def test_strike_scheduler_arms_within_delay_range() -> None:
    scheduler = StrikeScheduler(np.random.default_rng(0))
    when = scheduler.arm(3.0, DelayRange(min=5.0, max=15.0))
    assert scheduler.state is StrikeState.SCHEDULED
    assert 8.0 <= when <= 18.0


def test_strike_scheduler_fires_and_rearms_from_fire_time() -> None:
    scheduler = StrikeScheduler(np.random.default_rng(0))
    delays = DelayRange(min=1.0, max=1.0)
    scheduler.arm(0.0, delays)
    fired: list[float] = []
    count = scheduler.advance(3.5, lambda: delays, fired.append)
    assert count == 3
    assert fired == pytest.approx([1.0, 2.0, 3.0])
    assert scheduler.fire_at == pytest.approx(4.0)
    assert scheduler.state is StrikeState.SCHEDULED


def test_strike_scheduler_waits_for_window() -> None:
    scheduler = StrikeScheduler(np.random.default_rng(0))
    delays = DelayRange(min=2.0, max=2.0)
    scheduler.arm(0.0, delays)
    assert scheduler.advance(1.0, lambda: delays, lambda when: None) == 0


def test_cancel_returns_to_idle() -> None:
    scheduler = StrikeScheduler(np.random.default_rng(0))
    delays = DelayRange(min=0.5, max=0.5)
    scheduler.arm(0.0, delays)
    scheduler.cancel()
    assert scheduler.state is StrikeState.IDLE
    assert scheduler.advance(10.0, lambda: delays, lambda when: None) == 0


def test_fire_callback_may_cancel() -> None:
    scheduler = StrikeScheduler(np.random.default_rng(0))
    delays = DelayRange(min=0.5, max=0.5)
    scheduler.arm(0.0, delays)
    assert scheduler.advance(10.0, lambda: delays, lambda when: scheduler.cancel()) == 1
    assert scheduler.state is StrikeState.IDLE
