"""Event schedulers that turn elapsed logical time into trigger times.

Both schedulers are driven with `(t0, dt)` windows from the engine clock and
never read wall time, so offline and live rendering fire identically.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

import numpy as np

from .config import DelayRange
from .logging_utils import get_logger
from .modulation import uniform

_LOGGER = get_logger("scheduler")


class DropClock:
    """Accumulator emitting one trigger per `1/rate` seconds of logical time."""

    def __init__(self) -> None:
        self._elapsed = 0.0

    def reset(self) -> None:
        self._elapsed = 0.0

    def advance(self, start: float, dt: float, rate: float) -> list[float]:
        """Fire times inside `[start, start+dt)` at the given rate."""
        if rate <= 0.0:
            return []
        interval = 1.0 / rate
        self._elapsed += dt
        times: list[float] = []
        while self._elapsed >= interval:
            self._elapsed -= interval
            times.append(start + dt - self._elapsed)
        return times


class StrikeState(Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    FIRING = "firing"


class StrikeScheduler:
    """Single pending strike, re-armed from its own fire time after each strike."""

    def __init__(self, rng: np.random.Generator) -> None:
        self._rng = rng
        self._state = StrikeState.IDLE
        self._fire_at: float | None = None

    @property
    def state(self) -> StrikeState:
        return self._state

    @property
    def fire_at(self) -> float | None:
        return self._fire_at

    def arm(self, now: float, delays: DelayRange) -> float:
        self._fire_at = now + uniform(self._rng, delays.min, delays.max)
        self._state = StrikeState.SCHEDULED
        _LOGGER.debug("Next strike at %.3fs", self._fire_at)
        return self._fire_at

    def cancel(self) -> None:
        self._state = StrikeState.IDLE
        self._fire_at = None

    def advance(
        self,
        end: float,
        delays: Callable[[], DelayRange],
        fire: Callable[[float], None],
    ) -> int:
        """Fire every strike due before `end`; returns how many fired.

        `delays` is read at re-arm time so range updates apply to the next gap.
        """
        fired = 0
        while self._state is StrikeState.SCHEDULED and self._fire_at is not None and self._fire_at < end:
            when = self._fire_at
            self._state = StrikeState.FIRING
            fire(when)
            fired += 1
            if self._state is StrikeState.FIRING:
                self.arm(when, delays())
        return fired
