"""Automation timelines for voice parameters (gain, frequency, pan).

Times are seconds relative to the owning voice's start. A timeline is
rendered once into a per-sample curve when the voice is built.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np

from .audio import FloatArray

RampKind = Literal["set", "linear", "exponential"]


@dataclass(frozen=True, slots=True)
class _Event:
    kind: RampKind
    time: float
    value: float


class ParamAutomation:
    """Scheduled value changes for one automatable parameter.

    Follows the usual audio-graph semantics: a ramp runs from the previous
    event's (time, value) to its own. Exponential ramps between values that
    are zero or of opposite sign hold the previous value instead.
    """

    def __init__(self, default: float) -> None:
        self._default = float(default)
        self._events: list[_Event] = []

    def set_value_at_time(self, value: float, time: float) -> "ParamAutomation":
        return self._insert(_Event("set", float(time), float(value)))

    def linear_ramp_to_value_at_time(self, value: float, time: float) -> "ParamAutomation":
        return self._insert(_Event("linear", float(time), float(value)))

    def exponential_ramp_to_value_at_time(self, value: float, time: float) -> "ParamAutomation":
        return self._insert(_Event("exponential", float(time), float(value)))

    def _insert(self, event: _Event) -> "ParamAutomation":
        self._events.append(event)
        # stable: events sharing a time keep insertion order
        self._events.sort(key=lambda item: item.time)
        return self

    def value_at(self, time: float) -> float:
        return float(self._evaluate(np.array([float(time)]))[0])

    def render(self, length: int, sample_rate: int, *, start: float = 0.0) -> FloatArray:
        """Per-sample curve for `length` samples beginning at `start` seconds."""
        times = start + np.arange(max(0, length)) / sample_rate
        return self._evaluate(times)

    def _evaluate(self, times: FloatArray) -> FloatArray:
        out = np.full(times.shape, self._default, dtype=np.float64)
        prev_time, prev_value = 0.0, self._default
        for event in self._events:
            begin = int(np.searchsorted(times, prev_time, side="left"))
            end = int(np.searchsorted(times, event.time, side="left"))
            if event.kind != "set" and end > begin:
                frac = (times[begin:end] - prev_time) / (event.time - prev_time)
                if event.kind == "linear":
                    out[begin:end] = prev_value + (event.value - prev_value) * frac
                elif prev_value * event.value > 0.0:
                    out[begin:end] = prev_value * (event.value / prev_value) ** frac
                else:
                    out[begin:end] = prev_value
            out[end:] = event.value
            prev_time, prev_value = event.time, event.value
        return out
