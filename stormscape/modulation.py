"""Evaluation of oscillating and randomized parameters into plain scalars."""

from __future__ import annotations

import math

import numpy as np

from .config import JitterMode, OscParam, RandParam


def uniform(rng: np.random.Generator, low: float, high: float) -> float:
    """Single draw from U(low, high); a degenerate range returns `low`."""
    return low + float(rng.random()) * (high - low)


def evaluate_osc(param: OscParam, t: float) -> float:
    """Value of an oscillating parameter at engine time `t` (seconds)."""
    if not param.osc:
        return param.value
    return param.value + param.amp * math.sin(2.0 * math.pi * param.freq * t)


def evaluate_rand(
    param: RandParam,
    rng: np.random.Generator,
    *,
    mode: JitterMode = "symmetric",
) -> float:
    """Value of a randomized parameter for one use.

    Symmetric jitter draws from U(-dist, dist); positive jitter draws from
    U(0, dist). A disabled parameter returns its value without consuming
    the random source.
    """
    if not param.rand:
        return param.value
    match mode:
        case "symmetric":
            return param.value + uniform(rng, -param.dist, param.dist)
        case "positive":
            return param.value + uniform(rng, 0.0, param.dist)
        case _:
            raise ValueError(f"Unknown jitter mode: {mode!r}")
