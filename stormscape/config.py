from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import InvalidConfigError
from .logging_utils import get_logger

_LOGGER = get_logger("config")

NoiseType = Literal["pink", "white"]
JitterMode = Literal["symmetric", "positive"]
CrackleMode = Literal["tail", "pops"]

# Peaking band centres shared by every channel strip (Hz).
EQ_FREQUENCIES: tuple[float, ...] = (
    31.0,
    62.0,
    125.0,
    250.0,
    500.0,
    1000.0,
    2000.0,
    4000.0,
    8000.0,
    16000.0,
)
EQ_BAND_COUNT = len(EQ_FREQUENCIES)
FLAT_EQ: tuple[float, ...] = (0.0,) * EQ_BAND_COUNT

ParamsT = TypeVar("ParamsT", bound=BaseModel)


def _check_eq_gains(gains: tuple[float, ...]) -> tuple[float, ...]:
    if len(gains) != EQ_BAND_COUNT:
        raise ValueError(f"eq_gains needs {EQ_BAND_COUNT} bands, got {len(gains)}")
    return gains


# -----------------------------------------------------------------------------
# Modulated parameter kinds
# -----------------------------------------------------------------------------


class OscParam(BaseModel):
    """Base value plus an optional sinusoidal offset `amp * sin(2*pi*freq*t)`."""

    value: float
    osc: bool = False
    amp: float = 0.0
    freq: float = 0.0

    model_config = ConfigDict(frozen=True, extra="forbid")


class RandParam(BaseModel):
    """Base value plus an optional jitter resampled on every use."""

    value: float
    rand: bool = False
    dist: float = Field(default=0.0, ge=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")


class DelayRange(BaseModel):
    """Seconds between consecutive thunder strikes."""

    min: float = Field(default=5.0, gt=0.0)
    max: float = Field(default=15.0, gt=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _ordered(self) -> "DelayRange":
        if self.min > self.max:
            raise ValueError(f"delay range min ({self.min}) exceeds max ({self.max})")
        return self


# -----------------------------------------------------------------------------
# Generator parameter sets
# -----------------------------------------------------------------------------


class RainParams(BaseModel):
    """Rain bed and raindrop parameters."""

    on: bool = True
    volume: float = Field(default=0.5, ge=0.0)
    eq_gains: tuple[float, ...] = FLAT_EQ

    noise_level: float = Field(default=0.2, ge=0.0)
    noise_type: NoiseType = "pink"
    noise_filter_freq: OscParam = OscParam(value=4000.0, amp=1000.0, freq=0.1)

    drop_dry_level: float = Field(default=0.5, ge=0.0)
    drop_wet_level: float = Field(default=0.5, ge=0.0)
    drop_rate: float = Field(default=30.0, gt=0.0)
    drop_min_pitch: OscParam = OscParam(value=300.0, amp=100.0, freq=0.1)
    drop_max_pitch: OscParam = OscParam(value=800.0, amp=500.0, freq=0.1)
    drop_decay_time: float = Field(default=0.2, gt=0.0)
    drop_reverb_level: OscParam = OscParam(value=0.4, amp=0.2, freq=0.1)
    drop_pan_range: OscParam = OscParam(value=1.0, amp=0.5, freq=0.1)
    drop_q: float = Field(default=1.0, gt=0.0)

    reverb_duration: float = Field(default=2.0, gt=0.0)
    reverb_decay: float = Field(default=2.5, gt=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("eq_gains")
    @classmethod
    def _eq_bands(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        return _check_eq_gains(value)


class ThunderParams(BaseModel):
    """Strike scheduling and per-strike randomized synthesis parameters."""

    on: bool = True
    volume: RandParam = RandParam(value=0.5, dist=0.2)
    delay_between_thunders: DelayRange = DelayRange()
    duration: RandParam = RandParam(value=2.0, dist=0.2)
    filter_freq: RandParam = RandParam(value=750.0, dist=500.0)
    burst_count: RandParam = RandParam(value=3.0, dist=1.0)
    delay_ms: float = Field(default=0.0, ge=0.0)

    reverb_duration: RandParam = RandParam(value=2.0, dist=0.5)
    reverb_decay: RandParam = RandParam(value=2.0, dist=0.5)
    reverb_wet_level: RandParam = RandParam(value=0.4, dist=0.2)

    sub_level: RandParam = RandParam(value=0.1, dist=0.1)
    pan_range: RandParam = RandParam(value=1.0, dist=0.5)
    high_pass_freq: RandParam = RandParam(value=20.0, dist=5.0)
    crackle_amount: RandParam = RandParam(value=1.0, dist=0.5)

    eq_gains: tuple[float, ...] = FLAT_EQ

    rumble_freq_start: RandParam = RandParam(value=30.0, dist=5.0)
    rumble_freq_end: RandParam = RandParam(value=20.0, dist=5.0)
    rumble_volume: RandParam = RandParam(value=0.05, dist=0.1)
    rumble_decay: RandParam = RandParam(value=8.0, dist=2.0)

    jitter: JitterMode = "symmetric"
    crackle_mode: CrackleMode = "tail"

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("eq_gains")
    @classmethod
    def _eq_bands(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        return _check_eq_gains(value)

    @field_validator("duration", "reverb_duration", "rumble_decay")
    @classmethod
    def _positive_span(cls, value: RandParam) -> RandParam:
        if value.value <= 0.0:
            raise ValueError("time spans must be positive")
        return value


class WeatherParams(BaseModel):
    """Top-level parameter set for the controller."""

    master_volume: float = Field(default=0.5, ge=0.0)
    eq_gains: tuple[float, ...] = FLAT_EQ
    rain: RainParams = RainParams()
    thunder: ThunderParams = ThunderParams()

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("eq_gains")
    @classmethod
    def _eq_bands(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        return _check_eq_gains(value)


# -----------------------------------------------------------------------------
# Parsing and partial updates
# -----------------------------------------------------------------------------


def _merge_mapping(base: BaseModel, changes: Mapping[str, Any], prefix: str) -> dict[str, Any]:
    merged = base.model_dump()
    fields = type(base).model_fields
    for key, value in changes.items():
        if key not in fields:
            raise InvalidConfigError(f"Unknown parameter '{prefix}{key}'")
        current = getattr(base, key)
        match value:
            case BaseModel():
                merged[key] = value.model_dump()
            case Mapping() if isinstance(current, BaseModel):
                merged[key] = _merge_mapping(current, value, f"{prefix}{key}.")
            case _:
                merged[key] = value
    return merged


def merge_params(base: ParamsT, changes: Mapping[str, Any] | ParamsT) -> ParamsT:
    """Apply a partial update; nested mappings merge into nested models."""

    if isinstance(changes, type(base)):
        return changes
    if isinstance(changes, BaseModel):
        raise InvalidConfigError(
            f"Cannot apply {type(changes).__name__} to {type(base).__name__}"
        )
    payload = _merge_mapping(base, changes, "")
    try:
        return type(base).model_validate(payload)
    except ValidationError as exc:
        _LOGGER.warning("Failed to apply parameter update: %s", exc, exc_info=True)
        raise InvalidConfigError(str(exc)) from exc


def changed_fields(old: BaseModel, new: BaseModel) -> frozenset[str]:
    """Names of top-level fields whose values differ between two models."""

    return frozenset(name for name in type(old).model_fields if getattr(old, name) != getattr(new, name))


def parse_params(payload: Mapping[str, Any]) -> WeatherParams:
    """Parse a full parameter payload, raising InvalidConfigError on failure."""

    try:
        return WeatherParams.model_validate(payload)
    except ValidationError as exc:
        _LOGGER.warning("Failed to parse parameters: %s", exc, exc_info=True)
        raise InvalidConfigError(str(exc)) from exc


def load_params(path: str | Path) -> WeatherParams:
    """Load a JSON parameter file; missing keys fall back to defaults."""

    source = Path(path)
    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        _LOGGER.warning("Failed to read parameters from %s: %s", source, exc, exc_info=True)
        raise InvalidConfigError(f"Cannot read parameters from {source}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise InvalidConfigError(f"Parameter file {source} must contain a JSON object")
    return parse_params(payload)
