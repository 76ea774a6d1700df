from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .audio import SAMPLE_RATE, FloatArray
from .config import EQ_BAND_COUNT, RainParams, ThunderParams, WeatherParams, merge_params, parse_params
from .errors import InvalidConfigError
from .graph import DEFAULT_BLOCK_SIZE, ChannelStrip, EngineContext
from .logging_utils import get_logger
from .rain import RainGenerator
from .thunder import ThunderGenerator

_LOGGER = get_logger("controller")

ParamsInput = WeatherParams | Mapping[str, Any] | None


def coerce_params(params: ParamsInput) -> WeatherParams:
    match params:
        case None:
            return WeatherParams()
        case WeatherParams():
            return params
        case Mapping():
            return parse_params(params)
        case _:
            raise InvalidConfigError(f"Unsupported params type: {type(params).__name__}")


class WeatherController:
    """Rain and thunder summed through the master EQ and master volume."""

    def __init__(
        self,
        params: ParamsInput = None,
        *,
        sample_rate: int = SAMPLE_RATE,
        block_size: int = DEFAULT_BLOCK_SIZE,
        seed: int | None = None,
    ) -> None:
        resolved = coerce_params(params)
        self._ctx = EngineContext(sample_rate=sample_rate, block_size=block_size, seed=seed)
        self._master = ChannelStrip(sample_rate, gains_db=resolved.eq_gains, volume=resolved.master_volume)
        self._params = resolved
        self._rain = RainGenerator(self._ctx, resolved.rain)
        self._thunder = ThunderGenerator(self._ctx, resolved.thunder)
        self._running = False
        self._destroyed = False

    @property
    def context(self) -> EngineContext:
        return self._ctx

    @property
    def rain(self) -> RainGenerator:
        return self._rain

    @property
    def thunder(self) -> ThunderGenerator:
        return self._thunder

    @property
    def running(self) -> bool:
        return self._running

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        if self._rain.get_params().on:
            self._rain.start()
        if self._thunder.get_params().on:
            self._thunder.start()
        _LOGGER.info("Weather started")

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._rain.stop()
        self._thunder.stop()
        _LOGGER.info("Weather stopped")

    def destroy(self) -> None:
        if self._destroyed:
            return
        self.stop()
        self._rain.destroy()
        self._thunder.destroy()
        self._master.reset()
        self._destroyed = True

    def start_rain(self) -> None:
        self._rain.update_params({"on": True})
        self._rain.start()

    def stop_rain(self) -> None:
        self._rain.update_params({"on": False})
        self._rain.stop()

    def start_thunder(self) -> None:
        self._thunder.update_params({"on": True})
        self._thunder.start()

    def stop_thunder(self) -> None:
        self._thunder.update_params({"on": False})
        self._thunder.stop()

    # -------------------------------------------------------------------------
    # Parameters
    # -------------------------------------------------------------------------

    def set_master_volume(self, volume: float) -> None:
        self.update_params({"master_volume": volume})

    def set_eq_gain(self, index: int, gain_db: float) -> None:
        if not 0 <= index < EQ_BAND_COUNT:
            raise InvalidConfigError(f"EQ band index {index} out of range 0..{EQ_BAND_COUNT - 1}")
        gains = list(self._params.eq_gains)
        gains[index] = gain_db
        self.update_params({"eq_gains": tuple(gains)})

    def set_delay_between_thunders(self, min_delay: float, max_delay: float) -> None:
        self._thunder.set_delay_between_thunders(min_delay, max_delay)

    def update_rain_params(self, changes: Mapping[str, Any] | RainParams) -> RainParams:
        return self._rain.update_params(changes)

    def update_thunder_params(self, changes: Mapping[str, Any] | ThunderParams) -> ThunderParams:
        return self._thunder.update_params(changes)

    def update_params(self, changes: Mapping[str, Any] | WeatherParams) -> WeatherParams:
        """Apply a partial update to the whole tree; nothing changes if it fails."""
        updated = merge_params(self.get_params(), changes)
        self._params = updated
        self._master.set_eq_gains(updated.eq_gains)
        self._master.volume = updated.master_volume
        self._rain.update_params(updated.rain)
        self._thunder.update_params(updated.thunder)
        return self.get_params()

    def get_params(self) -> WeatherParams:
        return self._params.model_copy(
            update={"rain": self._rain.get_params(), "thunder": self._thunder.get_params()}
        )

    def export_params_json(self) -> str:
        return self.get_params().model_dump_json(indent=2)

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def process_block(self, length: int | None = None) -> FloatArray:
        """Render the next `(2, length)` block and advance the clock."""
        frames = self._ctx.block_size if length is None else length
        mixed = self._rain.render_block(frames) + self._thunder.render_block(frames)
        out = self._master.process(mixed)
        self._ctx.advance(frames)
        return out
