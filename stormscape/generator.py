from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar, Generic

import numpy as np

from .audio import CHANNELS, FloatArray
from .config import ParamsT, changed_fields, merge_params
from .errors import GeneratorStateError
from .graph import ChannelStrip, EngineContext, Voice, VoicePool
from .logging_utils import get_logger


class BaseGenerator(ABC, Generic[ParamsT]):
    """Shared lifecycle, parameter handling and block rendering.

    Subclasses schedule voices in `_tick` and turn the mixed buses into the
    generator's pre-strip output in `_process`.
    """

    name: ClassVar[str] = "generator"
    buses: ClassVar[tuple[str, ...]] = ("dry", "send")

    def __init__(self, context: EngineContext, params: ParamsT) -> None:
        self._ctx = context
        self._logger = get_logger(f"generator.{self.name}")
        self._params = params
        self._running = False
        self._destroyed = False
        self._pool = VoicePool(self.buses)
        self._strip = ChannelStrip(context.sample_rate, gains_db=self._eq_gains(params))
        self._strip.volume = self._output_gain(params)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def context(self) -> EngineContext:
        return self._ctx

    @property
    def running(self) -> bool:
        return self._running

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def pool(self) -> VoicePool:
        return self._pool

    @property
    def strip(self) -> ChannelStrip:
        return self._strip

    def get_params(self) -> ParamsT:
        return self._params

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        if self._destroyed:
            raise GeneratorStateError(f"Cannot start destroyed {self.name} generator")
        if self._running:
            return
        self._running = True
        self._on_start()
        self._logger.info("%s started at %.3fs", self.name, self._ctx.current_time)

    def stop(self) -> None:
        """Cancel pending triggers; fired voices and reverb tails ring out."""
        if not self._running:
            return
        self._running = False
        self._on_stop()
        self._logger.info("%s stopped at %.3fs", self.name, self._ctx.current_time)

    def destroy(self) -> None:
        if self._destroyed:
            return
        self.stop()
        self._pool.clear()
        self._strip.reset()
        self._on_destroy()
        self._destroyed = True
        self._logger.debug("%s destroyed", self.name)

    # -------------------------------------------------------------------------
    # Parameters
    # -------------------------------------------------------------------------

    def update_params(self, changes: Mapping[str, Any] | ParamsT) -> ParamsT:
        """Merge a partial update; voices already fired keep their values."""
        previous = self._params
        updated = merge_params(previous, changes)
        changed = changed_fields(previous, updated)
        if not changed:
            return updated
        self._params = updated
        if "eq_gains" in changed:
            self._strip.set_eq_gains(self._eq_gains(updated))
        self._strip.volume = self._output_gain(updated)
        self._on_params_changed(previous, changed)
        self._logger.debug("%s params changed: %s", self.name, ", ".join(sorted(changed)))
        return updated

    def set_param(self, name: str, value: Any) -> ParamsT:
        return self.update_params({name: value})

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def render_block(self, length: int) -> FloatArray:
        """Stereo `(2, length)` output for the block starting at the current frame."""
        if self._destroyed or length <= 0:
            return np.zeros((CHANNELS, max(length, 0)))
        start_frame = self._ctx.frame
        if self._running:
            self._tick(self._ctx.current_time, length / self._ctx.sample_rate)
        buses = self._pool.mix(start_frame, length)
        return self._strip.process(self._process(buses, length))

    def _spawn(self, kind: str, when: float, outputs: Mapping[str, FloatArray]) -> Voice:
        voice = Voice(kind=kind, start_frame=self._ctx.frame_at(when), outputs=outputs)
        return self._pool.add(voice)

    # -------------------------------------------------------------------------
    # Subclass hooks
    # -------------------------------------------------------------------------

    def _eq_gains(self, params: ParamsT) -> tuple[float, ...]:
        return getattr(params, "eq_gains")

    def _output_gain(self, params: ParamsT) -> float:
        return 1.0

    def _on_start(self) -> None:
        return None

    def _on_stop(self) -> None:
        return None

    def _on_destroy(self) -> None:
        return None

    def _on_params_changed(self, previous: ParamsT, changed: frozenset[str]) -> None:
        return None

    @abstractmethod
    def _tick(self, start: float, dt: float) -> None:
        """Schedule voices for the window `[start, start+dt)`."""

    @abstractmethod
    def _process(self, buses: Mapping[str, FloatArray], length: int) -> FloatArray:
        """Combine bus mixes and persistent nodes into one stereo block."""
