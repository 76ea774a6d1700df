"""Signal graph pieces shared by the generators.

- `EngineContext`: the single sample clock plus sample rate and random source.
- `Voice` / `VoicePool`: ephemeral voices pre-rendered to per-bus buffers and
  mixed into blocks until the clock passes their end.
- `ChannelStrip`: persistent 10-band peaking EQ followed by an output gain.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field

import numpy as np

from .audio import CHANNELS, SAMPLE_RATE, FloatArray
from .config import EQ_BAND_COUNT, EQ_FREQUENCIES, FLAT_EQ
from .dsp import BiquadFilter
from .errors import InvalidConfigError
from .logging_utils import get_logger

_LOGGER = get_logger("graph")

DEFAULT_BLOCK_SIZE = 512
EQ_Q = 1.0


# -----------------------------------------------------------------------------
# Clock
# -----------------------------------------------------------------------------


class EngineContext:
    """Owns the logical clock; it only moves forward by rendered block sizes."""

    def __init__(
        self,
        *,
        sample_rate: int = SAMPLE_RATE,
        block_size: int = DEFAULT_BLOCK_SIZE,
        seed: int | None = None,
    ) -> None:
        if sample_rate <= 0:
            raise InvalidConfigError(f"sample_rate must be positive, got {sample_rate}")
        if block_size <= 0:
            raise InvalidConfigError(f"block_size must be positive, got {block_size}")
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.rng = np.random.default_rng(seed)
        self._frame = 0

    @property
    def frame(self) -> int:
        return self._frame

    @property
    def current_time(self) -> float:
        return self._frame / self.sample_rate

    def frame_at(self, time: float) -> int:
        return int(round(time * self.sample_rate))

    def advance(self, frames: int) -> None:
        self._frame += frames


# -----------------------------------------------------------------------------
# Voices
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Voice:
    """A pre-rendered event: stereo buffers per bus starting at `start_frame`."""

    kind: str
    start_frame: int
    outputs: Mapping[str, FloatArray]
    on_complete: Callable[["Voice"], None] | None = field(default=None, compare=False)

    @property
    def length(self) -> int:
        return max((buffer.shape[-1] for buffer in self.outputs.values()), default=0)

    @property
    def end_frame(self) -> int:
        return self.start_frame + self.length


class VoicePool:
    """Arena of live voices keyed on the engine clock."""

    def __init__(self, buses: Sequence[str], *, channels: int = CHANNELS) -> None:
        self._buses = tuple(buses)
        self._channels = channels
        self._voices: list[Voice] = []
        self.spawned: Counter[str] = Counter()

    def __len__(self) -> int:
        return len(self._voices)

    @property
    def buses(self) -> tuple[str, ...]:
        return self._buses

    @property
    def voices(self) -> tuple[Voice, ...]:
        return tuple(self._voices)

    def add(self, voice: Voice) -> Voice:
        unknown = set(voice.outputs) - set(self._buses)
        if unknown:
            raise ValueError(f"Voice '{voice.kind}' targets unknown buses: {sorted(unknown)}")
        self._voices.append(voice)
        self.spawned[voice.kind] += 1
        return voice

    def mix(self, start_frame: int, length: int) -> dict[str, FloatArray]:
        """Sum every voice overlapping `[start_frame, start_frame+length)` per bus."""
        out = {bus: np.zeros((self._channels, length)) for bus in self._buses}
        end_frame = start_frame + length
        for voice in self._voices:
            if voice.start_frame >= end_frame or voice.end_frame <= start_frame:
                continue
            for bus, buffer in voice.outputs.items():
                begin = max(start_frame, voice.start_frame)
                end = min(end_frame, voice.start_frame + buffer.shape[-1])
                if end <= begin:
                    continue
                out[bus][:, begin - start_frame : end - start_frame] += buffer[
                    :, begin - voice.start_frame : end - voice.start_frame
                ]
        self.reap(end_frame)
        return out

    def reap(self, frame: int) -> int:
        """Drop voices that end at or before `frame`, firing their callbacks."""
        finished = [voice for voice in self._voices if voice.end_frame <= frame]
        if not finished:
            return 0
        self._voices = [voice for voice in self._voices if voice.end_frame > frame]
        for voice in finished:
            if voice.on_complete is not None:
                voice.on_complete(voice)
        return len(finished)

    def clear(self) -> None:
        if self._voices:
            _LOGGER.debug("Discarding %d live voices", len(self._voices))
        self._voices = []


# -----------------------------------------------------------------------------
# Channel strip
# -----------------------------------------------------------------------------


class ChannelStrip:
    """Ten peaking bands at `EQ_FREQUENCIES` followed by a linear gain."""

    def __init__(
        self,
        sample_rate: int,
        *,
        gains_db: Iterable[float] = FLAT_EQ,
        volume: float = 1.0,
        channels: int = CHANNELS,
    ) -> None:
        self._bands = [
            BiquadFilter("peaking", freq, sample_rate=sample_rate, q=EQ_Q, channels=channels)
            for freq in EQ_FREQUENCIES
        ]
        self.volume = volume
        self.set_eq_gains(gains_db)

    @property
    def eq_gains(self) -> tuple[float, ...]:
        return tuple(band.gain_db for band in self._bands)

    def set_eq_gains(self, gains_db: Iterable[float]) -> None:
        gains = tuple(float(gain) for gain in gains_db)
        if len(gains) != EQ_BAND_COUNT:
            raise InvalidConfigError(f"eq_gains needs {EQ_BAND_COUNT} bands, got {len(gains)}")
        for band, gain in zip(self._bands, gains):
            band.gain_db = gain

    def set_eq_gain(self, index: int, gain_db: float) -> None:
        if not 0 <= index < EQ_BAND_COUNT:
            raise InvalidConfigError(f"EQ band index {index} out of range 0..{EQ_BAND_COUNT - 1}")
        self._bands[index].gain_db = float(gain_db)

    def process(self, block: FloatArray) -> FloatArray:
        out = block
        for band in self._bands:
            # a 0 dB peaking band is the identity
            if band.gain_db != 0.0:
                out = band.process(out)
        return out * self.volume

    def reset(self) -> None:
        for band in self._bands:
            band.reset()
