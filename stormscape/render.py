from __future__ import annotations

from collections.abc import Iterator, Mapping
from pathlib import Path
from queue import Empty, Full, Queue
from threading import Event, Lock, Thread
from typing import Any, cast

import numpy as np
from numpy.typing import DTypeLike, NDArray
from pydantic import BaseModel, ConfigDict, model_validator

from .audio import SAMPLE_RATE, ensure_frames
from .controller import ParamsInput, WeatherController
from .errors import PlaybackError, RenderError
from .graph import DEFAULT_BLOCK_SIZE
from .logging_utils import get_logger
from .spinner import render_error
from .wav import WavSubtype, write_wav

_LOGGER = get_logger("render")

DEFAULT_QUEUE_BLOCKS = 16


class Audio(BaseModel):
    """Rendered `(frames, channels)` float32 audio."""

    samples: NDArray[np.float32]
    sample_rate: int = SAMPLE_RATE

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )

    @model_validator(mode="after")
    def _normalize(self) -> "Audio":
        object.__setattr__(self, "samples", ensure_frames(self.samples))
        return self

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def channels(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate

    def to_numpy(self) -> NDArray[np.float32]:
        return self.samples

    def __array__(self, dtype: DTypeLike | None = None, copy: bool | None = None) -> NDArray[np.generic]:
        return np.array(self.samples, dtype=dtype, copy=copy)

    def save(self, path: str | Path, *, subtype: WavSubtype = "PCM_16") -> Path:
        return write_wav(path, self.samples, sample_rate=self.sample_rate, subtype=subtype)

    def play(self) -> None:
        from .playback import play_audio

        try:
            play_audio(self.samples, sample_rate=self.sample_rate)
        except PlaybackError as exc:
            render_error("playback", exc)
            raise


def _check_request(duration: float | None, sample_rate: int, block_size: int) -> None:
    if duration is not None and duration <= 0:
        raise RenderError(f"duration must be positive, got {duration}")
    if sample_rate <= 0:
        raise RenderError(f"sample_rate must be positive, got {sample_rate}")
    if block_size <= 0:
        raise RenderError(f"block_size must be positive, got {block_size}")


def render_offline(
    params: ParamsInput = None,
    *,
    duration: float,
    sample_rate: int = SAMPLE_RATE,
    block_size: int = DEFAULT_BLOCK_SIZE,
    seed: int | None = None,
) -> Audio:
    """Render `duration` seconds as fast as possible on the virtual clock.

    The result has exactly `int(duration * sample_rate)` stereo frames.
    """
    _check_request(duration, sample_rate, block_size)
    controller = WeatherController(params, sample_rate=sample_rate, block_size=block_size, seed=seed)
    total = int(duration * sample_rate)
    out = np.zeros((total, 2), dtype=np.float32)
    controller.start()
    try:
        for begin in range(0, total, block_size):
            length = min(block_size, total - begin)
            out[begin : begin + length] = controller.process_block(length).T
    finally:
        controller.destroy()
    _LOGGER.info("Rendered %.2fs (%d frames, sr=%d)", duration, total, sample_rate)
    return Audio(samples=out, sample_rate=sample_rate)


class LiveSession:
    """Real-time regime: a producer thread renders blocks into a bounded queue.

    The queue bound paces rendering to the consumer. Parameter updates from
    other threads are applied between blocks.
    """

    def __init__(
        self,
        params: ParamsInput = None,
        *,
        duration: float | None = None,
        sample_rate: int = SAMPLE_RATE,
        block_size: int = DEFAULT_BLOCK_SIZE,
        seed: int | None = None,
        queue_blocks: int = DEFAULT_QUEUE_BLOCKS,
    ) -> None:
        _check_request(duration, sample_rate, block_size)
        self._controller = WeatherController(params, sample_rate=sample_rate, block_size=block_size, seed=seed)
        self._total = None if duration is None else int(duration * sample_rate)
        self._queue: Queue[object] = Queue(maxsize=max(1, queue_blocks))
        self._sentinel = object()
        self._stop = Event()
        self._lock = Lock()
        self._thread: Thread | None = None
        self.sample_rate = sample_rate

    @property
    def controller(self) -> WeatherController:
        return self._controller

    def start(self) -> None:
        if self._thread is not None:
            return
        self._controller.start()
        self._thread = Thread(target=self._produce, name="stormscape-live", daemon=True)
        self._thread.start()

    def update_params(self, changes: Mapping[str, Any]) -> None:
        with self._lock:
            self._controller.update_params(changes)

    def blocks(self) -> Iterator[NDArray[np.float32]]:
        """Yield `(frames, 2)` float32 blocks until the session ends."""
        while True:
            try:
                item = self._queue.get(timeout=0.1)
            except Empty:
                if self._thread is None or not self._thread.is_alive():
                    return
                continue
            if item is self._sentinel:
                return
            if isinstance(item, BaseException):
                raise item
            yield cast(NDArray[np.float32], item)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        with self._lock:
            self._controller.destroy()

    def __enter__(self) -> "LiveSession":
        self.start()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.stop()

    def _produce(self) -> None:
        rendered = 0
        block_size = self._controller.context.block_size
        try:
            while not self._stop.is_set():
                length = block_size
                if self._total is not None:
                    length = min(block_size, self._total - rendered)
                    if length <= 0:
                        break
                with self._lock:
                    block = self._controller.process_block(length).T.astype(np.float32)
                rendered += length
                self._put(block)
        except Exception as exc:
            _LOGGER.warning("Live render failed: %s", exc, exc_info=True)
            self._put(exc)
        finally:
            self._put(self._sentinel)

    def _put(self, item: object) -> None:
        while True:
            try:
                self._queue.put(item, timeout=0.1)
                return
            except Full:
                if self._stop.is_set():
                    return


def play_live(
    params: ParamsInput = None,
    *,
    duration: float | None = None,
    sample_rate: int = SAMPLE_RATE,
    block_size: int = DEFAULT_BLOCK_SIZE,
    seed: int | None = None,
) -> None:
    """Stream the weather to the default audio device."""
    from .playback import play_stream

    with LiveSession(
        params,
        duration=duration,
        sample_rate=sample_rate,
        block_size=block_size,
        seed=seed,
    ) as session:
        play_stream(session.blocks(), sample_rate=sample_rate)
