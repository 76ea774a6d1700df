from __future__ import annotations

import threading
import time
from collections.abc import Iterable
from typing import Any, Callable

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict

from .audio import AudioNumbers, ensure_frames
from .errors import PlaybackError
from .logging_utils import get_logger
from .spinner import ProgressBar, Spinner
from .wav import encode_pcm16

_LOGGER = get_logger("playback")
_WEATHER_FRAMES = "☁⛈☔⚡"


class PlaybackBackend(BaseModel):
    name: str
    play_audio: Callable[[NDArray[np.float32], int], None]
    play_stream: Callable[[Iterable[NDArray[np.float32]], int], None]

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )


def _load_backend() -> PlaybackBackend | None:
    return _load_sounddevice() or _load_simpleaudio()


def _resolve_backend() -> PlaybackBackend:
    backend = _load_backend()
    if backend is None:
        raise PlaybackError(
            "Playback requires sounddevice or simpleaudio. "
            "Install one of them (pip install 'stormscape[playback]') or render to a file."
        )
    _LOGGER.debug("Using %s playback backend", backend.name)
    return backend


def play_audio(samples: AudioNumbers, *, sample_rate: int) -> None:
    """Play a finished `(frames, channels)` buffer, blocking until done."""
    backend = _resolve_backend()
    frames = ensure_frames(samples)
    duration = frames.shape[0] / sample_rate if sample_rate > 0 else 0.0

    def _run() -> None:
        backend.play_audio(frames, sample_rate)

    _play_with_progress(_run, duration=duration, message="☔ Playing weather ... ")


def play_stream(chunks: Iterable[NDArray[np.float32]], *, sample_rate: int) -> None:
    """Play `(frames, channels)` blocks as they arrive."""
    backend = _resolve_backend()

    def _run() -> None:
        backend.play_stream(chunks, sample_rate)

    _play_with_spinner(_run, message="Streaming weather")


def _play_with_progress(
    play_fn: Callable[[], None],
    *,
    duration: float,
    message: str,
) -> None:
    progress = ProgressBar(message, total=max(duration, 0.0))
    error: list[BaseException] = []

    def _runner() -> None:
        try:
            play_fn()
        except BaseException as exc:
            error.append(exc)

    thread = threading.Thread(target=_runner, daemon=True)
    thread.start()
    start = time.monotonic()
    progress.start()
    try:
        while thread.is_alive():
            progress.update(time.monotonic() - start)
            time.sleep(0.1)
    finally:
        thread.join(timeout=0.2)
        progress.update(duration)
        progress.stop()
    if error:
        raise error[0]


def _play_with_spinner(play_fn: Callable[[], None], *, message: str) -> None:
    spinner = Spinner(f"{message} {_WEATHER_FRAMES[0]}", spinner="dots")
    spinner.start()
    try:
        play_fn()
    finally:
        spinner.stop()


def _load_sounddevice() -> PlaybackBackend | None:
    try:
        import sounddevice as sd_module  # type: ignore[import]
    except (ImportError, OSError) as exc:
        _LOGGER.info("sounddevice not available: %s", exc, exc_info=True)
        return None
    sd: Any = sd_module

    def _play_audio(samples: NDArray[np.float32], sample_rate: int) -> None:
        sd.play(samples, sample_rate)
        sd.wait()

    def _play_stream(chunks: Iterable[NDArray[np.float32]], sample_rate: int) -> None:
        stream: Any = None
        try:
            for chunk in chunks:
                frames = ensure_frames(chunk)
                if stream is None:
                    stream = sd.OutputStream(
                        samplerate=sample_rate,
                        channels=frames.shape[1],
                        dtype="float32",
                    )
                    stream.start()
                stream.write(np.ascontiguousarray(frames))
        finally:
            if stream is not None:
                stream.stop()
                stream.close()

    return PlaybackBackend(
        name="sounddevice",
        play_audio=_play_audio,
        play_stream=_play_stream,
    )


def _load_simpleaudio() -> PlaybackBackend | None:
    try:
        import simpleaudio as sa_module  # type: ignore[import]
    except ImportError as exc:
        _LOGGER.info("simpleaudio not available: %s", exc, exc_info=True)
        return None
    sa: Any = sa_module

    def _play_audio(samples: NDArray[np.float32], sample_rate: int) -> None:
        frames = ensure_frames(samples)
        pcm = np.ascontiguousarray(encode_pcm16(frames))
        play = sa.play_buffer(pcm, frames.shape[1], 2, sample_rate)
        play.wait_done()

    def _play_stream(chunks: Iterable[NDArray[np.float32]], sample_rate: int) -> None:
        # Chunks play as they arrive; a live stream may never end.
        for chunk in chunks:
            _play_audio(chunk, sample_rate)

    return PlaybackBackend(
        name="simpleaudio",
        play_audio=_play_audio,
        play_stream=_play_stream,
    )
