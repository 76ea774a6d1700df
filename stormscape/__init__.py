from __future__ import annotations

from .audio import CHANNELS, SAMPLE_RATE
from .config import (
    EQ_FREQUENCIES,
    DelayRange,
    OscParam,
    RainParams,
    RandParam,
    ThunderParams,
    WeatherParams,
    load_params,
    merge_params,
    parse_params,
)
from .controller import WeatherController
from .errors import (
    GeneratorStateError,
    InvalidConfigError,
    PlaybackError,
    RenderError,
    StormscapeError,
)
from .graph import EngineContext
from .logging_utils import configure_logging as _configure_logging
from .modulation import evaluate_osc, evaluate_rand
from .rain import RainGenerator
from .render import Audio, LiveSession, play_live, render_offline
from .thunder import ThunderGenerator
from .wav import encode_wav, read_wav, write_wav

__all__ = [
    "Audio",
    "CHANNELS",
    "DelayRange",
    "EQ_FREQUENCIES",
    "EngineContext",
    "GeneratorStateError",
    "InvalidConfigError",
    "LiveSession",
    "OscParam",
    "PlaybackError",
    "RainGenerator",
    "RainParams",
    "RandParam",
    "RenderError",
    "SAMPLE_RATE",
    "StormscapeError",
    "ThunderGenerator",
    "ThunderParams",
    "WeatherController",
    "WeatherParams",
    "encode_wav",
    "evaluate_osc",
    "evaluate_rand",
    "load_params",
    "merge_params",
    "parse_params",
    "play_live",
    "read_wav",
    "render_offline",
    "write_wav",
]

__version__ = "0.1.0"

_configure_logging()
del _configure_logging
