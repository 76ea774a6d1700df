from __future__ import annotations


class StormscapeError(Exception):
    """Base error for the stormscape library."""


class InvalidConfigError(StormscapeError):
    """Raised when a parameter set cannot be parsed or validated."""


class GeneratorStateError(StormscapeError):
    """Raised when a generator is driven after it has been destroyed."""


class RenderError(StormscapeError):
    """Raised when a render request cannot be satisfied."""


class PlaybackError(StormscapeError):
    """Raised when no real-time playback backend is available."""
