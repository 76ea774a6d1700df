from __future__ import annotations

import numpy as np
import pytest

from stormscape.errors import InvalidConfigError
from stormscape.graph import ChannelStrip, EngineContext, Voice, VoicePool

_SR = 44_100


def _voice(start: int, length: int, value: float = 1.0, **kwargs: object) -> Voice:
    return Voice(kind="test", start_frame=start, outputs={"dry": np.full((2, length), value)}, **kwargs)  # type: ignore[arg-type]


def test_engine_context_clock_advances_by_blocks() -> None:
    ctx = EngineContext(sample_rate=1000, block_size=100, seed=0)
    assert ctx.current_time == 0.0
    ctx.advance(100)
    ctx.advance(50)
    assert ctx.frame == 150
    assert ctx.current_time == pytest.approx(0.15)
    assert ctx.frame_at(0.2004) == 200


def test_engine_context_rejects_bad_sizes() -> None:
    with pytest.raises(InvalidConfigError):
        EngineContext(sample_rate=0)
    with pytest.raises(InvalidConfigError):
        EngineContext(block_size=-1)


def test_voice_pool_mixes_across_block_boundary() -> None:
    pool = VoicePool(("dry", "send"))
    pool.add(_voice(start=6, length=6))
    first = pool.mix(0, 8)
    second = pool.mix(8, 8)
    assert first["dry"][0].tolist() == [0.0] * 6 + [1.0, 1.0]
    assert second["dry"][0].tolist() == [1.0] * 4 + [0.0] * 4
    assert not first["send"].any()
    assert len(pool) == 0


def test_voice_pool_sums_overlapping_voices() -> None:
    pool = VoicePool(("dry",))
    pool.add(_voice(start=0, length=4, value=0.5))
    pool.add(_voice(start=2, length=4, value=0.25))
    block = pool.mix(0, 4)["dry"][1]
    assert block.tolist() == [0.5, 0.5, 0.75, 0.75]
    assert len(pool) == 1


def test_reaper_runs_completion_callbacks() -> None:
    finished: list[str] = []
    pool = VoicePool(("dry",))
    pool.add(_voice(start=0, length=3, on_complete=lambda voice: finished.append(voice.kind)))
    pool.mix(0, 2)
    assert finished == []
    pool.mix(2, 2)
    assert finished == ["test"]


def test_voice_pool_rejects_unknown_bus() -> None:
    pool = VoicePool(("dry",))
    with pytest.raises(ValueError):
        pool.add(Voice(kind="x", start_frame=0, outputs={"wet": np.zeros((2, 1))}))


def test_voice_pool_counts_spawns_and_clears() -> None:
    pool = VoicePool(("dry",))
    pool.add(_voice(start=0, length=10))
    pool.add(_voice(start=0, length=10))
    assert pool.spawned["test"] == 2
    pool.clear()
    assert len(pool) == 0
    assert pool.spawned["test"] == 2


def test_flat_channel_strip_only_applies_volume() -> None:
    strip = ChannelStrip(_SR, volume=0.5)
    block = np.random.default_rng(0).uniform(-1.0, 1.0, (2, 256))
    assert np.allclose(strip.process(block), block * 0.5)


def test_channel_strip_band_boost() -> None:
    strip = ChannelStrip(_SR)
    strip.set_eq_gain(5, 6.0)
    tone = np.sin(2.0 * np.pi * 1000.0 * np.arange(_SR) / _SR)
    out = strip.process(np.vstack((tone, tone)))[:, _SR // 2 :]
    ratio = np.sqrt(np.mean(out**2)) / np.sqrt(np.mean(tone[_SR // 2 :] ** 2))
    assert 20.0 * np.log10(ratio) == pytest.approx(6.0, abs=0.3)


def test_channel_strip_validates_bands() -> None:
    strip = ChannelStrip(_SR)
    with pytest.raises(InvalidConfigError):
        strip.set_eq_gain(10, 3.0)
    with pytest.raises(InvalidConfigError):
        strip.set_eq_gains((0.0, 1.0))
