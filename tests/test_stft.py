"""Test STFT analysis and overlap-add resynthesis.

Run: uv run pytest tests/test_stft.py

Key test: a sine survives analyze -> synthesize to within 1e-5 wherever two
frames overlap (Hann, hop = N/2).
"""

import asyncio

import numpy as np
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from spectral_editor.dsp.stft import (
    BLOCK_SIZES, StftParams, analyze, frame_signal, hann_window,
    synthesize, synthesize_async,
)
from spectral_editor.dsp.utils import generate_sine, generate_white_noise
from spectral_editor.errors import ConfigError

SR = 44100


def _covered_length(n_frames, hop):
    """Signal length that fits exactly n_frames full blocks."""
    return n_frames * hop + hop


# ---------------------------------------------------------------------------
# Test 1: window and configuration
# ---------------------------------------------------------------------------
def test_hann_window_formula():
    n = 1024
    i = np.arange(n)
    expected = 0.5 * (1 - np.cos(2 * np.pi * i / (n - 1)))
    assert np.allclose(hann_window(n), expected, atol=1e-15)
    assert hann_window(n)[0] == pytest.approx(0.0, abs=1e-15)


def test_hop_is_half_block():
    for block in BLOCK_SIZES:
        params = StftParams(SR, block)
        assert params.hop_size == block // 2
        assert params.n_bins == block // 2 + 1


def test_invalid_block_size_is_config_error():
    with pytest.raises(ConfigError):
        StftParams(SR, 1000)
    with pytest.raises(ValueError):
        StftParams(SR, 16384)
    with pytest.raises(ConfigError):
        StftParams(SR, 1024, window="hamming")


# ---------------------------------------------------------------------------
# Test 2: forward transform shape and content
# ---------------------------------------------------------------------------
def test_analyze_shape_and_trailing_samples_dropped():
    params = StftParams(SR, 1024)
    spec = analyze(np.ones(1024 + 300), params)
    print(f"  shape: {spec.shape}")
    assert spec.shape == (513, 1)

    spec = analyze(np.ones(_covered_length(10, 512)), params)
    assert spec.shape == (513, 10)
    assert spec.dtype == np.complex128


def test_analyze_matches_rfft_of_windowed_frames():
    params = StftParams(SR, 512)
    x = generate_white_noise(0.1, SR, seed=3)
    spec = analyze(x, params)
    frames = frame_signal(x, params)
    assert frames.shape[0] == spec.shape[1]
    for fi in (0, spec.shape[1] // 2, spec.shape[1] - 1):
        start = fi * params.hop_size
        expected = np.fft.rfft(x[start:start + 512] * hann_window(512))
        assert np.allclose(spec[:, fi], expected, atol=1e-10)


def test_short_signal_gives_empty_spectrogram():
    params = StftParams(SR, 2048)
    spec = analyze(np.ones(100), params)
    assert spec.shape == (1025, 0)
    out = synthesize(spec, params, 100)
    assert out.shape == (100,)
    assert not np.any(out)


# ---------------------------------------------------------------------------
# Test 3: round trip
# ---------------------------------------------------------------------------
def test_sine_round_trip_below_1e5():
    """Checked over [hop, n_frames*hop) only, where two frames overlap.

    The first hop sits under one frame whose leading taps have
    w^2 < 1e-9 (w[1]^2 is about 8.9e-11), so those samples are not
    normalised; samples past the last frame are never covered. Both are
    excluded on purpose, see test_uncovered_tail_left_as_is.
    """
    print("Test: 440 Hz sine, block 1024, hop 512")
    params = StftParams(SR, 1024)
    hop = params.hop_size
    n_frames = 100
    x = generate_sine(_covered_length(n_frames, hop) / SR, 440.0, SR)
    x = x[:_covered_length(n_frames, hop)]

    spec = analyze(x, params)
    assert spec.shape[1] == n_frames
    y = synthesize(spec, params, len(x))

    # every sample in [hop, n_frames*hop) sits under two frames
    err = np.max(np.abs(x[hop:n_frames * hop] - y[hop:n_frames * hop]))
    print(f"  max error: {err:.2e}")
    assert err < 1e-5


@pytest.mark.parametrize("block", [256, 2048, 8192])
def test_noise_round_trip_all_block_sizes(block):
    params = StftParams(SR, block)
    hop = params.hop_size
    n_frames = 12
    x = generate_white_noise(2.0, SR, seed=block)[:_covered_length(n_frames, hop)]
    y = synthesize(analyze(x, params), params, len(x))
    err = np.max(np.abs(x[hop:n_frames * hop] - y[hop:n_frames * hop]))
    assert err < 1e-9


def test_output_length_is_respected():
    params = StftParams(SR, 512)
    x = generate_sine(0.2, 1000.0, SR)
    spec = analyze(x, params)
    assert synthesize(spec, params, len(x)).shape == (len(x),)
    # shorter than the frames cover: extra frames are discarded
    short = synthesize(spec, params, 700)
    assert short.shape == (700,)
    assert np.max(np.abs(short[256:700] - x[256:700])) < 1e-9


def test_uncovered_tail_left_as_is():
    params = StftParams(SR, 1024)
    x = np.ones(1024 + 300)
    y = synthesize(analyze(x, params), params, len(x))
    assert np.all(y[1024:] == 0.0)
    assert np.all(np.isfinite(y))


# ---------------------------------------------------------------------------
# Test 4: cooperative synthesis
# ---------------------------------------------------------------------------
def test_async_matches_sync():
    params = StftParams(SR, 1024)
    x = generate_white_noise(0.5, SR, seed=7)
    spec = analyze(x, params)
    sync = synthesize(spec, params, len(x))
    async_out = asyncio.run(synthesize_async(spec, params, len(x), yield_interval=0.0))
    assert np.array_equal(sync, async_out)


def test_async_yields_to_other_tasks():
    params = StftParams(SR, 256)
    x = generate_white_noise(0.5, SR, seed=11)
    spec = analyze(x, params)

    async def scenario():
        ticks = 0
        done = False

        async def ticker():
            nonlocal ticks
            while not done:
                ticks += 1
                await asyncio.sleep(0)

        task = asyncio.ensure_future(ticker())
        out = await synthesize_async(spec, params, len(x), yield_interval=0.0)
        done = True
        await task
        return out, ticks

    out, ticks = asyncio.run(scenario())
    print(f"  ticker ran {ticks} times during synthesis")
    assert ticks > 1
    assert out.shape == (len(x),)
