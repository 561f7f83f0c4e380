"""Test EditSession: analysis cache, mask history and full renders.

Run: uv run pytest tests/test_session.py
"""

import asyncio

import numpy as np
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from spectral_editor.dsp.stft import StftParams
from spectral_editor.dsp.utils import generate_sine
from spectral_editor.engine import ResynthesisScheduler
from spectral_editor.errors import ConfigError
from spectral_editor.model import EditSession

SR = 44100
HOP = 512
N_FRAMES = 100


def _padded_sine():
    """Sine with one silent hop at each end, exactly N_FRAMES blocks long."""
    n = N_FRAMES * HOP + HOP
    fade = 2048
    env = np.ones(n)
    env[:HOP] = 0.0
    env[-HOP:] = 0.0
    ramp = 0.5 * (1.0 - np.cos(np.pi * np.arange(fade) / fade))
    env[HOP:HOP + fade] = ramp
    env[n - HOP - fade:n - HOP] = ramp[::-1]
    return generate_sine(1.5, 440.0, SR)[:n] * env


@pytest.fixture
def session():
    return EditSession(_padded_sine(), SR, StftParams(SR, 1024))


# ---------------------------------------------------------------------------
# Test 1: analysis
# ---------------------------------------------------------------------------
def test_analysis_is_cached_read_only(session):
    assert session.n_frames == N_FRAMES
    assert session.n_bins == 513
    assert not session.source.flags.writeable
    assert not session.spectrogram.flags.writeable
    assert session.mask.shape == (N_FRAMES, 513)
    assert session.mask.is_neutral()
    assert not session.original_display.empty


def test_file_decides_sample_rate():
    s = EditSession(np.zeros(4096), 22050, StftParams(48000, 512))
    assert s.sample_rate == 22050
    assert s.stft.block_size == 512


def test_set_block_size_replaces_mask(session):
    session.paint(50, 100)
    session.set_block_size(2048)
    assert session.n_bins == 1025
    assert session.mask.shape == (session.n_frames, 1025)
    assert session.mask.is_neutral()
    assert not session.undo()


def test_bad_block_size_keeps_state(session):
    before = session.spectrogram
    with pytest.raises(ConfigError):
        session.set_block_size(1000)
    assert session.stft.block_size == 1024
    assert session.spectrogram is before


# ---------------------------------------------------------------------------
# Test 2: mask history
# ---------------------------------------------------------------------------
def test_paint_swaps_in_new_mask(session):
    snap = session.snapshot()
    session.update_params(brush_gain_db=-30.0, brush_radius=10.0)
    session.paint(50, 100)
    assert snap.mask.is_neutral()
    assert session.mask is not snap.mask
    assert session.mask.gain[50, 100] == pytest.approx(-30.0)


def test_generative_brush_defaults_and_ceiling():
    s = EditSession(np.zeros(8192), SR, params={"brush_mode": "generative"})
    assert s.params["brush_gain_db"] == -24.0
    s.paint(4, 10)
    assert s.mask.generative[4, 10] == pytest.approx(-24.0)

    loud = EditSession(np.zeros(8192), SR,
                       params={"brush_mode": "generative", "brush_gain_db": 24.0})
    assert loud.params["brush_gain_db"] == 0.0
    loud.paint(4, 10)
    print(f"  generative max: {loud.mask.generative.max():.1f} dB")
    assert loud.mask.generative.max() <= 0.0
    # explicit values are capped by the mask itself
    loud.paint(4, 10, value=24.0)
    assert loud.mask.generative.max() <= 0.0


def test_switching_mode_resets_brush_value(session):
    session.update_params(brush_mode="generative")
    assert session.params["brush_gain_db"] == -24.0
    session.update_params(brush_gain_db=-6.0)
    assert session.params["brush_gain_db"] == -6.0
    session.update_params(brush_mode="subtractive")
    assert session.params["brush_gain_db"] == -60.0
    session.update_params(brush_mode="generative", brush_gain_db=-3.0)
    assert session.params["brush_gain_db"] == -3.0


def test_paint_overrides(session):
    session.paint(50, 100, radius=6, value=-12)
    assert session.mask.gain[50, 100] == pytest.approx(-12.0)
    # another mode without a value starts from that mode's default
    session.paint(20, 200, mode="generative")
    assert session.mask.generative[20, 200] == pytest.approx(-24.0)
    assert session.params["brush_mode"] == "subtractive"


def test_unknown_paint_mode_leaves_mask(session):
    before = session.mask
    with pytest.raises(ConfigError):
        session.paint(50, 100, mode="generativ")
    assert session.mask is before
    assert not session.undo()


def test_undo_redo(session):
    m0 = session.mask
    m1 = session.paint(50, 100)
    m2 = session.paint(60, 200, to=(70, 220))
    assert session.undo()
    assert session.mask is m1
    assert session.undo()
    assert session.mask is m0
    assert not session.undo()
    assert session.redo()
    assert session.redo()
    assert session.mask is m2
    assert not session.redo()


def test_reset_mask(session):
    session.paint(50, 100)
    session.reset_mask()
    assert session.mask.is_neutral()
    assert session.undo()
    assert not session.mask.is_neutral()


def test_undo_depth_is_bounded(session):
    for i in range(30):
        session.paint(i + 10, 100)
    n = 0
    while session.undo():
        n += 1
    assert n == 20


# ---------------------------------------------------------------------------
# Test 3: rendering
# ---------------------------------------------------------------------------
def test_lossless_render(session):
    result = asyncio.run(session.render())
    m = result.metrics
    print(f"  max error {m['max_error']:.2e}, SNR {m['snr_db']:.1f} dB")
    assert len(result.audio) == len(session.source)
    assert m["status"] == "success"
    assert m["max_error"] < 1e-5
    assert result.display.data.shape == session.original_display.data.shape
    assert np.max(np.abs(result.difference.data)) < 1.0 + 1e-12


def test_edited_render_is_lossy(session):
    session.update_params(spectral_edit=True, brush_gain_db=-80.0, brush_radius=40.0)
    # 440 Hz sits near bin 10 at block 1024
    session.paint(0, 10, to=(N_FRAMES - 1, 10))
    result = asyncio.run(session.render(rng=np.random.default_rng(0)))
    assert result.metrics["status"] == "lossy"
    assert np.max(np.abs(result.audio)) < 0.5 * np.max(np.abs(session.source))


def test_render_uses_snapshot_not_live_state(session):
    session.update_params(spectral_edit=True)
    snap = session.snapshot()
    session.update_params(brush_gain_db=-80.0, brush_radius=40.0)
    session.paint(0, 10, to=(N_FRAMES - 1, 10))
    result = asyncio.run(session.render(snap))
    assert result.metrics["max_error"] < 1e-5


def test_short_input_renders_silence():
    s = EditSession(np.full(100, 0.5), SR)
    assert s.n_frames == 0
    result = asyncio.run(s.render())
    assert len(result.audio) == 100
    assert not np.any(result.audio)
    assert result.display.empty
    assert result.difference.empty


def test_scheduler_renders_final_snapshot(session):
    session.update_params(spectral_edit=True)

    async def scenario():
        delivered = []
        sched = ResynthesisScheduler(session.render, lambda seq, r: delivered.append(r),
                                     delay=0.02)
        for f in (20, 40, 60):
            session.paint(f, 10)
            sched.request(session.snapshot())
        await sched.flush()
        return delivered

    delivered = asyncio.run(scenario())
    assert len(delivered) == 1
    assert delivered[0].metrics["status"] == "lossy"
