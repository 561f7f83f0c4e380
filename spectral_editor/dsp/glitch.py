"""Stochastic time-domain glitches applied after resynthesis.

The buffer is walked in fixed 512-sample chunks. At every chunk boundary
four independent dice are rolled, in this order:

Stutter -- loop the chunk just before the cursor over the next
           ``stutter_duration`` ms and jump the cursor past it.
Drop    -- silence the chunk at the cursor.
Clip    -- hard-clip the chunk at the cursor to +-CLIP_LEVEL.
Jitter  -- replace the chunk with audio read up to +-JITTER_SAMPLES away,
           like a resampler with a wandering clock.

No crossfades: the clicks at chunk edges are part of the effect.

Stutter and drop follow the editor's established glitch behaviour. The
clip and jitter strengths, CLIP_LEVEL and JITTER_SAMPLES, are tuning
choices and free to be retuned.
"""

import numpy as np

from .stft import SR

CHUNK_SIZE = 512
CLIP_LEVEL = 0.25
JITTER_SAMPLES = 64


def apply_glitches(audio, params, sample_rate=SR, rng=None):
    """Apply stutter / drop / clip / jitter glitches.

    Args:
        audio: mono float64 array (not modified)
        params: transform params dict (see params.py)
        sample_rate: used to convert stutter_duration from ms
        rng: numpy Generator; a fresh unseeded one when None

    Returns:
        processed mono float64 array, same length
    """
    output = np.array(audio, dtype=np.float64, copy=True)
    if not params.get("glitch", False):
        return output

    stutter_chance = float(params.get("stutter_chance", 0.0))
    stutter_ms = float(params.get("stutter_duration", 50.0))
    drop_chance = float(params.get("drop_chance", 0.0))
    clip_chance = float(params.get("clip_chance", 0.0))
    jitter_chance = float(params.get("jitter_chance", 0.0))

    if rng is None:
        rng = np.random.default_rng()

    n = len(output)
    stutter_samples = int(sample_rate * (stutter_ms / 1000.0))

    i = 0
    while i < n:
        if rng.random() < stutter_chance:
            prev = output[max(0, i - CHUNK_SIZE):i].copy()
            if len(prev) > 0:
                end = min(i + stutter_samples, n)
                if end > i:
                    output[i:end] = np.resize(prev, end - i)
                # the loop step below adds the final CHUNK_SIZE
                i += max(1, stutter_samples) - CHUNK_SIZE

        start = max(0, i)
        end = min(start + CHUNK_SIZE, n)

        if rng.random() < drop_chance:
            output[start:end] = 0.0

        if rng.random() < clip_chance:
            np.clip(output[start:end], -CLIP_LEVEL, CLIP_LEVEL, out=output[start:end])

        if rng.random() < jitter_chance and end > start:
            chunk_len = end - start
            offset = int(rng.integers(-JITTER_SAMPLES, JITTER_SAMPLES + 1))
            src = min(max(0, start + offset), n - chunk_len)
            output[start:end] = output[src:src + chunk_len].copy()

        i += CHUNK_SIZE

    return output
