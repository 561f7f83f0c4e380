"""Numba-accelerated brush kernels for spectral mask painting."""

import math
import numba
import numpy as np

GAIN_MIN_DB = -80.0
GAIN_MAX_DB = 24.0
GEN_NEUTRAL_DB = -999.0
GEN_MAX_DB = 0.0
GEN_ACTIVE_DB = -900.0  # generative cells above this are audible

# exp(-2.7726 * d): weight 0.5 at half the radius, 1/16 on the edge
FALLOFF = 2.7726
GEN_FEATHER_DB = 20.0


@numba.njit(cache=True)
def _round_half_up(x):
    return int(math.floor(x + 0.5))


@numba.njit(cache=True)
def apply_brush(layer: np.ndarray, cf: float, cb: float, radius: float,
                value: float, is_erase: bool, is_generative: bool):
    """Stamp an elliptical Gaussian brush into one mask layer.

    Args:
        layer: (n_frames, n_bins) float32 dB array, modified in-place
        cf: center frame
        cb: center bin
        radius: brush radius in bins; frame radius is max(2, radius/4)
        value: gain (subtractive) or loudness (generative) in dB
        is_erase: restore toward neutral instead of painting
        is_generative: paint the generative loudness layer
    """
    n_frames, n_bins = layer.shape
    radius_f = max(2, _round_half_up(radius / 4.0))
    radius_b = radius if radius != 0.0 else 1.0

    f0 = max(0, int(math.floor(cf - radius_f)))
    f1 = min(n_frames - 1, int(math.ceil(cf + radius_f)))
    b0 = max(0, int(math.floor(cb - radius)))
    b1 = min(n_bins - 1, int(math.ceil(cb + radius)))

    for f in range(f0, f1 + 1):
        df = (f - cf) / radius_f
        for b in range(b0, b1 + 1):
            db = (b - cb) / radius_b
            d = df * df + db * db
            if d > 1.0:
                continue
            w = math.exp(-FALLOFF * d)
            if is_generative:
                if is_erase:
                    layer[f, b] = GEN_NEUTRAL_DB
                else:
                    # loudness is a ceiling (at most 0 dB), feathered lower toward the edge
                    target = min(value, GEN_MAX_DB) - (1.0 - w) * GEN_FEATHER_DB
                    if target > layer[f, b]:
                        layer[f, b] = target
            else:
                if is_erase:
                    val = layer[f, b] - value * w
                    layer[f, b] = max(GAIN_MIN_DB, min(0.0, val))
                else:
                    val = layer[f, b] + value * w
                    layer[f, b] = max(GAIN_MIN_DB, min(GAIN_MAX_DB, val))


@numba.njit(cache=True)
def apply_brush_line(layer: np.ndarray, f0: float, b0: float, f1: float, b1: float,
                     radius: float, value: float, is_erase: bool,
                     is_generative: bool):
    """Stamp the brush at every rounded point of the segment p0 -> p1."""
    df = f1 - f0
    db = b1 - b0
    steps = int(math.ceil(max(abs(df), abs(db))))
    if steps == 0:
        apply_brush(layer, f0, b0, radius, value, is_erase, is_generative)
        return
    for i in range(steps + 1):
        t = i / steps
        f = _round_half_up(f0 + df * t)
        b = _round_half_up(b0 + db * t)
        apply_brush(layer, f, b, radius, value, is_erase, is_generative)
