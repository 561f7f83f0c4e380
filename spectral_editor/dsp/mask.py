"""SpectralMask: the two-layer edit grid and its application to a spectrogram.

Layers are (n_frames, n_bins) float32 arrays in dB:
    gain        multiplicative on magnitude, 0 = unity, edits stay in [-80, 24]
    generative  loudness of an added random-phase tone, at most 0, -999 = inactive

Masks are treated as immutable snapshots: ``with_brush`` / ``with_stroke``
clone first, so a mask handed to a pending resynthesis is never changed
underneath it.
"""

import numpy as np

from ..errors import ConfigError
from .brush import (GEN_ACTIVE_DB, GEN_NEUTRAL_DB, apply_brush,
                    apply_brush_line)

SUBTRACTIVE = 'subtractive'
GENERATIVE = 'generative'
BRUSH_MODES = (SUBTRACTIVE, GENERATIVE)


def _is_generative(mode: str) -> bool:
    if mode not in BRUSH_MODES:
        raise ConfigError(f"unknown brush mode {mode!r}, expected one of {BRUSH_MODES}")
    return mode == GENERATIVE


class SpectralMask:
    """Frame x bin grid holding the gain and generative edit layers."""

    def __init__(self, n_frames: int, n_bins: int):
        self.n_frames = int(n_frames)
        self.n_bins = int(n_bins)
        self.gain = np.zeros((self.n_frames, self.n_bins), dtype=np.float32)
        self.generative = np.full((self.n_frames, self.n_bins), GEN_NEUTRAL_DB,
                                  dtype=np.float32)

    @classmethod
    def for_spectrogram(cls, spectrogram: np.ndarray) -> "SpectralMask":
        """Neutral mask sized to a (bins, frames) spectrogram."""
        n_bins, n_frames = spectrogram.shape
        return cls(n_frames, n_bins)

    @property
    def shape(self) -> tuple[int, int]:
        return self.n_frames, self.n_bins

    def clone(self) -> "SpectralMask":
        new = SpectralMask(self.n_frames, self.n_bins)
        new.gain[:] = self.gain
        new.generative[:] = self.generative
        return new

    def is_neutral(self) -> bool:
        return (not np.any(self.gain != 0.0)
                and not np.any(self.generative > GEN_ACTIVE_DB))

    def apply_brush(self, frame: float, bin: float, radius: float, value: float,
                    erase: bool = False, mode: str = SUBTRACTIVE):
        """Stamp one brush in place. Use :meth:`with_brush` on shared masks."""
        generative = _is_generative(mode)
        layer = self.generative if generative else self.gain
        apply_brush(layer, float(frame), float(bin), float(radius), float(value),
                    bool(erase), generative)

    def apply_stroke(self, start: tuple, end: tuple, radius: float, value: float,
                     erase: bool = False, mode: str = SUBTRACTIVE):
        """Stamp along the line between two (frame, bin) points, in place."""
        generative = _is_generative(mode)
        layer = self.generative if generative else self.gain
        apply_brush_line(layer, float(start[0]), float(start[1]),
                         float(end[0]), float(end[1]), float(radius),
                         float(value), bool(erase), generative)

    def with_brush(self, frame, bin, radius, value, erase=False, mode=SUBTRACTIVE):
        new = self.clone()
        new.apply_brush(frame, bin, radius, value, erase, mode)
        return new

    def with_stroke(self, start, end, radius, value, erase=False, mode=SUBTRACTIVE):
        new = self.clone()
        new.apply_stroke(start, end, radius, value, erase, mode)
        return new


def apply_mask(spectrogram: np.ndarray, mask: SpectralMask, edit_enabled: bool,
               rng: np.random.Generator | None = None) -> np.ndarray:
    """Combine a (bins, frames) spectrogram with a mask.

    out = S * 10^(gain/20) + [generative active] 10^(gen/20) * e^(j*phi)

    phi is uniform in [0, 2*pi) and drawn fresh on every call, so generative
    edits give a different waveform on each resynthesis unless a seeded
    ``rng`` is supplied.
    """
    if not edit_enabled:
        return spectrogram.copy()

    n_bins, n_frames = spectrogram.shape
    if mask.shape != (n_frames, n_bins):
        raise ConfigError(
            f"mask shape {mask.shape} does not match spectrogram "
            f"({n_frames} frames, {n_bins} bins)")

    gain_db = mask.gain.T.astype(np.float64)
    out = spectrogram * np.power(10.0, gain_db / 20.0)

    gen_db = mask.generative.T
    active = gen_db > GEN_ACTIVE_DB
    n_active = int(np.count_nonzero(active))
    if n_active:
        if rng is None:
            rng = np.random.default_rng()
        mag = np.power(10.0, gen_db[active].astype(np.float64) / 20.0)
        phase = rng.uniform(0.0, 2.0 * np.pi, n_active)
        out[active] += mag * np.exp(1j * phase)
    return out
