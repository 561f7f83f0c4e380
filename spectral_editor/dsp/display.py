"""Display matrices for the spectrogram views.

Both views end in the same average-pool downsampler: at most 512 time
columns and 256 frequency rows, rows ordered from the highest retained bin
(row 0) down to DC (last row).
"""

from dataclasses import dataclass, field

import numpy as np

DB_FLOOR = -90.0
DB_CEIL = 0.0
MAG_EPS = 1e-12
DIFF_EPS = 1e-6

MAX_DISPLAY_TIME_STEPS = 512
MAX_DISPLAY_FREQ_BINS = 256


@dataclass
class DisplayData:
    """Downsampled matrix (rows = frequency, high to low) plus axis labels."""

    data: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))
    freq_labels: list[tuple[int, str]] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return self.data.size == 0


def magnitude_db(spectrogram: np.ndarray) -> np.ndarray:
    return 20.0 * np.log10(np.abs(spectrogram) + MAG_EPS)


def downsample(matrix: np.ndarray,
               max_time: int = MAX_DISPLAY_TIME_STEPS,
               max_freq: int = MAX_DISPLAY_FREQ_BINS) -> np.ndarray:
    """Average-pool a (bins, frames) matrix, flipping to high-frequency-first.

    Block sizes are ceil(dim / cap), at least 1, so the result never
    exceeds the caps. Row r pools ``ratio`` bins counting down from
    ``top - r*ratio`` and stops at bin 0, so the last block may be partial.
    The trailing time block works the same way.
    """
    n_bins, n_frames = matrix.shape
    if n_bins == 0 or n_frames == 0:
        return np.zeros((0, 0), dtype=np.float64)
    time_ratio = max(1, -(-n_frames // max_time))
    freq_ratio = max(1, -(-n_bins // max_freq))

    flipped = matrix[::-1, :].astype(np.float64)
    n_rows = -(-n_bins // freq_ratio)
    n_cols = -(-n_frames // time_ratio)
    sums = np.add.reduceat(np.add.reduceat(flipped, np.arange(0, n_bins, freq_ratio), axis=0),
                           np.arange(0, n_frames, time_ratio), axis=1)
    row_counts = np.minimum(freq_ratio, n_bins - np.arange(n_rows) * freq_ratio)
    col_counts = np.minimum(time_ratio, n_frames - np.arange(n_cols) * time_ratio)
    return sums / np.outer(row_counts, col_counts)


def freq_labels(n_rows: int, sample_rate: float) -> list[tuple[int, str]]:
    """Nyquist at row 0, Nyquist/2 at the middle row, 0 Hz at the bottom."""
    nyquist = sample_rate / 2.0
    return [
        (0, f"{nyquist / 1000:.1f} kHz"),
        (n_rows // 2, f"{nyquist / 2 / 1000:.1f} kHz"),
        (n_rows - 1, "0 kHz"),
    ]


def _finish(matrix: np.ndarray, sample_rate: float) -> DisplayData:
    data = downsample(matrix)
    return DisplayData(data=data, freq_labels=freq_labels(data.shape[0], sample_rate))


def to_display(spectrogram: np.ndarray, sample_rate: float) -> DisplayData:
    """dB magnitude clamped to [-90, 0] and scaled to [0, 1]."""
    if spectrogram.size == 0:
        return DisplayData()
    db = np.clip(magnitude_db(spectrogram), DB_FLOOR, DB_CEIL)
    return _finish((db - DB_FLOOR) / (DB_CEIL - DB_FLOOR), sample_rate)


def difference(spec_a: np.ndarray, spec_b: np.ndarray,
               sample_rate: float) -> DisplayData:
    """dB(b) - dB(a), scaled by the largest absolute difference to [-1, 1].

    When the largest difference is below 1e-6 the divisor is 1, so identical
    inputs give an all-zero map. Frame counts are truncated to the shorter
    spectrogram.
    """
    if spec_a.size == 0 or spec_b.size == 0:
        return DisplayData()
    n_frames = min(spec_a.shape[1], spec_b.shape[1])
    diff = magnitude_db(spec_b[:, :n_frames]) - magnitude_db(spec_a[:, :n_frames])
    max_abs = float(np.max(np.abs(diff))) if diff.size else 0.0
    if max_abs < DIFF_EPS:
        max_abs = 1.0
    return _finish(diff / max_abs, sample_rate)
