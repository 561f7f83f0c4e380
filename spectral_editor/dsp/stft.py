"""STFT analysis and overlap-add resynthesis.

Core algorithm: frame -> Hann window -> FFT -> keep N/2+1 bins, and back:
mirror bins -> IFFT -> window again -> overlap-add -> divide by sum(w^2).

With hop = N/2 and the same window applied on both sides, dividing by the
accumulated squared window restores the input to round-off everywhere at
least one window tap is non-negligible. Samples where sum(w^2) <= 1e-9
(the first sample of a Hann frame, the uncovered tail) are left as
overlap-added instead of being divided by near-zero.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, replace

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy import fft as sp_fft

from ..errors import ConfigError

log = logging.getLogger(__name__)

SR = 44100
BLOCK_SIZES = (256, 512, 1024, 2048, 4096, 8192)
DEFAULT_BLOCK_SIZE = 1024
WINDOW = 'hann'

WINDOW_SUM_EPS = 1e-9
YIELD_INTERVAL = 0.010  # seconds of work between cooperative yields


@dataclass(frozen=True)
class StftParams:
    """Analysis configuration. The hop is always half the block."""

    sample_rate: int = SR
    block_size: int = DEFAULT_BLOCK_SIZE
    window: str = WINDOW

    def __post_init__(self):
        if self.block_size not in BLOCK_SIZES:
            raise ConfigError(
                f"block_size must be one of {BLOCK_SIZES}, got {self.block_size}")
        if self.window != WINDOW:
            raise ConfigError(f"unsupported window {self.window!r} (only 'hann')")
        if self.sample_rate <= 0:
            raise ConfigError(f"sample_rate must be positive, got {self.sample_rate}")

    @property
    def hop_size(self) -> int:
        return self.block_size // 2

    @property
    def n_bins(self) -> int:
        return self.block_size // 2 + 1

    @property
    def nyquist(self) -> float:
        return self.sample_rate / 2.0

    def with_sample_rate(self, sample_rate: int) -> "StftParams":
        return replace(self, sample_rate=int(sample_rate))


def hann_window(length: int) -> np.ndarray:
    """Symmetric Hann: w[i] = 0.5 * (1 - cos(2*pi*i / (N-1)))."""
    return np.hanning(length).astype(np.float64)


def forward_transform(blocks: np.ndarray) -> np.ndarray:
    """Complex FFT along the last axis."""
    return sp_fft.fft(blocks, axis=-1)


def inverse_transform(spectrum: np.ndarray) -> np.ndarray:
    """Complex IFFT along the last axis."""
    return sp_fft.ifft(spectrum, axis=-1)


def frame_signal(signal: np.ndarray, params: StftParams) -> np.ndarray:
    """Windowed frames, shape (n_frames, block_size).

    Frames start every hop while a full block fits; the trailing partial
    block is dropped, not zero-padded.
    """
    n = params.block_size
    signal = np.asarray(signal, dtype=np.float64)
    if len(signal) < n:
        return np.zeros((0, n), dtype=np.float64)
    frames = sliding_window_view(signal, n)[::params.hop_size]
    return frames * hann_window(n)


def analyze(signal: np.ndarray, params: StftParams) -> np.ndarray:
    """Half-spectrum STFT, bin-major.

    Returns:
        complex128 array, shape (block_size // 2 + 1, n_frames).
        Zero frames when the signal is shorter than one block.
    """
    t0 = time.perf_counter()
    frames = frame_signal(signal, params)
    if frames.shape[0] == 0:
        return np.zeros((params.n_bins, 0), dtype=np.complex128)
    spectra = forward_transform(frames)[:, :params.n_bins]
    result = np.ascontiguousarray(spectra.T)
    log.debug("analyze: %d frames x %d bins in %.1f ms",
              result.shape[1], result.shape[0], (time.perf_counter() - t0) * 1000)
    return result


def _full_spectrum(half: np.ndarray, n: int) -> np.ndarray:
    """Rebuild N bins from N/2+1 by conjugate mirroring bins 1..N/2-1."""
    full = np.empty(n, dtype=np.complex128)
    full[:n // 2 + 1] = half
    full[n // 2 + 1:] = np.conj(half[1:n // 2][::-1])
    return full


def _overlap_add(spectrogram, params, out, win_sum):
    """Add one frame at a time into ``out``; yields after each frame."""
    n = params.block_size
    hop = params.hop_size
    window = hann_window(n)
    window_sq = window * window
    length = len(out)

    for fi in range(spectrogram.shape[1]):
        start = fi * hop
        if start >= length:
            break
        end = min(start + n, length)
        block = inverse_transform(_full_spectrum(spectrogram[:, fi], n)).real
        out[start:end] += (block * window)[:end - start]
        win_sum[start:end] += window_sq[:end - start]
        yield fi


def _normalize(out, win_sum):
    mask = win_sum > WINDOW_SUM_EPS
    out[mask] /= win_sum[mask]
    return out


def synthesize(spectrogram: np.ndarray, params: StftParams,
               output_length: int) -> np.ndarray:
    """Overlap-add inverse STFT (blocking).

    Returns:
        float64 array of exactly ``output_length`` samples.
    """
    out = np.zeros(output_length, dtype=np.float64)
    win_sum = np.zeros(output_length, dtype=np.float64)
    if spectrogram.shape[1] == 0:
        return out
    t0 = time.perf_counter()
    for _ in _overlap_add(spectrogram, params, out, win_sum):
        pass
    log.debug("synthesize: %d frames in %.1f ms",
              spectrogram.shape[1], (time.perf_counter() - t0) * 1000)
    return _normalize(out, win_sum)


async def synthesize_async(spectrogram: np.ndarray, params: StftParams,
                           output_length: int,
                           yield_interval: float = YIELD_INTERVAL) -> np.ndarray:
    """Overlap-add inverse STFT that yields to the event loop.

    Control goes back to the loop whenever ``yield_interval`` seconds of
    work have passed since the last yield. The buffer is only returned once
    every frame has been added and normalised, so callers never see a
    partial reconstruction. Numerically identical to :func:`synthesize`.
    """
    out = np.zeros(output_length, dtype=np.float64)
    win_sum = np.zeros(output_length, dtype=np.float64)
    if spectrogram.shape[1] == 0:
        return out

    t0 = last_yield = time.perf_counter()
    n_yields = 0
    for _ in _overlap_add(spectrogram, params, out, win_sum):
        now = time.perf_counter()
        if now - last_yield > yield_interval:
            await asyncio.sleep(0)
            n_yields += 1
            last_yield = time.perf_counter()
    log.debug("synthesize_async: %d frames, %d yields in %.1f ms",
              spectrogram.shape[1], n_yields, (time.perf_counter() - t0) * 1000)
    return _normalize(out, win_sum)
