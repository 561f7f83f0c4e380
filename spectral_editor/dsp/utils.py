"""DSP utility functions."""

import numpy as np


def normalize(audio: np.ndarray, target_peak: float = 0.9) -> np.ndarray:
    peak = np.max(np.abs(audio)) if len(audio) else 0.0
    if peak > 0:
        audio = audio * (target_peak / peak)
    return audio.astype(np.float32)


def to_mono(audio: np.ndarray) -> np.ndarray:
    """Average channels of a (samples, channels) array; 1-D passes through."""
    audio = np.asarray(audio, dtype=np.float64)
    if audio.ndim == 2:
        return audio.mean(axis=1)
    return audio


def generate_sine(duration: float, freq: float, sr: int = 44100,
                  amplitude: float = 0.5) -> np.ndarray:
    n = int(duration * sr)
    t = np.arange(n, dtype=np.float64) / sr
    return amplitude * np.sin(2.0 * np.pi * freq * t)


def generate_white_noise(duration: float, sr: int = 44100, seed=None) -> np.ndarray:
    n = int(duration * sr)
    return np.random.default_rng(seed).standard_normal(n) * 0.25
