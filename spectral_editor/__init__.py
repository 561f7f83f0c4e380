"""Spectral editor: STFT analysis, spectral painting and overlap-add resynthesis."""

from .dsp.mask import SpectralMask, apply_mask
from .dsp.stft import StftParams, analyze, synthesize, synthesize_async
from .engine import ResynthesisScheduler
from .model import EditSession

__all__ = [
    "EditSession",
    "ResynthesisScheduler",
    "SpectralMask",
    "StftParams",
    "analyze",
    "apply_mask",
    "synthesize",
    "synthesize_async",
]
