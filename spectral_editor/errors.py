"""Exceptions raised by the spectral editor.

Expected numerical edge cases (short signals, silent regions, identical
spectra) never raise; they resolve to empty or fallback values.
"""


class SpectralEditorError(Exception):
    """Base class for all spectral editor errors."""


class ConfigError(SpectralEditorError, ValueError):
    """Invalid STFT, brush or transform configuration."""


class UnsupportedMediaError(SpectralEditorError):
    """Audio file rejected before decoding (type or size)."""
