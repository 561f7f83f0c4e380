"""Audio file I/O for the spectral editor.

Files are checked for type and size before decoding so that a rejected
file never reaches the engine. Decoded audio is mono float64 at the file's
own sample rate.
"""

import logging
import os

import numpy as np
import soundfile as sf

from .dsp.utils import to_mono
from .errors import UnsupportedMediaError

log = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".wav", ".mp3", ".ogg", ".flac")
MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024


def check_media(path):
    """Raise UnsupportedMediaError for a wrong extension or a file over 50 MB."""
    ext = os.path.splitext(path)[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise UnsupportedMediaError(
            f"unsupported file type {ext or '(none)'!r}; expected one of {ALLOWED_EXTENSIONS}")
    size = os.path.getsize(path)
    if size > MAX_FILE_SIZE_BYTES:
        raise UnsupportedMediaError(
            f"file too large ({size / 1024 / 1024:.1f} MB, max 50 MB)")


def load_audio(path):
    """Load an audio file as mono.

    Returns (audio_array, sample_rate). Multi-channel files are averaged.
    """
    check_media(path)
    try:
        data, sr = sf.read(path, dtype="float64", always_2d=False)
    except RuntimeError as exc:
        raise UnsupportedMediaError(f"could not decode {path}: {exc}") from exc
    audio = to_mono(data)
    log.info("loaded %s: %d samples, %d Hz", path, len(audio), sr)
    return audio, int(sr)


def save_audio(path, audio, sr):
    """Save audio to a 16-bit PCM file with peak normalization."""
    audio = np.asarray(audio, dtype=np.float64)
    peak = np.max(np.abs(audio)) if len(audio) else 0.0
    if peak > 1.0:
        audio = audio / peak * 0.95
    sf.write(path, np.clip(audio, -1.0, 1.0), sr, subtype="PCM_16")
    log.info("saved %s (%.2fs)", path, len(audio) / sr)
