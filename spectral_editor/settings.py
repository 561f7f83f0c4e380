"""Persisted STFT settings.

Only the analysis configuration (block size, window) survives between
sessions, stored under the fixed key ``"stft-params"``. The sample rate is
never written or restored: the next loaded file decides it.
"""

import json
import logging
import os

from .dsp.stft import SR, StftParams

log = logging.getLogger(__name__)

SETTINGS_KEY = "stft-params"
DEFAULT_SETTINGS_PATH = os.path.join(os.path.expanduser("~"), ".spectral_editor",
                                     "settings.json")


def load_stft_params(path: str = DEFAULT_SETTINGS_PATH, sample_rate: int = SR) -> StftParams:
    """Stored STFT params, or the defaults when missing or unreadable."""
    try:
        with open(path) as fh:
            stored = json.load(fh)[SETTINGS_KEY]
        return StftParams(sample_rate=sample_rate,
                          block_size=int(stored["block_size"]),
                          window=stored["window"])
    except FileNotFoundError:
        return StftParams(sample_rate=sample_rate)
    except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError) as exc:
        log.warning("ignoring unreadable settings %s: %s", path, exc)
        return StftParams(sample_rate=sample_rate)


def save_stft_params(stft: StftParams, path: str = DEFAULT_SETTINGS_PATH):
    """Write block size and window; other keys in the file are kept."""
    data = {}
    try:
        with open(path) as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            data = {}
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        data = {}
    data[SETTINGS_KEY] = {"block_size": stft.block_size, "window": stft.window}

    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w") as fh:
        json.dump(data, fh, indent=2)
        fh.write("\n")
    log.debug("saved %s to %s", SETTINGS_KEY, path)
