"""Reconstruction quality metrics: original vs. resynthesized signal.

Both signals are compared over their common length.
"""

import numpy as np

ERROR_POWER_EPS = 1e-12
LOSSLESS_TOLERANCE = 1e-5


def _common(original, reconstructed):
    n = min(len(original), len(reconstructed))
    return (np.asarray(original[:n], dtype=np.float64),
            np.asarray(reconstructed[:n], dtype=np.float64))


def max_abs_error(original, reconstructed) -> float:
    a, b = _common(original, reconstructed)
    if len(a) == 0:
        return 0.0
    return float(np.max(np.abs(a - b)))


def snr_db(original, reconstructed) -> float:
    """10*log10(signal power / error power); inf when the error power < 1e-12."""
    a, b = _common(original, reconstructed)
    err_power = float(np.sum((a - b) ** 2))
    if err_power < ERROR_POWER_EPS:
        return float("inf")
    sig_power = float(np.sum(a ** 2))
    if sig_power <= 0.0:
        return float("-inf")
    return float(10.0 * np.log10(sig_power / err_power))


def summarize(original, reconstructed, lossless: bool) -> dict:
    """Metrics plus a one-line verdict.

    Returns dict with keys: max_error, snr_db, status.
    status is one of "success", "high_error" (lossless round trip above
    1e-5) or "lossy" (edits or glitches were active).
    """
    err = max_abs_error(original, reconstructed)
    result = {"max_error": err, "snr_db": snr_db(original, reconstructed)}
    if not lossless:
        result["status"] = "lossy"
    elif err < LOSSLESS_TOLERANCE:
        result["status"] = "success"
    else:
        result["status"] = "high_error"
    return result


def format_snr(value: float) -> str:
    if np.isposinf(value):
        return "Perfect"
    return f"{value:.2f} dB"
