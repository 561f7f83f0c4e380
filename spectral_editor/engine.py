"""Resynthesis pipeline and the request scheduler that drives it.

Pipeline (per request):
    cached spectrogram -> apply_mask -> synthesize_async -> apply_glitches
    -> re-analyze -> display / difference / metrics

Scheduling is single-threaded asyncio. ResynthesisScheduler is a
supersession queue of depth one: a new request replaces any request still
waiting out its debounce delay. A request that has started runs to the end;
its result is handed on only if no newer request has already delivered.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

import numpy as np

from .dsp.display import DisplayData, difference, to_display
from .dsp.glitch import apply_glitches
from .dsp.mask import SpectralMask, apply_mask
from .dsp.metrics import summarize
from .dsp.stft import StftParams, analyze, synthesize_async
from .params import is_lossless

log = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.4


@dataclass(frozen=True)
class Snapshot:
    """Everything one resynthesis reads besides the cached source data."""

    mask: SpectralMask
    params: dict


@dataclass
class RenderResult:
    audio: np.ndarray
    display: DisplayData = field(default_factory=DisplayData)
    difference: DisplayData = field(default_factory=DisplayData)
    metrics: dict = field(default_factory=dict)


async def resynthesize(spectrogram: np.ndarray, mask: SpectralMask,
                       stft: StftParams, output_length: int, params: dict,
                       rng: np.random.Generator | None = None) -> np.ndarray:
    """Masked spectrogram back to a time-domain buffer, glitches applied."""
    t0 = time.perf_counter()
    edited = apply_mask(spectrogram, mask, bool(params.get("spectral_edit", False)), rng)
    audio = await synthesize_async(edited, stft, output_length)
    audio = apply_glitches(audio, params, stft.sample_rate, rng)
    log.debug("resynthesize: %d samples in %.1f ms",
              output_length, (time.perf_counter() - t0) * 1000)
    return audio


def describe(source: np.ndarray, original_spec: np.ndarray, audio: np.ndarray,
             stft: StftParams, params: dict) -> RenderResult:
    """Post-edit display, difference map and metrics for a rendered buffer."""
    new_spec = analyze(audio, stft)
    return RenderResult(
        audio=audio,
        display=to_display(new_spec, stft.sample_rate),
        difference=difference(original_spec, new_spec, stft.sample_rate),
        metrics=summarize(source, audio, is_lossless(params)),
    )


class ResynthesisScheduler:
    """Coalesces rapid resynthesis requests; last completed request wins.

    Args:
        job: ``async def job(snapshot) -> result``
        on_result: called as ``on_result(seq, result)`` for accepted results
        delay: debounce window in seconds
        on_error: optional ``on_error(seq, exc)`` for failed jobs
    """

    def __init__(self, job, on_result, delay: float = DEBOUNCE_SECONDS,
                 on_error=None):
        self.job = job
        self.on_result = on_result
        self.on_error = on_error
        self.delay = delay
        self._seq = 0
        self._delivered_seq = 0
        self._pending: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def latest_seq(self) -> int:
        return self._seq

    @property
    def delivered_seq(self) -> int:
        return self._delivered_seq

    @property
    def busy(self) -> bool:
        return bool(self._tasks)

    def request(self, snapshot) -> int:
        """Schedule a resynthesis of ``snapshot``. Must run inside the loop."""
        self._seq += 1
        seq = self._seq
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
            log.debug("request %d supersedes a pending request", seq)
        task = asyncio.ensure_future(self._run(seq, snapshot))
        self._pending = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return seq

    async def _run(self, seq, snapshot):
        await asyncio.sleep(self.delay)
        # started: later requests no longer cancel this one
        if self._pending is asyncio.current_task():
            self._pending = None

        try:
            result = await self.job(snapshot)
        except Exception as exc:
            log.exception("resynthesis %d failed", seq)
            if self.on_error is not None:
                self.on_error(seq, exc)
            return

        if seq <= self._delivered_seq:
            log.debug("dropping stale result %d (already showing %d)",
                      seq, self._delivered_seq)
            return
        self._delivered_seq = seq
        self.on_result(seq, result)

    async def flush(self):
        """Wait until every started or pending request has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
