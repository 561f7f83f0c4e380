"""EditSession: the data layer for the spectral editor.

Holds the decoded source (read-only), its cached spectrogram, and the
current mask snapshot with undo/redo. Every edit swaps in a new mask object;
masks already handed to a resynthesis are never written to.
"""

import logging

import numpy as np

from .dsp.display import DisplayData, to_display
from .dsp.mask import SpectralMask
from .dsp.stft import StftParams, analyze
from .engine import RenderResult, Snapshot, describe, resynthesize
from .params import brush_default_gain, clamp_params

log = logging.getLogger(__name__)


class EditSession:
    """Source audio, spectrogram cache, and mask history for one clip."""

    def __init__(self, audio: np.ndarray, sample_rate: int,
                 stft: StftParams | None = None, params: dict | None = None):
        source = np.array(audio, dtype=np.float64, copy=True)
        source.setflags(write=False)
        self.source = source
        # the loaded file always decides the sample rate
        self.stft = (stft or StftParams()).with_sample_rate(sample_rate)
        self.params = clamp_params(params or {})

        self.spectrogram: np.ndarray = np.zeros((self.stft.n_bins, 0), dtype=np.complex128)
        self.original_display = DisplayData()
        self.mask = SpectralMask(0, self.stft.n_bins)

        self._undo_stack: list[SpectralMask] = []
        self._redo_stack: list[SpectralMask] = []
        self._max_undo = 20

        self._analyze()

    @property
    def sample_rate(self) -> int:
        return self.stft.sample_rate

    @property
    def n_frames(self) -> int:
        return self.spectrogram.shape[1]

    @property
    def n_bins(self) -> int:
        return self.spectrogram.shape[0]

    def _analyze(self):
        spec = analyze(self.source, self.stft)
        spec.setflags(write=False)
        self.spectrogram = spec
        self.original_display = to_display(spec, self.sample_rate)
        self.mask = SpectralMask.for_spectrogram(spec)
        self._undo_stack.clear()
        self._redo_stack.clear()
        log.info("analyzed %d samples: %d frames x %d bins (block %d)",
                 len(self.source), self.n_frames, self.n_bins, self.stft.block_size)

    def set_block_size(self, block_size: int):
        """Re-analyze at a new block size. The mask is replaced by a neutral one."""
        if block_size == self.stft.block_size:
            return
        self.stft = StftParams(self.sample_rate, block_size, self.stft.window)
        self._analyze()

    def update_params(self, **changes):
        merged = dict(self.params)
        merged.update(changes)
        # switching brush mode starts from that mode's default value
        if (changes.get("brush_mode", self.params["brush_mode"]) != self.params["brush_mode"]
                and "brush_gain_db" not in changes):
            del merged["brush_gain_db"]
        self.params = clamp_params(merged)

    # ── Mask edits ────────────────────────────────────────────────────

    def push_undo(self):
        self._undo_stack.append(self.mask)
        if len(self._undo_stack) > self._max_undo:
            self._undo_stack.pop(0)
        self._redo_stack.clear()

    def undo(self) -> bool:
        if not self._undo_stack:
            return False
        self._redo_stack.append(self.mask)
        self.mask = self._undo_stack.pop()
        return True

    def redo(self) -> bool:
        if not self._redo_stack:
            return False
        self._undo_stack.append(self.mask)
        self.mask = self._redo_stack.pop()
        return True

    def paint(self, frame, bin, erase=False, to=None,
              radius=None, value=None, mode=None) -> SpectralMask:
        """Apply the brush at (frame, bin), or along a drag to ``to``.

        Radius, value and mode default to the session params. An explicit
        ``mode`` other than the session's starts from that mode's default
        value; an unknown mode raises ConfigError and leaves the mask as is.
        """
        if mode is None:
            mode = self.params["brush_mode"]
        if radius is None:
            radius = self.params["brush_radius"]
        if value is None:
            if mode == self.params["brush_mode"]:
                value = self.params["brush_gain_db"]
            else:
                value = brush_default_gain(mode)
        if to is None:
            new_mask = self.mask.with_brush(frame, bin, radius, value, erase, mode)
        else:
            new_mask = self.mask.with_stroke((frame, bin), to, radius, value, erase, mode)
        self.push_undo()
        self.mask = new_mask
        return new_mask

    def reset_mask(self) -> SpectralMask:
        self.push_undo()
        self.mask = SpectralMask.for_spectrogram(self.spectrogram)
        return self.mask

    # ── Resynthesis ──────────────────────────────────────────────────

    def snapshot(self) -> Snapshot:
        return Snapshot(mask=self.mask, params=dict(self.params))

    async def render(self, snapshot: Snapshot | None = None,
                     rng: np.random.Generator | None = None) -> RenderResult:
        """Resynthesize a snapshot (default: the current state)."""
        if snapshot is None:
            snapshot = self.snapshot()
        audio = await resynthesize(self.spectrogram, snapshot.mask, self.stft,
                                   len(self.source), snapshot.params, rng)
        return describe(self.source, self.spectrogram, audio, self.stft, snapshot.params)
