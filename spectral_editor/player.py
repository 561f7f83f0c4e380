"""AudioPlayer: plays rendered buffers through sounddevice.

Only one stream exists at a time. ``play`` closes the running stream before
opening a new one, so a fresh render always replaces what is audible.
"""

import numpy as np
import sounddevice as sd

from .dsp.utils import normalize


class AudioPlayer:
    """Mono playback with a sample cursor."""

    def __init__(self, sample_rate: int):
        self.sample_rate = sample_rate
        self._buffer = np.zeros(0, dtype=np.float32)
        self._cursor = 0
        self._stream: sd.OutputStream | None = None
        self._active = False

    @property
    def is_playing(self) -> bool:
        return self._active

    @property
    def position(self) -> float:
        """Fraction of the current buffer already sent to the device."""
        n = len(self._buffer)
        return min(1.0, self._cursor / n) if n else 0.0

    def _fill(self, outdata, frames, time_info, status):
        chunk = self._buffer[self._cursor:self._cursor + frames]
        outdata[:len(chunk), 0] = chunk
        self._cursor += len(chunk)
        if len(chunk) < frames:
            outdata[len(chunk):, 0] = 0.0
            raise sd.CallbackStop()

    def _finished(self):
        self._active = False

    def play(self, audio: np.ndarray):
        """Replace whatever is playing with ``audio``."""
        self.stop()
        self._buffer = normalize(np.asarray(audio, dtype=np.float64))
        self._cursor = 0
        self._active = True
        self._stream = sd.OutputStream(samplerate=self.sample_rate, channels=1,
                                       dtype='float32', callback=self._fill,
                                       finished_callback=self._finished)
        self._stream.start()

    def wait(self):
        """Block until the buffer has played out."""
        while self._active:
            sd.sleep(20)

    def stop(self):
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()
        self._active = False
        self._cursor = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.stop()
