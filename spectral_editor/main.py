"""Offline renderer for the spectral editor.

Usage:
    python -m spectral_editor input.wav output.wav [--block-size 1024]
        [--strokes strokes.json] [--preset preset.json]
        [--stutter-chance 0.1] [--drop-chance 0.05] [--seed 1] [--play]

strokes.json is a list of brush strokes, each an object with
``frame``/``bin`` (or ``time`` in seconds / ``freq`` in Hz), optional
``to_frame``/``to_bin`` (or ``to_time``/``to_freq``) for a drag, and
optional ``radius``, ``value``, ``mode`` and ``erase`` overriding the
preset brush.
"""

import argparse
import asyncio
import json
import logging
import sys

import numpy as np

from .audio import load_audio, save_audio
from .dsp.metrics import format_snr
from .dsp.stft import BLOCK_SIZES, StftParams
from .errors import SpectralEditorError
from .model import EditSession
from .settings import DEFAULT_SETTINGS_PATH, load_stft_params, save_stft_params

log = logging.getLogger(__name__)

STATUS_TEXT = {
    "success": "Reconstruction successful",
    "high_error": "High reconstruction error",
    "lossy": "Lossy transformation active",
}


def load_json(path):
    with open(path) as f:
        return json.load(f)


def _coord(stroke, session, frame_key, bin_key, time_key, freq_key):
    hop = session.stft.hop_size
    if frame_key in stroke:
        frame = float(stroke[frame_key])
    else:
        frame = round(float(stroke[time_key]) * session.sample_rate / hop)
    if bin_key in stroke:
        bin_ = float(stroke[bin_key])
    else:
        bin_ = round(float(stroke[freq_key]) * session.stft.block_size / session.sample_rate)
    return frame, bin_


def apply_strokes(session, strokes):
    """Paint a list of stroke dicts into the session mask."""
    for stroke in strokes:
        start = _coord(stroke, session, "frame", "bin", "time", "freq")
        end = None
        if any(k in stroke for k in ("to_frame", "to_time")):
            end = _coord(stroke, session, "to_frame", "to_bin", "to_time", "to_freq")
        session.paint(start[0], start[1], erase=bool(stroke.get("erase", False)), to=end,
                      radius=stroke.get("radius"), value=stroke.get("value"),
                      mode=stroke.get("mode"))
    log.info("applied %d strokes", len(strokes))


def build_parser():
    parser = argparse.ArgumentParser(description="Spectral editor offline renderer")
    parser.add_argument("input", help="Input audio file (wav, flac, ogg, mp3)")
    parser.add_argument("output", help="Output WAV file")
    parser.add_argument("--block-size", type=int, choices=BLOCK_SIZES,
                        help="FFT block size (default: stored setting or 1024)")
    parser.add_argument("--preset", help="Transform params JSON file")
    parser.add_argument("--strokes", help="Brush strokes JSON file")
    parser.add_argument("--stutter-chance", type=float)
    parser.add_argument("--stutter-duration", type=float, help="ms")
    parser.add_argument("--drop-chance", type=float)
    parser.add_argument("--clip-chance", type=float)
    parser.add_argument("--jitter-chance", type=float)
    parser.add_argument("--seed", type=int, help="Seed for generative phase and glitches")
    parser.add_argument("--settings", default=DEFAULT_SETTINGS_PATH,
                        help="Settings file holding the stored STFT params")
    parser.add_argument("--save-settings", action="store_true",
                        help="Store the block size used for the next run")
    parser.add_argument("--play", action="store_true", help="Play the result")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def run(args):
    stft = load_stft_params(args.settings)
    audio, sr = load_audio(args.input)
    if args.block_size is not None:
        stft = StftParams(sample_rate=sr, block_size=args.block_size)

    params = load_json(args.preset) if args.preset else {}
    glitch_args = {
        "stutter_chance": args.stutter_chance,
        "stutter_duration": args.stutter_duration,
        "drop_chance": args.drop_chance,
        "clip_chance": args.clip_chance,
        "jitter_chance": args.jitter_chance,
    }
    for key, value in glitch_args.items():
        if value is not None:
            params[key] = value
            if key != "stutter_duration":
                params["glitch"] = True

    session = EditSession(audio, sr, stft, params)
    if args.strokes:
        apply_strokes(session, load_json(args.strokes))
        session.update_params(spectral_edit=True)

    rng = np.random.default_rng(args.seed)
    result = asyncio.run(session.render(rng=rng))
    save_audio(args.output, result.audio, sr)

    m = result.metrics
    print(f"{STATUS_TEXT[m['status']]}: max error {m['max_error']:.2e}, "
          f"SNR {format_snr(m['snr_db'])}")
    print(f"Saved {args.output}")

    if args.save_settings:
        save_stft_params(session.stft, args.settings)

    if args.play:
        from .player import AudioPlayer
        with AudioPlayer(sr) as player:
            player.play(result.audio)
            player.wait()
    return result


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(name)s %(levelname)s: %(message)s")
    try:
        run(args)
    except SpectralEditorError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
