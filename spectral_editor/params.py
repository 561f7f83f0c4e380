"""Declarative parameter schema for the transform controls.

Every caller (CLI, scheduler, presets, tests) passes the same params dict.
The ParamDef list below is the single source for defaults, bypass values,
ranges and sections; ``clamp_params`` cleans raw dicts coming from JSON or
the command line.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .dsp.brush import GEN_MAX_DB
from .dsp.mask import BRUSH_MODES, GENERATIVE


class ParamType(Enum):
    FLOAT = "float"
    CHOICE = "choice"
    BOOL = "bool"


_INVALID = object()


@dataclass
class ParamDef:
    key: str
    type: ParamType
    default: Any
    section: str
    label: str = ""
    bypass: Any = None                # None: same as default
    range: tuple | None = None        # (lo, hi), FLOAT only
    choices: tuple | None = None      # legal CHOICE values

    def coerce(self, value):
        """Cast ``value`` to this param's type; _INVALID if it cannot be."""
        if self.type is ParamType.BOOL:
            return bool(value)
        if self.type is ParamType.CHOICE:
            return value if value in self.choices else self.default
        try:
            v = float(value)
        except (TypeError, ValueError):
            return _INVALID
        if self.range is not None:
            v = min(max(v, self.range[0]), self.range[1])
        return v


class ParamSchema:
    """Dict views over a list of ParamDefs."""

    def __init__(self, params: list[ParamDef]):
        self._by_key: dict[str, ParamDef] = {p.key: p for p in params}

    def default_params(self) -> dict:
        return {k: p.default for k, p in self._by_key.items()}

    def bypass_params(self) -> dict:
        return {k: p.default if p.bypass is None else p.bypass
                for k, p in self._by_key.items()}

    def param_ranges(self) -> dict[str, tuple]:
        return {k: p.range for k, p in self._by_key.items() if p.range is not None}

    def param_sections(self) -> dict[str, list[str]]:
        sections: dict[str, list[str]] = {}
        for k, p in self._by_key.items():
            sections.setdefault(p.section, []).append(k)
        return sections

    def validate_and_clamp(self, raw: dict) -> dict:
        """Known keys of ``raw``, cast and clamped.

        Unknown keys and uncastable numbers are dropped; an illegal choice
        falls back to its default.
        """
        result = {}
        for key, value in raw.items():
            p = self._by_key.get(key)
            if p is None:
                continue
            v = p.coerce(value)
            if v is not _INVALID:
                result[key] = v
        return result


T = ParamType

SCHEMA = ParamSchema([
    # --- Spectral edit ---
    ParamDef("spectral_edit", T.BOOL, section="spectral_edit",
             default=False, label="Spectral Edit"),
    ParamDef("brush_radius", T.FLOAT, section="spectral_edit",
             default=10.0, range=(1.0, 200.0), label="Brush Radius (bins)"),
    ParamDef("brush_gain_db", T.FLOAT, section="spectral_edit",
             default=-60.0, range=(-80.0, 24.0), label="Brush Gain (dB)"),
    ParamDef("brush_mode", T.CHOICE, section="spectral_edit",
             default="subtractive", choices=BRUSH_MODES, label="Brush Mode"),

    # --- Audio glitch ---
    ParamDef("glitch", T.BOOL, section="glitch",
             default=False, label="Audio Glitch"),
    ParamDef("stutter_chance", T.FLOAT, section="glitch",
             default=0.0, range=(0.0, 1.0), label="Stutter Chance"),
    ParamDef("stutter_duration", T.FLOAT, section="glitch",
             default=50.0, range=(1.0, 1000.0), label="Stutter Duration (ms)"),
    ParamDef("drop_chance", T.FLOAT, section="glitch",
             default=0.0, range=(0.0, 1.0), label="Drop Chance"),
    ParamDef("clip_chance", T.FLOAT, section="glitch",
             default=0.0, range=(0.0, 1.0), label="Clip Chance"),
    ParamDef("jitter_chance", T.FLOAT, section="glitch",
             default=0.0, range=(0.0, 1.0), label="Jitter Chance"),
])


def default_params() -> dict:
    return SCHEMA.default_params()


def bypass_params() -> dict:
    """All transforms off: resynthesis is a plain round trip."""
    return SCHEMA.bypass_params()


GEN_DEFAULT_GAIN_DB = -24.0


def brush_default_gain(mode: str) -> float:
    """Starting brush value for a mode: -60 dB cut, or a -24 dB tone."""
    if mode == GENERATIVE:
        return GEN_DEFAULT_GAIN_DB
    return SCHEMA.default_params()["brush_gain_db"]


def clamp_params(raw: dict) -> dict:
    """Defaults overlaid with the validated subset of ``raw``.

    A generative brush without its own value starts at -24 dB, and its
    loudness never exceeds 0 dB.
    """
    params = default_params()
    params.update(SCHEMA.validate_and_clamp(raw))
    if params["brush_mode"] == GENERATIVE:
        if "brush_gain_db" not in raw:
            params["brush_gain_db"] = GEN_DEFAULT_GAIN_DB
        params["brush_gain_db"] = min(params["brush_gain_db"], GEN_MAX_DB)
    return params


def is_lossless(params: dict) -> bool:
    return not params.get("spectral_edit", False) and not params.get("glitch", False)


PARAM_RANGES = SCHEMA.param_ranges()
PARAM_SECTIONS = SCHEMA.param_sections()
