from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

DEBUG_ENV = "MIDI_RETEMPO_DEBUG"
_TRUE_WORDS = ("1", "true", "yes", "on")


@dataclass
class Config:
    target_bpm: float
    debug: bool = False
    # Tempo the file is assumed to be in; read from the file when None
    original_bpm: Optional[float] = None
    # Where to write; None overwrites the input file
    out: Optional[str] = None


def env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUE_WORDS


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def config_from_dict(raw: Dict[str, Any]) -> Config:
    if not isinstance(raw, dict):
        raise ValueError(f"config must be a JSON object, got {type(raw).__name__}")
    if "target_bpm" not in raw:
        raise ValueError("config needs a 'target_bpm' entry")
    return Config(
        target_bpm=float(raw["target_bpm"]),
        debug=bool(raw.get("debug", False)) or env_flag(DEBUG_ENV),
        original_bpm=_optional_float(raw.get("original_bpm")),
        out=raw.get("out"),
    )


def load_config(path: str) -> Config:
    with open(path, "r") as f:
        raw = json.load(f)
    return config_from_dict(raw)
