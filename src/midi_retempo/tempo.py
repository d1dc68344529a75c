"""Tempo rescaling.

The tempo is stored in a meta event (type 0x51) as microseconds per quarter
note (MPQ), 3 bytes big-endian: mpq = 60000000 / bpm. Changing it alone
would change how fast the file plays, so every event tick is scaled by
target/original as well.
"""
from __future__ import annotations

import math
from typing import Optional, Tuple

from mido import tempo2bpm

from .errors import InvalidTempo
from .model import MetaMessage, Sequence

DEFAULT_BPM = 120.0  # SMF default when a file carries no tempo event
MAX_MPQ = 0xFFFFFF


def _check_bpm(bpm: float, name: str) -> None:
    if not isinstance(bpm, (int, float)) or not math.isfinite(bpm) or bpm <= 0:
        raise InvalidTempo(f"{name} must be a positive number, got {bpm!r}")


def convert_tempo(bpm: float) -> bytes:
    """BPM -> 3-byte tempo payload. The conversion truncates, it does not round."""
    _check_bpm(bpm, "tempo")
    mpq = int(60_000_000 / bpm)
    if not 0 < mpq <= MAX_MPQ:
        raise InvalidTempo(f"tempo {bpm} BPM does not fit a 3-byte tempo event (mpq={mpq})")
    return mpq.to_bytes(3, "big")


def tempo_from_payload(payload: bytes) -> int:
    """3-byte tempo payload -> microseconds per quarter note."""
    return int.from_bytes(payload[:3], "big")


def find_first_tempo(sequence: Sequence) -> Optional[Tuple[int, int]]:
    """(track index, event index) of the first tempo event in scan order."""
    for t, track in enumerate(sequence.tracks):
        for i, ev in enumerate(track.events):
            if isinstance(ev.message, MetaMessage) and ev.message.is_tempo:
                return t, i
    return None


def original_bpm(sequence: Sequence) -> float:
    """Tempo the file starts with, read from its first tempo event."""
    loc = find_first_tempo(sequence)
    if loc is None:
        return DEFAULT_BPM
    t, i = loc
    mpq = tempo_from_payload(sequence.tracks[t].events[i].message.payload)
    if mpq <= 0:
        return DEFAULT_BPM
    return tempo2bpm(mpq)


def rescale(sequence: Sequence, original_bpm: float, target_bpm: float) -> Sequence:
    """Return a copy of `sequence` moved from `original_bpm` to `target_bpm`.

    Every tick becomes floor(tick * target / original). Only the first tempo
    event (tracks in order, events in order) gets the new tempo; later tempo
    changes keep their payload. The input is never modified.
    """
    _check_bpm(original_bpm, "original tempo")
    _check_bpm(target_bpm, "target tempo")
    ratio = target_bpm / original_bpm
    # Only a file that has a tempo event needs the target to fit in 3 bytes
    master = find_first_tempo(sequence)
    payload = convert_tempo(target_bpm) if master is not None else None

    out = sequence.copy()
    for track in out.tracks:
        for ev in track.events:
            ev.tick = int(ev.tick * ratio)
    if master is not None:
        t, i = master
        out.tracks[t].events[i].message.payload = payload
    return out
