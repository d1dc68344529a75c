"""In-memory model of a Standard MIDI File.

Events carry absolute tick positions; delta times only exist in the byte
stream (see `smf`).
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import List, Optional, Union

TEMPO = 0x51
END_OF_TRACK = 0x2F

# Upper nibble of a channel status -> number of data bytes
_DATA_LENGTHS = {
    0x80: 2,  # note off
    0x90: 2,  # note on
    0xA0: 2,  # poly pressure
    0xB0: 2,  # control change
    0xC0: 1,  # program change
    0xD0: 1,  # channel pressure
    0xE0: 2,  # pitch bend
}


@dataclass
class ChannelMessage:
    """Channel voice/mode message. `status` is the command nibble (0x80..0xE0)."""
    status: int
    channel: int
    data1: int
    data2: Optional[int] = None

    @staticmethod
    def data_length(status: int) -> int:
        return _DATA_LENGTHS[status & 0xF0]

    @staticmethod
    def is_channel_status(byte: int) -> bool:
        return (byte & 0xF0) in _DATA_LENGTHS


@dataclass
class MetaMessage:
    type: int
    payload: bytes = b""

    @property
    def is_tempo(self) -> bool:
        return self.type == TEMPO

    @property
    def is_end_of_track(self) -> bool:
        return self.type == END_OF_TRACK


@dataclass
class SysexMessage:
    payload: bytes
    status: int = 0xF0  # 0xF7 for escaped/continuation packets


MidiMessage = Union[ChannelMessage, MetaMessage, SysexMessage]


@dataclass
class TimedEvent:
    tick: int
    message: MidiMessage


@dataclass
class Track:
    events: List[TimedEvent] = field(default_factory=list)

    def ticks(self) -> List[int]:
        return [ev.tick for ev in self.events]

    def __len__(self) -> int:
        return len(self.events)


@dataclass
class Sequence:
    """Header info plus tracks. Only ticks-per-quarter-note division is modelled."""
    format: int
    division: int
    tracks: List[Track] = field(default_factory=list)

    def copy(self) -> "Sequence":
        return copy.deepcopy(self)
