"""Human-readable dump of decoded events, used by the --debug switch."""
from __future__ import annotations

from mido import Message

from .model import ChannelMessage, MetaMessage, Sequence, TimedEvent
from .smf import encode_message

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


def note_name(key: int) -> str:
    octave = (key // 12) - 1
    return f"{NOTE_NAMES[key % 12]}{octave}"


def describe_event(event: TimedEvent) -> str:
    msg = event.message
    prefix = f"@{event.tick} "
    if isinstance(msg, MetaMessage):
        return prefix + f"MetaMessage Type: {msg.type}"
    if not isinstance(msg, ChannelMessage):
        return prefix + f"Sysex: {len(msg.payload)} bytes"

    prefix += f"Channel: {msg.channel} "
    parsed = Message.from_bytes(encode_message(msg))
    if parsed.type in ("note_on", "note_off"):
        label = "Note on" if parsed.type == "note_on" else "Note off"
        return prefix + f"{label}, {note_name(parsed.note)} key={parsed.note} velocity: {parsed.velocity}"
    fields = " ".join(
        f"{k}={v}" for k, v in parsed.dict().items() if k not in ("type", "channel", "time")
    )
    return prefix + f"Command: {parsed.type} {fields}".rstrip()


def dump_sequence(sequence: Sequence) -> None:
    for n, track in enumerate(sequence.tracks, start=1):
        print(f"Found Track {n}: size = {len(track)}")
        for ev in track.events:
            print(describe_event(ev))
