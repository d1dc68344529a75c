"""Standard MIDI File codec.

decode() turns SMF bytes into a `Sequence` with absolute ticks, encode()
turns a `Sequence` back into bytes. Output never uses running status, so
re-encoding a file may change its size but not its content.
"""
from __future__ import annotations

import os
import shutil
import struct
import tempfile
from typing import List, Tuple

from .errors import BadHeader, EncodeError, NegativeDelta, Truncated, UnknownStatus, UnsupportedDivision
from .model import ChannelMessage, MetaMessage, MidiMessage, Sequence, SysexMessage, TimedEvent, Track

HEADER_ID = b"MThd"
TRACK_ID = b"MTrk"
HEADER_LENGTH = 6
MAX_VARIABLE_LENGTH = 0x0FFFFFFF  # 4 encoded bytes


def read_variable_length(data: bytes, offset: int) -> Tuple[int, int]:
    """Read a variable-length quantity starting at `offset`.

    Returns (value, offset after the quantity).
    """
    result = 0
    while True:
        if offset >= len(data):
            raise Truncated("variable-length quantity runs past end of data")
        byte = data[offset]
        offset += 1
        result = ((result << 7) | (byte & 0x7F)) & 0xFFFFFFFF
        if not (byte & 0x80):
            return result, offset


def write_variable_length(value: int) -> bytes:
    """Write a variable-length quantity (MIDI format)."""
    if value < 0:
        raise ValueError(f"variable-length quantity must be non-negative, got {value}")
    if value > MAX_VARIABLE_LENGTH:
        raise EncodeError(f"variable-length quantity 0x{value:x} does not fit in 4 bytes")
    result = bytearray()
    result.append(value & 0x7F)
    value >>= 7
    while value > 0:
        result.insert(0, (value & 0x7F) | 0x80)
        value >>= 7
    return bytes(result)


def _take(data: bytes, offset: int, length: int, what: str) -> Tuple[bytes, int]:
    end = offset + length
    if end > len(data):
        raise Truncated(f"{what}: need {length} bytes at offset {offset}, only {len(data) - offset} left")
    return data[offset:end], end


def _read_header(data: bytes) -> Tuple[int, int, int]:
    if data[:4] != HEADER_ID:
        raise BadHeader(f"expected {HEADER_ID!r} chunk, found {bytes(data[:4])!r}")
    raw, _ = _take(data, 4, 4 + HEADER_LENGTH, "header chunk")
    length, fmt, ntracks, division = struct.unpack(">IHHH", raw)
    if length != HEADER_LENGTH:
        raise BadHeader(f"header chunk length must be {HEADER_LENGTH}, got {length}")
    if division & 0x8000:
        raise UnsupportedDivision(f"SMPTE time division 0x{division:04x} is not supported")
    if division == 0:
        raise BadHeader("division must be greater than zero")
    return fmt, ntracks, division


def _read_track(body: bytes) -> Track:
    track = Track()
    offset = 0
    tick = 0
    running_status = None

    while offset < len(body):
        delta, offset = read_variable_length(body, offset)
        tick += delta
        if offset >= len(body):
            raise Truncated("event has a delta-time but no status")
        status = body[offset]

        message: MidiMessage
        if status == 0xFF:
            raw, offset = _take(body, offset + 1, 1, "meta type")
            length, offset = read_variable_length(body, offset)
            payload, offset = _take(body, offset, length, f"meta 0x{raw[0]:02x} payload")
            message = MetaMessage(type=raw[0], payload=payload)
        elif status in (0xF0, 0xF7):
            length, offset = read_variable_length(body, offset + 1)
            payload, offset = _take(body, offset, length, "sysex payload")
            message = SysexMessage(payload=payload, status=status)
        else:
            if status & 0x80:
                if not ChannelMessage.is_channel_status(status):
                    raise UnknownStatus(f"status byte 0x{status:02x} at offset {offset}")
                running_status = status
                offset += 1
            elif running_status is None:
                raise UnknownStatus(f"data byte 0x{status:02x} at offset {offset} with no running status")
            count = ChannelMessage.data_length(running_status)
            raw, offset = _take(body, offset, count, "channel message data")
            message = ChannelMessage(
                status=running_status & 0xF0,
                channel=running_status & 0x0F,
                data1=raw[0],
                data2=raw[1] if count == 2 else None,
            )

        track.events.append(TimedEvent(tick=tick, message=message))

    return track


def decode(data: bytes) -> Sequence:
    """Parse SMF bytes into a `Sequence`.

    Raises a `DecodeError` subclass on malformed input; nothing is returned
    in that case.
    """
    data = bytes(data)
    fmt, ntracks, division = _read_header(data)
    offset = 8 + HEADER_LENGTH

    tracks: List[Track] = []
    while len(tracks) < ntracks:
        head, offset = _take(data, offset, 8, f"chunk header for track {len(tracks) + 1}")
        chunk_id, length = head[:4], struct.unpack(">I", head[4:])[0]
        body, offset = _take(data, offset, length, f"{chunk_id!r} chunk body")
        if chunk_id != TRACK_ID:
            # Alien chunk: readers must skip what they don't know
            continue
        tracks.append(_read_track(body))

    return Sequence(format=fmt, division=division, tracks=tracks)


def encode_message(message: MidiMessage) -> bytes:
    if isinstance(message, ChannelMessage):
        out = bytearray([(message.status & 0xF0) | (message.channel & 0x0F), message.data1 & 0x7F])
        if ChannelMessage.data_length(message.status) == 2:
            out.append((message.data2 or 0) & 0x7F)
        return bytes(out)
    if isinstance(message, MetaMessage):
        return bytes([0xFF, message.type]) + write_variable_length(len(message.payload)) + message.payload
    if isinstance(message, SysexMessage):
        return bytes([message.status]) + write_variable_length(len(message.payload)) + message.payload
    raise TypeError(f"unsupported message type {type(message).__name__}")


def _encode_track(track: Track, index: int) -> bytes:
    track_data = bytearray()
    last_tick = 0
    for i, ev in enumerate(track.events):
        delta = ev.tick - last_tick
        if delta < 0:
            raise NegativeDelta(
                f"track {index}: event {i} at tick {ev.tick} comes before previous tick {last_tick}"
            )
        track_data.extend(write_variable_length(delta))
        track_data.extend(encode_message(ev.message))
        last_tick = ev.tick
    return TRACK_ID + struct.pack(">I", len(track_data)) + bytes(track_data)


def encode(sequence: Sequence) -> bytes:
    """Serialize a `Sequence` to SMF bytes."""
    out = bytearray(HEADER_ID)
    out += struct.pack(">IHHH", HEADER_LENGTH, sequence.format, len(sequence.tracks), sequence.division)
    for index, track in enumerate(sequence.tracks):
        out += _encode_track(track, index)
    return bytes(out)


def read_sequence(path: str) -> Sequence:
    with open(path, "rb") as f:
        data = f.read()
    return decode(data)


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def write_sequence(sequence: Sequence, path: str) -> None:
    """Encode `sequence` and atomically replace `path` with the result.

    The whole file is encoded before anything touches the disk, so an
    encode error leaves `path` as it was.
    """
    data = encode(sequence)
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(prefix=".retempo-", suffix=".mid", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        if os.path.exists(path):
            shutil.copymode(path, tmp_path)
        else:
            os.chmod(tmp_path, 0o666 & ~_current_umask())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
