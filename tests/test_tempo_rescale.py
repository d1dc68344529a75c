from __future__ import annotations

import pytest

from midi_retempo.errors import InvalidTempo
from midi_retempo.model import ChannelMessage, MetaMessage, Sequence, TimedEvent, Track
from midi_retempo.tempo import (
    convert_tempo,
    find_first_tempo,
    original_bpm,
    rescale,
    tempo_from_payload,
)


def _tempo(bpm_mpq: int) -> MetaMessage:
    return MetaMessage(type=0x51, payload=bpm_mpq.to_bytes(3, "big"))


def _eot() -> MetaMessage:
    return MetaMessage(type=0x2F)


def _scenario() -> Sequence:
    return Sequence(
        format=0,
        division=480,
        tracks=[
            Track(
                [
                    TimedEvent(0, _tempo(500000)),
                    TimedEvent(480, ChannelMessage(0x90, 0, 60, 100)),
                    TimedEvent(960, _eot()),
                ]
            )
        ],
    )


def test_convert_tempo_truncates():
    # 60000000 / 90 = 666666.67
    assert convert_tempo(90) == bytes([0x0A, 0x2C, 0x2A])
    assert tempo_from_payload(convert_tempo(90)) == 666666
    assert convert_tempo(120) == b"\x07\xA1\x20"
    assert tempo_from_payload(convert_tempo(133.3)) == 450112


@pytest.mark.parametrize("bpm", [0, -10, float("nan"), float("inf"), 1.0])
def test_convert_tempo_rejects_unusable_values(bpm):
    # 1 BPM needs 60000000 us per quarter, more than 3 bytes hold
    with pytest.raises(InvalidTempo):
        convert_tempo(bpm)


def test_rescale_120_to_90():
    seq = _scenario()
    out = rescale(seq, 120.0, 90.0)
    assert out.tracks[0].ticks() == [0, 360, 720]
    assert out.tracks[0].events[0].message.payload == bytes([0x0A, 0x2C, 0x2A])
    assert out.division == 480
    # input untouched
    assert seq == _scenario()


def test_rescale_floors_ticks():
    seq = Sequence(format=0, division=96, tracks=[Track([TimedEvent(t, _eot()) for t in (1, 3, 7)])])
    out = rescale(seq, 120, 90)
    assert out.tracks[0].ticks() == [0, 2, 5]


def test_only_first_tempo_in_scan_order_is_rewritten():
    seq = Sequence(
        format=1,
        division=480,
        tracks=[
            Track([TimedEvent(0, MetaMessage(0x03, b"conductor")), TimedEvent(0, _eot())]),
            Track([TimedEvent(0, _tempo(500000)), TimedEvent(1920, _tempo(400000)), TimedEvent(1920, _eot())]),
            Track([TimedEvent(0, _tempo(300000)), TimedEvent(0, _eot())]),
        ],
    )
    assert find_first_tempo(seq) == (1, 0)

    out = rescale(seq, 120, 100)
    tempos = [
        ev.message.payload
        for tr in out.tracks
        for ev in tr.events
        if isinstance(ev.message, MetaMessage) and ev.message.is_tempo
    ]
    assert tempos == [convert_tempo(100), (400000).to_bytes(3, "big"), (300000).to_bytes(3, "big")]
    assert out.tracks[0].events[0].message.payload == b"conductor"
    assert out.tracks[1].ticks() == [0, 1600, 1600]


def test_no_tempo_event_still_rescales():
    seq = Sequence(
        format=0,
        division=480,
        tracks=[Track([TimedEvent(0, ChannelMessage(0x90, 0, 60, 100)), TimedEvent(480, _eot())])],
    )
    assert find_first_tempo(seq) is None
    out = rescale(seq, 120, 240)
    assert out.tracks[0].ticks() == [0, 960]
    assert all(not isinstance(ev.message, MetaMessage) or not ev.message.is_tempo for ev in out.tracks[0].events)


@pytest.mark.parametrize("original,target", [(120, 0), (120, -5), (0, 90), (120, float("nan"))])
def test_invalid_tempo_leaves_input_alone(original, target):
    seq = _scenario()
    with pytest.raises(InvalidTempo):
        rescale(seq, original, target)
    assert seq == _scenario()


@pytest.mark.parametrize("original,target", [(120, 90), (97, 133.3), (60, 59.999), (200, 7)])
def test_rescale_keeps_tick_order(original, target):
    ticks = [0, 0, 1, 2, 3, 5, 8, 13, 479, 480, 481, 10_000, 10_001, 1_000_000]
    seq = Sequence(format=0, division=480, tracks=[Track([TimedEvent(t, _eot()) for t in ticks])])
    new_ticks = rescale(seq, original, target).tracks[0].ticks()
    assert new_ticks == sorted(new_ticks)
    assert all(t >= 0 for t in new_ticks)


def test_original_bpm_from_first_tempo_or_default():
    assert original_bpm(_scenario()) == pytest.approx(120.0)
    seq = _scenario()
    seq.tracks[0].events[0] = TimedEvent(0, _tempo(468750))
    assert original_bpm(seq) == pytest.approx(128.0)
    seq.tracks[0].events.pop(0)
    assert original_bpm(seq) == 120.0


def test_no_tempo_event_accepts_any_positive_target():
    seq = Sequence(
        format=0,
        division=480,
        tracks=[Track([TimedEvent(0, ChannelMessage(0x90, 0, 60, 100)), TimedEvent(480, _eot())])],
    )
    out = rescale(seq, 120.0, 2.0)
    assert out.tracks[0].ticks() == [0, 8]
    assert seq.tracks[0].ticks() == [0, 480]


def test_target_that_does_not_fit_tempo_event_leaves_input_alone():
    seq = _scenario()
    with pytest.raises(InvalidTempo):
        rescale(seq, 120.0, 2.0)
    assert seq == _scenario()
