from __future__ import annotations


class MidiRetempoError(Exception):
    """Base class for everything the converter raises on bad input."""


class DecodeError(MidiRetempoError, ValueError):
    pass


class BadHeader(DecodeError):
    pass


class UnsupportedDivision(DecodeError):
    pass


class Truncated(DecodeError):
    pass


class UnknownStatus(DecodeError):
    pass


class EncodeError(MidiRetempoError, ValueError):
    pass


class NegativeDelta(EncodeError):
    pass


class RescaleError(MidiRetempoError, ValueError):
    pass


class InvalidTempo(RescaleError):
    pass
