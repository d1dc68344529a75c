"""
Tempo converter for Standard MIDI Files.

Contains a small SMF codec, the tempo rescaler and a command line wrapper.
"""

__all__ = [
    "model",
    "smf",
    "tempo",
]
