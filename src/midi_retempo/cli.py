from __future__ import annotations

import argparse
import math
import os
from typing import List

from .config import DEBUG_ENV, Config, config_from_dict, env_flag, load_config
from .debug import dump_sequence
from .errors import DecodeError, EncodeError, RescaleError
from .smf import read_sequence, write_sequence
from .tempo import find_first_tempo, original_bpm, rescale


def _positive_float(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Tempo is not a valid number: {text!r}")
    if not math.isfinite(value) or value <= 0:
        raise argparse.ArgumentTypeError(f"Tempo must be positive: {text!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="midi-retempo",
        description="Change the master tempo of a MIDI file while keeping its audible timing",
    )
    parser.add_argument("file", help="MIDI file to convert (overwritten unless --out is given)")
    parser.add_argument("tempo", nargs="?", type=_positive_float, help="New tempo in BPM")
    parser.add_argument("legacy_debug", nargs="?", choices=["debug"], metavar="debug",
                        help="Same as --debug")
    parser.add_argument("--debug", action="store_true", help="Print every decoded event")
    parser.add_argument("--original-bpm", type=_positive_float, default=None,
                        help="Tempo the file is in; read from its first tempo event by default")
    parser.add_argument("--out", default=None, help="Write the result here instead of overwriting FILE")
    parser.add_argument("--config", default=None,
                        help="JSON config with target_bpm, debug, original_bpm, out")
    return parser


def _resolve_config(args: argparse.Namespace, parser: argparse.ArgumentParser) -> Config:
    if args.config:
        cfg = load_config(args.config)
    elif args.tempo is not None:
        cfg = config_from_dict({"target_bpm": args.tempo})
    else:
        parser.error("a tempo is required (positional TEMPO or --config)")

    # Command line wins over the config file
    if args.tempo is not None:
        cfg.target_bpm = args.tempo
    if args.debug or args.legacy_debug or env_flag(DEBUG_ENV):
        cfg.debug = True
    if args.original_bpm is not None:
        cfg.original_bpm = args.original_bpm
    if args.out:
        cfg.out = args.out
    return cfg


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    print("\nMidi Tempo Converter 1.0")
    print("==========================")

    try:
        cfg = _resolve_config(args, parser)
    except (OSError, ValueError) as e:
        print(f"Error: Can't load config. {e}")
        return 1

    path = args.file
    if not os.path.exists(path) or os.path.isdir(path):
        print("Error: Midi file does not exist !")
        return 1

    try:
        sequence = read_sequence(path)
    except (OSError, DecodeError) as e:
        print(f"Error: Can't read MIDI File. {e}")
        return 1

    if cfg.debug:
        dump_sequence(sequence)

    old_bpm = cfg.original_bpm if cfg.original_bpm is not None else original_bpm(sequence)
    print(f"Old Tempo: {old_bpm:g}")
    print(f"New Tempo: {cfg.target_bpm:g}")
    print("Updating MIDI Events")

    try:
        converted = rescale(sequence, old_bpm, cfg.target_bpm)
    except RescaleError as e:
        print(f"Error: {e}")
        return 1
    if find_first_tempo(converted) is not None:
        print(f"Found Master Tempo (Set = {cfg.target_bpm:g})")

    out_path = cfg.out or path
    print("Saving Changes to the MIDI File")
    try:
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
        write_sequence(converted, out_path)
    except (OSError, EncodeError) as e:
        print(f"Error: Can't write MIDI File. {e}")
        return 1
    print(f"Done! Wrote {out_path}")
    print()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
