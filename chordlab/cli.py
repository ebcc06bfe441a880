"""Command line front end for chordlab.

``run_cli`` parses the command line, generates a progression (and a melody
unless ``--no-melody`` is given), prints the chords and writes both as MIDI
files.  :func:`main` configures logging and is the target of the
``chordlab`` console script and ``python -m chordlab``.

Selectors such as ``--key`` or ``--rhythm`` are resolved leniently: unknown
values are logged and replaced by defaults.  ``--strict`` turns them into
errors instead.

Example
-------
Running ``python -m chordlab --key Eb --mode minor --chords 3 --rhythm
arpeggiation --arpeggio inside-out --seed 7`` writes
``chordlab-progression-D#-minor.mid`` and ``chordlab-melody-D#-minor.mid`` to
``$CHORDLAB_OUTPUT_DIR`` (or the current directory).
"""

from __future__ import annotations

import argparse
import logging
import random
import sys

from .melody import MelodyConfig, generate_melody
from .midi_io import DEFAULT_BPM, export_melody, export_progression
from .note_utils import format_notes
from .progression import generate_progression
from .theory import ARPEGGIO_PATTERNS, CHORD_TYPES, KEYS, InvalidSelectorError

__all__ = ["build_parser", "run_cli", "main"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a chord progression and melody and save them as MIDI files."
    )
    parser.add_argument("--list-keys", action="store_true", help="List all supported keys and exit")
    parser.add_argument("--list-chord-types", action="store_true", help="List all chord types and exit")
    parser.add_argument("--key", type=str, default="C", help="Musical key, e.g. C, F#, Bb (default: C).")
    parser.add_argument("--mode", type=str, default="major", help="major or minor (default: major).")
    parser.add_argument("--chords", type=int, choices=(2, 3, 4), default=4, help="Number of chords in the progression.")
    parser.add_argument(
        "--chord-types",
        type=str,
        default="triad",
        help="Comma-separated chord type ids to pick from (see --list-chord-types).",
    )
    parser.add_argument("--no-melody", dest="melody", action="store_false", help="Only generate the chord progression")
    parser.add_argument("--complexity", type=int, default=50, help="Melody density 10-90 (default: 50).")
    parser.add_argument("--rhythm", type=str, default="varied", help="varied, conjunct or arpeggiation.")
    parser.add_argument(
        "--arpeggio",
        type=str,
        default="ascending",
        help="Arpeggio pattern used with --rhythm arpeggiation: "
        + ", ".join(pid for pid, _label in ARPEGGIO_PATTERNS),
    )
    parser.add_argument("--quantize", type=str, default="eighth", help="quarter, eighth or sixteenth.")
    parser.add_argument("--bpm", type=int, default=DEFAULT_BPM, help="Tempo in beats per minute.")
    parser.add_argument(
        "--output-dir",
        type=str,
        help="Directory for the MIDI files (default: $CHORDLAB_OUTPUT_DIR or the current directory).",
    )
    parser.add_argument("--seed", type=int, help="Random seed for reproducible output")
    parser.add_argument("--strict", action="store_true", help="Reject unknown keys, modes and patterns")
    parser.add_argument("--play", action="store_true", help="Play the result with FluidSynth")
    parser.add_argument(
        "--play-mode",
        choices=("both", "chords", "melody"),
        default="both",
        help="What --play sounds: chords and melody together, or one of them (default: both).",
    )
    parser.add_argument("--loop", type=int, default=1, help="Number of times --play repeats the preview (default: 1).")
    parser.add_argument("--soundfont", type=str, help="Path to a SoundFont (.sf2) file used with --play")
    parser.add_argument("--volume", type=int, default=75, help="Playback volume 0-100 (default: 75).")
    return parser


def _play(progression, melody, args) -> None:
    from .playback import (
        FluidSynthSink,
        MidiPlaybackError,
        PlaybackSettings,
        play_preview,
    )

    settings = PlaybackSettings(bpm=args.bpm, volume=args.volume, soundfont=args.soundfont)
    try:
        with FluidSynthSink(settings) as sink:
            play_preview(progression, melody, sink, settings, mode=args.play_mode, loops=args.loop)
    except MidiPlaybackError as exc:
        logging.error("Playback failed: %s", exc)


def run_cli() -> None:
    """Parse CLI arguments, generate music and write the MIDI files.

    Invalid numeric options and, with ``--strict``, unknown selectors are
    logged and terminate the process with exit code ``1``.  Playback
    failures are logged but do not affect the exit code since the files have
    already been written.
    """

    args = build_parser().parse_args()

    if args.list_keys:
        print("\n".join(KEYS))
        return
    if args.list_chord_types:
        print("\n".join(f"{ct.id}\t{ct.label}" for ct in CHORD_TYPES))
        return

    if args.bpm <= 0:
        logging.error("BPM must be a positive integer.")
        sys.exit(1)
    if not 0 <= args.complexity <= 100:
        logging.error("Complexity must be between 0 and 100.")
        sys.exit(1)
    if not 0 <= args.volume <= 100:
        logging.error("Volume must be between 0 and 100.")
        sys.exit(1)
    if args.loop < 1:
        logging.error("Loop count must be at least 1.")
        sys.exit(1)

    if args.seed is not None:
        logging.info("Using random seed %d", args.seed)
        rng = random.Random(args.seed).random
    else:
        rng = random.random

    chord_types = [t.strip() for t in args.chord_types.split(",") if t.strip()]
    try:
        progression = generate_progression(
            args.key, args.mode, args.chords, chord_types, rng=rng, strict=args.strict
        )
        melody = []
        if args.melody:
            config = MelodyConfig(
                complexity=args.complexity,
                rhythm=args.rhythm,
                arpeggio=args.arpeggio,
                quantize=args.quantize,
            )
            melody = generate_melody(progression, config, rng=rng, strict=args.strict)
    except InvalidSelectorError as exc:
        logging.error(str(exc))
        sys.exit(1)

    print(f"{progression.key} {progression.mode}: {progression.template}")
    for chord in progression:
        print(f"  {chord.numeral:<5} {chord.name:<8} {format_notes(chord.notes):<24} {chord.duration:g} bar(s)")
    if melody:
        print(f"Melody: {len(melody)} notes")

    try:
        path = export_progression(progression, args.bpm, args.output_dir)
        print(f"Wrote {path}")
        if melody:
            path = export_melody(melody, progression.key, progression.mode, args.bpm, args.output_dir)
            print(f"Wrote {path}")
    except OSError as exc:
        logging.error("Could not write MIDI file: %s", exc)
        sys.exit(1)

    if args.play:
        _play(progression, melody, args)
    logging.info("Generation complete.")


def main() -> None:
    """Console entry point."""

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    run_cli()
