"""Chordlab: chord progression and melody generator.

Given a key, a mode and a few style parameters the package builds a four bar
chord progression, an optional melody over it and exports either as a
Standard MIDI File.

A typical workflow::

    from chordlab import generate_progression, generate_melody, MelodyConfig
    from chordlab import encode_midi, melody_to_midi_notes

    progression = generate_progression("C", "major", 4, ["triad", "seventh"])
    melody = generate_melody(progression, MelodyConfig(rhythm="conjunct"))
    data = encode_midi(melody_to_midi_notes(melody), bpm=100)

Underlying Algorithm
--------------------
A progression is chosen from a handful of common templates for the mode and
the four bars are shared out between its chords.  The melody walks the
chords in sixteenth-note slots using one of three strategies (varied,
conjunct or arpeggiation).  Non-arpeggiated lines are then smoothed so no
leap exceeds an octave and moved into a window around the chords.  Chords
left without a note receive their root, so a melody is never empty.

Every random choice goes through an injectable ``rng`` callable returning
floats in ``[0, 1)`` so results can be reproduced.
"""

__version__ = "0.1.0"

from .chords import Chord, build_chord, scale_degrees, scale_notes
from .melody import MelodyConfig, MelodyNote, generate_melody
from .midi_io import (
    MidiNote,
    chords_to_midi_notes,
    encode_midi,
    export_filename,
    melody_to_midi_notes,
    save_midi,
)
from .progression import Progression, generate_progression
from .theory import CHORD_TYPES, KEYS, MODES, InvalidSelectorError


def main() -> None:
    """Run the command line interface."""

    from .cli import main as cli_main

    cli_main()


__all__ = [
    "__version__",
    "Chord",
    "build_chord",
    "scale_degrees",
    "scale_notes",
    "MelodyConfig",
    "MelodyNote",
    "generate_melody",
    "MidiNote",
    "chords_to_midi_notes",
    "encode_midi",
    "export_filename",
    "melody_to_midi_notes",
    "save_midi",
    "Progression",
    "generate_progression",
    "CHORD_TYPES",
    "KEYS",
    "MODES",
    "InvalidSelectorError",
    "main",
]
