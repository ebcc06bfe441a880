"""Utility functions for translating between note names and MIDI numbers.

The helpers are kept separate from the chord builder so the CLI can format
output without importing the generators.

Example
-------
>>> from chordlab.note_utils import note_value, midi_to_note
>>> note_value("F#/Gb")
66
>>> midi_to_note(60)
'C4'
"""

from __future__ import annotations

import logging
from typing import Iterable

from .theory import NOTE_TO_MIDI

__all__ = ["NOTE_NAMES", "note_value", "spelling", "midi_to_note", "format_notes"]

logger = logging.getLogger(__name__)

# Sharp spellings indexed by pitch class, used for every rendered note name.
NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


def spelling(name: str) -> str:
    """Return the sharp spelling of a key-table entry (``"C#/Db"`` -> ``"C#"``)."""

    return name.split("/")[0]


def note_value(name: str) -> int:
    """Return the reference MIDI pitch (60-71) for a note or key-table entry.

    Enharmonic pairs such as ``"C#/Db"`` resolve through their sharp spelling.

    Raises
    ------
    ValueError
        If ``name`` is not a known note name.
    """

    try:
        return NOTE_TO_MIDI[spelling(name)]
    except KeyError:
        logger.error("Unknown note name: %s", name)
        raise ValueError(f"Unknown note name: {name}") from None


def midi_to_note(midi_note: int) -> str:
    """Convert a MIDI number into a note name with octave using sharps.

    >>> midi_to_note(61)
    'C#4'
    >>> midi_to_note(128)
    Traceback (most recent call last):
        ...
    ValueError: MIDI note 128 out of range 0-127
    """

    if not 0 <= midi_note <= 127:
        raise ValueError(f"MIDI note {midi_note} out of range 0-127")
    octave = midi_note // 12 - 1
    return f"{NOTE_NAMES[midi_note % 12]}{octave}"


def format_notes(notes: Iterable[int]) -> str:
    """Render pitches as ``"C4 - E4 - G4"``."""

    return " - ".join(midi_to_note(n) for n in notes)
