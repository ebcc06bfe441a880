"""Scale and chord construction.

Scales are derived by rotating the twelve-entry key table to the requested
key and picking the mode's intervals.  Chords are built on a scale degree by
adding the intervals of a :class:`~chordlab.theory.ChordType` to the degree's
root pitch.

Triads follow the diatonic quality of their degree (``ii`` in C major is
D-F-A, ``vii°`` is B-D-F) so a progression of triads never leaves the key.
The other chord types keep their catalog intervals and advertise the quality
in their suffix (``7``, ``maj7``, ``m7`` ...).

Example
-------
>>> degrees = scale_degrees("C", "major")
>>> build_chord(degrees, 4, "seventh").notes
(67, 71, 74, 77)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .note_utils import note_value, spelling
from .theory import (
    KEYS,
    MAJOR_NUMERALS,
    MINOR_NUMERALS,
    MODE_INTERVALS,
    chord_type,
    resolve_key,
    resolve_mode,
)

__all__ = [
    "Chord",
    "scale_degrees",
    "scale_notes",
    "chord_quality",
    "chord_suffix",
    "build_chord",
]

# Diatonic triad quality of each scale degree.
_DEGREE_QUALITIES = {
    "major": ("major", "minor", "minor", "major", "major", "minor", "diminished"),
    "minor": ("minor", "diminished", "major", "minor", "minor", "major", "major"),
}

_TRIAD_INTERVALS = {
    "major": (0, 4, 7),
    "minor": (0, 3, 7),
    "diminished": (0, 3, 6),
}

_TYPE_SUFFIXES = {
    "seventh": "7",
    "major7": "maj7",
    "minor7": "m7",
    "sus4": "sus4",
    "add9": "add9",
}


@dataclass(frozen=True)
class Chord:
    """A concrete chord placed in a progression.

    ``notes`` holds MIDI pitches in the order they were generated and is
    never empty.  ``root`` is the pitch the intervals were added to and
    ``duration`` is measured in bars.
    """

    name: str
    numeral: str
    notes: Tuple[int, ...]
    root: int
    duration: float = 1.0

    @property
    def lowest(self) -> int:
        return min(self.notes)

    @property
    def highest(self) -> int:
        return max(self.notes)

    @property
    def is_minor(self) -> bool:
        """Whether the chord name reads as minor.

        ``maj`` (major seventh) and ``dim`` (diminished) contain an ``m``
        too but are not minor.
        """

        return "m" in self.name and "maj" not in self.name and "dim" not in self.name


def scale_degrees(key: str, mode: str, *, strict: bool = False) -> List[str]:
    """Return the seven key-table names of ``key`` in ``mode``.

    >>> scale_degrees("A", "minor")
    ['A', 'B', 'C', 'D', 'E', 'F', 'G']
    """

    root_index = KEYS.index(resolve_key(key, strict=strict))
    intervals = MODE_INTERVALS[resolve_mode(mode, strict=strict)]
    return [KEYS[(root_index + interval) % 12] for interval in intervals]


def scale_notes(key: str, mode: str, octaves: int = 2, *, strict: bool = False) -> List[int]:
    """Return ascending MIDI pitches of the scale across ``octaves`` octaves.

    The first octave starts at the key's reference pitch (C=60 ... B=71).
    """

    root = note_value(resolve_key(key, strict=strict))
    intervals = MODE_INTERVALS[resolve_mode(mode, strict=strict)]
    return [
        root + interval + octave * 12
        for octave in range(octaves)
        for interval in intervals
    ]


def chord_quality(degree: int, mode: str) -> str:
    """Return ``"major"``, ``"minor"`` or ``"diminished"`` for ``degree``."""

    return _DEGREE_QUALITIES[resolve_mode(mode)][degree % 7]


def chord_suffix(degree: int, mode: str, chord_type_id: str) -> str:
    """Return the name suffix for a chord of ``chord_type_id`` on ``degree``.

    Only triads take their quality from the degree; extended chord types are
    named after the type alone.
    """

    if chord_type_id != "triad":
        return _TYPE_SUFFIXES.get(chord_type_id, "")
    quality = chord_quality(degree, mode)
    if quality == "minor":
        return "m"
    if quality == "diminished":
        return "dim"
    return ""


def build_chord(
    degrees: Sequence[str],
    degree: int,
    chord_type_id: str,
    mode: str = "major",
    *,
    strict: bool = False,
) -> Chord:
    """Build the chord of ``chord_type_id`` on scale degree ``degree``.

    Parameters
    ----------
    degrees:
        Output of :func:`scale_degrees` for the active key.
    degree:
        Zero-based scale degree; wraps modulo the scale length.
    chord_type_id:
        Id from :data:`~chordlab.theory.CHORD_TYPES`.  Unknown ids build a
        triad unless ``strict`` is set.
    mode:
        Selects the numeral table and the triad quality of each degree.

    Returns
    -------
    Chord
        Chord with a default duration of one bar.
    """

    mode = resolve_mode(mode, strict=strict)
    kind = chord_type(chord_type_id, strict=strict)
    index = degree % len(degrees)
    root_name = degrees[index]
    root = note_value(root_name)

    if kind.id == "triad":
        intervals = _TRIAD_INTERVALS[chord_quality(index, mode)]
    else:
        intervals = kind.intervals

    numerals = MAJOR_NUMERALS if mode == "major" else MINOR_NUMERALS
    return Chord(
        name=spelling(root_name) + chord_suffix(index, mode, kind.id),
        numeral=numerals[index % len(numerals)],
        notes=tuple(root + interval for interval in intervals),
        root=root,
    )
