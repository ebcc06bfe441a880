"""Arpeggio engine tests.

The C major triad over the C major scale is used throughout.  Its expanded
pool is ``[60, 64, 67, 72, 74, 76, 79]``: the chord plus the added 9th,
stacked over two octaves and limited to a fifth below and an octave above
the chord.
"""

import sys
from pathlib import Path

import pytest

# Ensure the repository root is on `sys.path` so `chordlab` can be imported regardless of where pytest is executed from.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chordlab.arpeggio import (  # noqa: E402
    arpeggio_pitches,
    expand_chord_notes,
    normalize_chord_notes,
    pattern_cycle,
)
from chordlab.chords import Chord, build_chord, scale_degrees, scale_notes  # noqa: E402
from chordlab.theory import ARPEGGIO_PATTERNS  # noqa: E402

SCALE = scale_notes("C", "major", 2)
C_MAJOR = build_chord(scale_degrees("C", "major"), 0, "triad")
A_MINOR = build_chord(scale_degrees("C", "major"), 5, "triad")
B_DIM = build_chord(scale_degrees("C", "major"), 6, "triad")
POOL = [60, 64, 67, 72, 74, 76, 79]


def _zero():
    return 0.0


def test_normalize_pads_with_scale_extensions():
    """Major chords take the 9th first; minor chords prefer the 9th over the 11th."""

    assert normalize_chord_notes(C_MAJOR, SCALE) == [60, 64, 67, 74]
    assert normalize_chord_notes(A_MINOR, SCALE) == [69, 72, 76, 83]


def test_normalize_treats_diminished_as_non_minor():
    """Bdim tries the 9th, 6th and major 7th; none is in C major, so the octave root pads."""

    assert normalize_chord_notes(B_DIM, SCALE) == [71, 74, 77, 83]


def test_normalize_trims_and_pads_with_octave_root():
    big = Chord("C9", "I", (60, 64, 67, 70, 74), 60)
    assert normalize_chord_notes(big, SCALE) == [60, 64, 67, 70]
    # No extension fits an empty scale, so the octave root fills the gap.
    assert normalize_chord_notes(C_MAJOR, []) == [60, 64, 67, 72]


def test_expand_chord_notes():
    assert expand_chord_notes(C_MAJOR, SCALE) == POOL


def test_expand_out_of_register_is_empty():
    low = Chord("A#", "I", (10, 14, 17), 10)
    assert expand_chord_notes(low, SCALE) == []
    assert arpeggio_pitches(low, 4, 4, "ascending", SCALE, _zero) == []


@pytest.mark.parametrize(
    "pattern, expected",
    [
        ("ascending", [60, 64, 67, 72]),
        ("descending", [79, 76, 74, 72]),
        ("ascending-descending", [60, 64, 67, 72]),
        ("descending-ascending", [79, 76, 74, 72]),
        ("inside-out", [72, 74, 67, 79]),
        ("outside-in", [79, 60, 76, 64]),
    ],
)
def test_quarter_note_cycles(pattern, expected):
    assert pattern_cycle(pattern, POOL, 4) == expected


@pytest.mark.parametrize(
    "pattern, expected",
    [
        ("ascending", [60, 64, 67, 72]),
        ("descending", [79, 76, 74, 72]),
        ("ascending-descending", [60, 64]),
        ("descending-ascending", [79, 76]),
        ("inside-out", [72, 67, 74, 64]),
        ("outside-in", [79, 60, 76, 64, 74, 67, 72]),
    ],
)
def test_eighth_note_cycles(pattern, expected):
    assert pattern_cycle(pattern, POOL, 2) == expected


@pytest.mark.parametrize("pattern", [pid for pid, _ in ARPEGGIO_PATTERNS])
def test_quarter_notes_give_four_notes_per_bar(pattern):
    """Every pattern fills a one bar chord with exactly four quarter notes."""

    assert len(arpeggio_pitches(C_MAJOR, 4, 4, pattern, SCALE, _zero)) == 4


def test_cycles_repeat_to_fill_slots():
    pitches = arpeggio_pitches(C_MAJOR, 8, 2, "descending", SCALE, _zero)
    assert pitches == [79, 76, 74, 72, 79, 76, 74, 72]


def test_none_plays_raw_chord_tones():
    assert arpeggio_pitches(C_MAJOR, 4, 4, "none", SCALE, _zero) == [60, 64, 67, 60]


def test_random_pattern_uses_rng():
    assert arpeggio_pitches(C_MAJOR, 6, 4, "random", SCALE, _zero) == [60] * 6
    top = arpeggio_pitches(C_MAJOR, 3, 1, "random", SCALE, lambda: 0.999)
    assert top == [79, 79, 79]


def test_no_slots():
    assert arpeggio_pitches(C_MAJOR, 0, 2, "ascending", SCALE, _zero) == []
