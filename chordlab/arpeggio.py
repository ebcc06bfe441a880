"""Arpeggio pattern engine.

Arpeggios are built in three steps:

1. :func:`normalize_chord_notes` pads or trims the chord to four notes so
   every pattern has the same amount of material to work with.
2. :func:`expand_chord_notes` stacks the normalised chord over
   :data:`ARPEGGIO_OCTAVE_RANGE` octaves and keeps only notes in a playable
   register close to the chord.
3. :func:`arpeggio_pitches` walks a pattern specific note cycle to fill the
   requested number of slots.

Quarter note quantization uses simplified four note cycles so each bar
receives exactly one note per beat.  Pitch selection is kept apart from
timing; :mod:`chordlab.melody` places the returned pitches on the grid.
"""

from __future__ import annotations

import math
from typing import Callable, List, Sequence

from .chords import Chord

__all__ = [
    "ARPEGGIO_OCTAVE_RANGE",
    "NOTES_PER_CYCLE",
    "normalize_chord_notes",
    "expand_chord_notes",
    "pattern_cycle",
    "arpeggio_pitches",
]

ARPEGGIO_OCTAVE_RANGE = 2

# Length of one pattern cycle.  Quarter, eighth and sixteenth quantization
# all settle on four notes.
NOTES_PER_CYCLE = 4

# Absolute register allowed for arpeggio notes (C2 to C6).
LOWEST_ARPEGGIO_NOTE = 36
HIGHEST_ARPEGGIO_NOTE = 84


def normalize_chord_notes(chord: Chord, scale: Sequence[int]) -> List[int]:
    """Return exactly four notes for ``chord``.

    Chords with four or more notes are trimmed.  Smaller chords are padded
    with extensions whose pitch class belongs to ``scale``: minor chords try
    the 9th, 11th and 6th, other chords the 9th, 6th and major 7th, with 9ths
    and 6ths preferred.  When no extension fits, the root an octave up fills
    the remaining places.
    """

    result = list(chord.notes)
    if len(result) >= 4:
        return result[:4]

    root = chord.root
    if chord.is_minor:
        extensions = [root + 14, root + 17, root + 9]
    else:
        extensions = [root + 14, root + 9, root + 11]

    pitch_classes = {n % 12 for n in scale}
    valid = [n for n in extensions if n % 12 in pitch_classes]
    # Stable sort keeps the original order inside each priority group.
    valid.sort(key=lambda n: 0 if n in (root + 14, root + 9) else 1)

    result.extend(valid[: 4 - len(result)])
    while len(result) < 4:
        result.append(root + 12)
    return result


def expand_chord_notes(chord: Chord, scale: Sequence[int]) -> List[int]:
    """Return the sorted pool of arpeggio notes for ``chord``.

    The pool never dips more than a fifth below the chord or climbs more
    than an octave above it.  It may be empty for chords sitting far outside
    the arpeggio register.
    """

    base = normalize_chord_notes(chord, scale)
    expanded = sorted(
        note + octave * 12
        for octave in range(ARPEGGIO_OCTAVE_RANGE)
        for note in base
    )
    expanded = [n for n in expanded if LOWEST_ARPEGGIO_NOTE <= n <= HIGHEST_ARPEGGIO_NOTE]
    lowest, highest = chord.lowest, chord.highest
    expanded = [n for n in expanded if lowest - 7 <= n <= highest + 12]

    if expanded:
        while len(expanded) < NOTES_PER_CYCLE:
            expanded = expanded + [n + 12 for n in expanded]
    return expanded


def _quarter_cycle(pattern: str, notes: List[int]) -> List[int]:
    """Four note cycle used when one note falls on every beat."""

    # ``notes`` always holds at least NOTES_PER_CYCLE entries here.
    if pattern == "descending":
        return notes[::-1][:4]
    if pattern == "ascending-descending":
        return notes[:4]
    if pattern == "descending-ascending":
        return notes[::-1][:4]
    if pattern == "inside-out":
        middle = len(notes) // 2
        return [notes[middle], notes[middle + 1], notes[middle - 1], notes[-1]]
    if pattern == "outside-in":
        return [notes[-1], notes[0], notes[-2], notes[1]]
    return notes[:NOTES_PER_CYCLE]


def pattern_cycle(pattern: str, notes: List[int], quantize: int) -> List[int]:
    """Return the repeating note cycle of ``pattern`` over ``notes``.

    ``notes`` is an ascending pool from :func:`expand_chord_notes`.  The
    ``random`` pattern has no fixed cycle and is handled by
    :func:`arpeggio_pitches`.
    """

    if quantize == 4:
        return _quarter_cycle(pattern, notes)

    half = math.ceil(NOTES_PER_CYCLE / 2)
    if pattern == "descending":
        return notes[::-1][:NOTES_PER_CYCLE]
    if pattern == "ascending-descending":
        up = notes[: min(len(notes), half)]
        return up + up[1:-1][::-1]
    if pattern == "descending-ascending":
        down = notes[::-1][: min(len(notes), half)]
        return down + down[1:-1][::-1]
    if pattern == "inside-out":
        middle = len(notes) // 2
        cycle = []
        for i in range(min(len(notes), NOTES_PER_CYCLE)):
            step = math.ceil(i / 2)
            index = middle + step if i % 2 == 0 else middle - step
            if 0 <= index < len(notes):
                cycle.append(notes[index])
        return cycle
    if pattern == "outside-in":
        cycle = []
        for i in range(min(math.ceil(len(notes) / 2), NOTES_PER_CYCLE)):
            high = len(notes) - 1 - i
            cycle.append(notes[high])
            if i < high:
                cycle.append(notes[i])
        return cycle
    return notes[:NOTES_PER_CYCLE]


def arpeggio_pitches(
    chord: Chord,
    slots: int,
    quantize: int,
    pattern: str,
    scale: Sequence[int],
    rng: Callable[[], float],
) -> List[int]:
    """Return ``slots`` pitches arpeggiating ``chord`` with ``pattern``.

    Parameters
    ----------
    chord:
        Chord to arpeggiate.
    slots:
        Number of quantize steps available in the chord's span.
    quantize:
        Quantize unit in sixteenths (4, 2 or 1).
    pattern:
        Arpeggio pattern id.  ``"none"`` plays the raw chord tones in
        ascending order.
    scale:
        Scale pitches used to validate padding extensions.
    rng:
        Random source for the ``random`` pattern.

    Returns
    -------
    List[int]
        Pitches in playing order; empty when ``slots`` is not positive or no
        note fits the arpeggio register.
    """

    if slots <= 0:
        return []

    if pattern == "none":
        cycle = sorted(chord.notes)
        return [cycle[i % len(cycle)] for i in range(slots)]

    notes = expand_chord_notes(chord, scale)
    if not notes:
        return []

    def pick() -> int:
        return notes[min(int(rng() * len(notes)), len(notes) - 1)]

    if pattern == "random":
        if quantize != 4:
            return [pick() for _ in range(slots)]
        # A fresh set of four notes is rolled for every bar.
        pitches: List[int] = []
        for _bar in range(math.ceil(slots / 4)):
            bar_notes = [pick() for _ in range(4)]
            pitches.extend(bar_notes[: slots - len(pitches)])
        return pitches

    cycle = pattern_cycle(pattern, notes, quantize)
    return [cycle[i % len(cycle)] for i in range(slots)]
