"""Melody generation over a chord progression.

Three strategies are available, selected by :attr:`MelodyConfig.rhythm`:

``varied``
    Each quantize slot is played with probability ``complexity`` percent.
    Played slots mostly use chord tones (including 9th, 11th and 13th
    extensions) and occasionally a consonant scale tone.

``conjunct``
    Stepwise motion.  Each note stays within two semitones of the previous
    one, with an occasional small leap, and strong beats lean toward chord
    tones so the line stays anchored to the harmony.

``arpeggiation``
    Chord tones are played in one of the patterns of
    :data:`~chordlab.theory.ARPEGGIO_PATTERNS` (see :mod:`chordlab.arpeggio`).

Non-arpeggiated melodies are post-processed: leaps wider than an octave are
folded back (:func:`smooth_leaps`) and every note is moved by octaves into a
window around the progression (:func:`constrain_range`).

The generator never returns an empty melody.  A chord whose span received no
notes gets its root on the downbeat (and the fifth halfway through longer
chords), so the result always contains at least one note per chord.

Algorithm Pseudocode
--------------------
::

    for chord, start, end in progression.spans():
        for slot in range((end - start) // quantize):
            if random() * 100 < complexity:
                melody.append(strategy.pick(chord, previous_note))
    if not arpeggiating:
        melody = constrain_range(smooth_leaps(melody))
    fill chords without notes with fallback notes
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional, Sequence

from .arpeggio import arpeggio_pitches
from .chords import Chord, scale_notes
from .progression import Progression, choose
from .theory import (
    ARPEGGIO_PATTERNS,
    resolve_arpeggio,
    resolve_key,
    resolve_mode,
    resolve_quantize,
    resolve_rhythm,
)

__all__ = [
    "MelodyNote",
    "MelodyConfig",
    "generate_melody",
    "smooth_leaps",
    "constrain_range",
    "fallback_notes",
    "next_arpeggio_pattern",
]

logger = logging.getLogger(__name__)

MIN_COMPLEXITY = 10
MAX_COMPLEXITY = 90

# Intervals above the chord root that sound consonant as passing scale tones.
_CONSONANT_INTERVALS = {0, 2, 4, 5, 7, 9, 11}

# Extensions added to the chord tone pool of the varied strategy.
_EXTENSIONS = (14, 17, 21)


@dataclass(frozen=True)
class MelodyNote:
    """A melody note measured in sixteenth notes."""

    pitch: int
    start: int
    duration: int

    @property
    def end(self) -> int:
        return self.start + self.duration


@dataclass
class MelodyConfig:
    """Options controlling :func:`generate_melody`.

    ``key`` and ``mode`` default to the progression's own key and mode.
    ``quantize`` accepts the unit in sixteenths or an option id such as
    ``"eighth"``.
    """

    complexity: int = 50
    rhythm: str = "varied"
    arpeggio: str = "ascending"
    quantize: object = 2
    key: Optional[str] = None
    mode: Optional[str] = None


def next_arpeggio_pattern(pattern: str) -> str:
    """Return the pattern following ``pattern`` in the catalog, wrapping around."""

    ids = [pid for pid, _label in ARPEGGIO_PATTERNS]
    index = ids.index(pattern) if pattern in ids else -1
    return ids[(index + 1) % len(ids)]


def smooth_leaps(notes: Iterable[MelodyNote]) -> List[MelodyNote]:
    """Fold leaps wider than an octave back toward the previous note.

    Each note is compared with its (already smoothed) predecessor and moved
    by octaves until the interval is at most twelve semitones.  Running the
    pass on its own output changes nothing.
    """

    result: List[MelodyNote] = []
    for note in notes:
        if result:
            previous = result[-1].pitch
            pitch = note.pitch
            while pitch - previous > 12:
                pitch -= 12
            while previous - pitch > 12:
                pitch += 12
            if pitch != note.pitch:
                note = replace(note, pitch=pitch)
        result.append(note)
    return result


def constrain_range(notes: Iterable[MelodyNote], chords: Sequence[Chord]) -> List[MelodyNote]:
    """Move every note by octaves into the progression's melody window.

    The window reaches a fourth below the lowest chord note and a fifth above
    the highest one.
    """

    notes = list(notes)
    if not chords:
        return notes
    low = min(chord.lowest for chord in chords) - 5
    high = max(chord.highest for chord in chords) + 7

    result = []
    for note in notes:
        pitch = note.pitch
        while pitch > high:
            pitch -= 12
        while pitch < low:
            pitch += 12
        result.append(note if pitch == note.pitch else replace(note, pitch=pitch))
    return result


def fallback_notes(chord: Chord, start: int, end: int, quantize: int) -> List[MelodyNote]:
    """Return the notes used when ``chord`` would otherwise stay silent.

    The root sounds on the chord's first beat.  Chords lasting at least half
    a bar also get the fifth at their midpoint.
    """

    span = end - start
    duration = max(1, min(quantize, span))
    notes = [MelodyNote(chord.root, start, duration)]
    if span >= 8 and quantize <= 4:
        notes.append(MelodyNote(chord.root + 7, start + span // 2, duration))
    return notes


def _varied(chord: Chord, start: int, end: int, quantize: int, complexity: int,
            scale: Sequence[int], rng: Callable[[], float]) -> List[MelodyNote]:
    tones = list(chord.notes) + [chord.root + ext for ext in _EXTENSIONS]
    highest, lowest = chord.highest, chord.lowest
    passing = [
        n for n in scale
        if (n - chord.root) % 12 in _CONSONANT_INTERVALS and lowest - 12 <= n <= highest + 12
    ]

    notes = []
    for slot in range((end - start) // quantize):
        if rng() * 100 >= complexity:
            continue
        if rng() < 0.85:
            pitch = choose(tones, rng)
            # Lift low tones an octave now and then, never past a fifth above
            # the chord.
            if rng() < 0.3 and pitch < highest - 3 and pitch + 12 <= highest + 7:
                pitch += 12
        elif passing:
            pitch = choose(passing, rng)
        else:
            pitch = choose(chord.notes, rng)
        notes.append(MelodyNote(pitch, start + slot * quantize, quantize))
    return notes


def _conjunct(chord: Chord, start: int, end: int, quantize: int, complexity: int,
              scale: Sequence[int], rng: Callable[[], float],
              previous: Optional[int]) -> List[MelodyNote]:
    highest, lowest = chord.highest, chord.lowest
    in_range = [n for n in scale if lowest - 5 <= n <= highest + 7]

    if previous is None:
        opening = choose(chord.notes, rng)
        while opening > highest + 4:
            opening -= 12
        while opening < lowest - 2:
            opening += 12
    else:
        opening = previous

    notes: List[MelodyNote] = []
    for slot in range((end - start) // quantize):
        time = start + slot * quantize
        if rng() * 100 >= complexity:
            continue
        if slot == 0:
            notes.append(MelodyNote(opening, time, quantize))
            continue

        prev = notes[-1].pitch if notes else previous
        if prev is None:
            continue
        steps = [n for n in in_range if abs(n - prev) <= 2]
        leaps = [n for n in in_range if 2 < abs(n - prev) <= 4]
        options = steps if rng() < 0.85 or not leaps else leaps

        if options:
            pitch = choose(options, rng)
        elif in_range:
            pitch = min(in_range, key=lambda n: abs(n - prev))
        else:
            pitch = prev

        if slot % 4 == 0 and rng() < 0.7:
            pitch = min(chord.notes, key=lambda n: abs(n - pitch))
        notes.append(MelodyNote(pitch, time, quantize))
    return notes


def _arpeggiate(progression: Progression, quantize: int, pattern: str,
                scale: Sequence[int], rng: Callable[[], float]) -> List[MelodyNote]:
    notes = []
    for chord, start, end in progression.spans():
        slots = (end - start) // quantize
        pitches = arpeggio_pitches(chord, slots, quantize, pattern, scale, rng)
        notes.extend(
            MelodyNote(pitch, start + i * quantize, quantize)
            for i, pitch in enumerate(pitches)
        )
    return notes


def _ascending_chord_tones(progression: Progression, quantize: int) -> List[MelodyNote]:
    notes = []
    for chord, start, end in progression.spans():
        for i, pitch in enumerate(sorted(chord.notes)):
            time = start + i * quantize
            if time < end:
                notes.append(MelodyNote(pitch, time, min(quantize, end - time)))
    return notes


def generate_melody(
    progression: Progression,
    config: Optional[MelodyConfig] = None,
    *,
    rng: Optional[Callable[[], float]] = None,
    strict: bool = False,
) -> List[MelodyNote]:
    """Generate a melody spanning ``progression``.

    Parameters
    ----------
    progression:
        Chords to accompany. An empty progression yields an empty melody.
    config:
        Generation options; defaults to :class:`MelodyConfig`.
    rng:
        Random source returning floats in ``[0, 1)``.  Defaults to
        :func:`random.random`.
    strict:
        Raise :class:`~chordlab.theory.InvalidSelectorError` for unknown
        rhythm, arpeggio, quantize, key or mode selectors.

    Returns
    -------
    List[MelodyNote]
        Notes sorted by start time, at least one per chord.
    """

    if not len(progression):
        return []
    config = config or MelodyConfig()
    rng = rng or random.random

    rhythm = resolve_rhythm(config.rhythm, strict=strict)
    quantize = resolve_quantize(config.quantize, strict=strict)
    key = resolve_key(config.key or progression.key, strict=strict)
    mode = resolve_mode(config.mode or progression.mode, strict=strict)
    complexity = max(MIN_COMPLEXITY, min(MAX_COMPLEXITY, int(config.complexity)))
    scale = scale_notes(key, mode, 2)
    spans = progression.spans()

    melody: List[MelodyNote] = []
    if rhythm == "arpeggiation":
        pattern = resolve_arpeggio(config.arpeggio, strict=strict)
        melody = _arpeggiate(progression, quantize, pattern, scale, rng)
        if not melody:
            retry = next_arpeggio_pattern(pattern)
            logger.info("Arpeggio pattern %s produced no notes, trying %s", pattern, retry)
            melody = _arpeggiate(progression, quantize, retry, scale, rng)
        if not melody:
            melody = _ascending_chord_tones(progression, quantize)
    else:
        for chord, start, end in spans:
            if rhythm == "conjunct":
                previous = melody[-1].pitch if melody else None
                melody.extend(
                    _conjunct(chord, start, end, quantize, complexity, scale, rng, previous)
                )
            else:
                melody.extend(_varied(chord, start, end, quantize, complexity, scale, rng))
        melody = constrain_range(smooth_leaps(melody), progression.chords)

    filled = 0
    for chord, start, end in spans:
        if not any(start <= note.start < end for note in melody):
            melody.extend(fallback_notes(chord, start, end, quantize))
            filled += 1
    if filled:
        logger.info("Added fallback melody notes for %d of %d chords", filled, len(spans))

    melody.sort(key=lambda note: note.start)
    return melody
