"""Chord progression and harmonic rhythm generator.

A progression is always a single four bar phrase.  One of a handful of
common templates is chosen for the mode, stretched or trimmed to the
requested number of chords, and the four bars are shared out between the
chords by :func:`duration_split`.

Example
-------
>>> import random
>>> prog = generate_progression("C", "major", 4, ["triad"], rng=random.Random(3).random)
>>> [c.duration for c in prog]
[1, 1, 1, 1]
"""

from __future__ import annotations

import dataclasses
import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from .chords import Chord, build_chord, scale_degrees
from .theory import InvalidSelectorError, resolve_key, resolve_mode

__all__ = [
    "TOTAL_BARS",
    "PROGRESSION_TEMPLATES",
    "Progression",
    "choose",
    "duration_split",
    "generate_progression",
]

logger = logging.getLogger(__name__)

# Every progression fills exactly one four bar phrase.
TOTAL_BARS = 4

# Common progressions per mode, written as zero-based scale degrees.
PROGRESSION_TEMPLATES = {
    "major": [
        ("I-IV-V-I (Classic)", (0, 3, 4, 0)),
        ("I-V-vi-IV (Pop)", (0, 4, 5, 3)),
        ("ii-V-I (Jazz)", (1, 4, 0)),
        ("I-vi-IV-V (50s)", (0, 5, 3, 4)),
        ("I-IV-vi-V (Hopeful)", (0, 3, 5, 4)),
    ],
    "minor": [
        ("i-iv-v-i (Classic)", (0, 3, 4, 0)),
        ("i-VI-III-VII (Epic)", (0, 5, 2, 6)),
        ("i-iv-VII-III (Emotional)", (0, 3, 6, 2)),
        ("i-VII-VI-VII (Rock)", (0, 6, 5, 6)),
        ("i-v-VI-VII (Andalusian)", (0, 4, 5, 6)),
    ],
}

# Drift larger than this triggers a rescale of the duration split.
_DURATION_TOLERANCE = 0.001


@dataclass
class Progression:
    """Ordered chords together with the context they were generated in."""

    key: str
    mode: str
    chords: List[Chord] = field(default_factory=list)
    template: str = ""

    def __iter__(self) -> Iterator[Chord]:
        return iter(self.chords)

    def __len__(self) -> int:
        return len(self.chords)

    def __getitem__(self, index: int) -> Chord:
        return self.chords[index]

    @property
    def total_bars(self) -> float:
        return sum(chord.duration for chord in self.chords)

    def spans(self) -> List[Tuple[Chord, int, int]]:
        """Return ``(chord, start, end)`` for every chord in sixteenth notes.

        Boundaries are the rounded cumulative bar positions so they are always
        integers and the last chord ends exactly at ``total_bars * 16``.
        """

        spans = []
        elapsed = 0.0
        for chord in self.chords:
            start = int(round(elapsed * 16))
            elapsed += chord.duration
            spans.append((chord, start, int(round(elapsed * 16))))
        return spans


def choose(items: Sequence, rng: Callable[[], float]):
    """Pick one element of ``items`` uniformly using ``rng``."""

    return items[min(int(rng() * len(items)), len(items) - 1)]


def duration_split(chord_count: int, rng: Optional[Callable[[], float]] = None) -> List[float]:
    """Share :data:`TOTAL_BARS` between ``chord_count`` chords.

    Two chords get two bars each, three chords get ``[2, 1, 1]`` or
    ``[1, 1, 2]`` with equal probability and four chords one bar each.  Any
    other count is split evenly and logged as unexpected.  The result always
    sums to four bars within floating point tolerance.

    @param chord_count (int): Number of chords; must be positive.
    @param rng (Callable): Random source returning floats in ``[0, 1)``.
    @returns List[float]: Duration of each chord in bars.
    """

    if chord_count <= 0:
        raise ValueError("chord_count must be positive")
    rng = rng or random.random

    if chord_count == 2:
        durations = [2, 2]
    elif chord_count == 3:
        durations = [2, 1, 1] if rng() < 0.5 else [1, 1, 2]
    elif chord_count == 4:
        durations = [1, 1, 1, 1]
    else:
        logger.warning(
            "Unexpected number of chords: %d. Using default distribution.", chord_count
        )
        durations = [TOTAL_BARS / chord_count] * chord_count

    total = sum(durations)
    if abs(total - TOTAL_BARS) > _DURATION_TOLERANCE:
        logger.warning("Total chord duration %s does not equal %d bars; adjusting", total, TOTAL_BARS)
        factor = TOTAL_BARS / total
        durations = [d * factor for d in durations]
    return durations


def generate_progression(
    key: str,
    mode: str,
    chord_count: int = 4,
    chord_types: Sequence[str] = ("triad",),
    *,
    rng: Optional[Callable[[], float]] = None,
    strict: bool = False,
) -> Progression:
    """Create a four bar chord progression in ``key`` and ``mode``.

    Parameters
    ----------
    key:
        Any spelling accepted by :func:`~chordlab.theory.resolve_key`.
    mode:
        ``"major"`` or ``"minor"``.
    chord_count:
        Number of chords to return. Must be positive.
    chord_types:
        Enabled chord type ids; each chord picks one uniformly.
    rng:
        Random source returning floats in ``[0, 1)``.  Defaults to
        :func:`random.random`.
    strict:
        Raise :class:`~chordlab.theory.InvalidSelectorError` for unknown
        selectors instead of falling back.

    Returns
    -------
    Progression
        Chords whose durations sum to four bars.

    Raises
    ------
    ValueError
        If ``chord_count`` is not positive.
    """

    if chord_count <= 0:
        raise ValueError("chord_count must be positive")
    rng = rng or random.random
    key = resolve_key(key, strict=strict)
    mode = resolve_mode(mode, strict=strict)
    chord_types = list(chord_types)
    if not chord_types:
        if strict:
            raise InvalidSelectorError("at least one chord type must be enabled")
        logger.warning("No chord types enabled; using triads")
        chord_types = ["triad"]

    templates = PROGRESSION_TEMPLATES[mode]
    eligible = [t for t in templates if len(t[1]) >= chord_count] or templates
    name, template = choose(eligible, rng)

    # Cycle short templates until they cover the requested length.
    degrees = list(template)
    while len(degrees) < chord_count:
        degrees.extend(template)
    degrees = degrees[:chord_count]

    durations = duration_split(chord_count, rng)
    logger.debug("Chord durations %s for %d chords", durations, chord_count)

    degree_names = scale_degrees(key, mode)
    chords = []
    for degree, duration in zip(degrees, durations):
        type_id = choose(chord_types, rng)
        chord = build_chord(degree_names, degree, type_id, mode, strict=strict)
        chords.append(dataclasses.replace(chord, duration=duration))

    logger.info("Generated %d chords from template %s", len(chords), name)
    return Progression(key=key, mode=mode, chords=chords, template=name)
