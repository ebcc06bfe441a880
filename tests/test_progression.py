"""Progression generator tests.

Deterministic ``rng`` callables are injected so template, duration and chord
type choices can be asserted exactly.
"""

import logging
import random
import sys
from dataclasses import replace
from pathlib import Path

import pytest

# Ensure the repository root is on `sys.path` so `chordlab` can be imported regardless of where pytest is executed from.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chordlab.chords import build_chord, scale_degrees  # noqa: E402
from chordlab.progression import (  # noqa: E402
    TOTAL_BARS,
    Progression,
    choose,
    duration_split,
    generate_progression,
)
from chordlab.theory import InvalidSelectorError, MAJOR_NUMERALS  # noqa: E402


@pytest.mark.parametrize("count", [2, 3, 4])
@pytest.mark.parametrize("seed", range(10))
def test_durations_sum_to_four_bars(count, seed):
    """Every supported chord count fills exactly four bars."""

    prog = generate_progression(
        "G", "minor", count, ["triad", "seventh"], rng=random.Random(seed).random
    )
    assert len(prog) == count
    assert abs(prog.total_bars - TOTAL_BARS) < 1e-6


def test_duration_split_three_chords():
    assert duration_split(2) == [2, 2]
    assert duration_split(3, rng=lambda: 0.2) == [2, 1, 1]
    assert duration_split(3, rng=lambda: 0.7) == [1, 1, 2]
    assert duration_split(4) == [1, 1, 1, 1]


def test_duration_split_unexpected_count(caplog):
    """Unsupported counts are split evenly with a warning."""

    with caplog.at_level(logging.WARNING):
        durations = duration_split(5)
    assert durations == pytest.approx([0.8] * 5)
    assert abs(sum(durations) - 4) < 1e-6
    assert "Unexpected number of chords" in caplog.text


def test_non_positive_chord_count():
    with pytest.raises(ValueError):
        duration_split(0)
    with pytest.raises(ValueError):
        generate_progression("C", "major", 0)


def test_template_selection_is_deterministic():
    """A constant zero draw picks the first eligible template and type."""

    prog = generate_progression("C", "major", 4, ["triad", "seventh"], rng=lambda: 0.0)
    assert prog.template == "I-IV-V-I (Classic)"
    assert [c.name for c in prog] == ["C", "F", "G", "C"]
    assert [c.numeral for c in prog] == ["I", "IV", "V", "I"]


def test_two_chords_in_minor():
    prog = generate_progression("A", "minor", 2, rng=lambda: 0.0)
    assert [c.name for c in prog] == ["Am", "Dm"]
    assert [c.duration for c in prog] == [2, 2]


def test_short_templates_are_cycled():
    """Counts longer than every template cycle the chosen degrees."""

    prog = generate_progression("C", "major", 5, rng=lambda: 0.0)
    assert [c.name for c in prog] == ["C", "F", "G", "C", "C"]
    assert abs(prog.total_bars - 4) < 1e-6


def test_empty_chord_types(caplog):
    with caplog.at_level(logging.WARNING):
        prog = generate_progression("C", "major", 4, [], rng=lambda: 0.0)
    assert all(len(c.notes) == 3 for c in prog)
    with pytest.raises(InvalidSelectorError):
        generate_progression("C", "major", 4, [], strict=True)


def test_seeded_generation_is_reproducible():
    first = generate_progression("E", "major", 3, ["triad", "add9"], rng=random.Random(42).random)
    second = generate_progression("E", "major", 3, ["triad", "add9"], rng=random.Random(42).random)
    assert first == second


@pytest.mark.parametrize("seed", range(20))
def test_c_major_triads_end_to_end(seed):
    """Four triads in C major: one bar each, diatonic numerals and notes."""

    prog = generate_progression("C", "major", 4, ["triad"], rng=random.Random(seed).random)
    assert len(prog) == 4
    assert [c.duration for c in prog] == [1, 1, 1, 1]
    c_major = {0, 2, 4, 5, 7, 9, 11}
    for chord in prog:
        assert chord.numeral in MAJOR_NUMERALS
        assert {n % 12 for n in chord.notes} <= c_major


def test_spans_use_cumulative_positions():
    degrees = scale_degrees("C", "major")
    chords = [
        build_chord(degrees, 0, "triad"),
        build_chord(degrees, 3, "triad"),
        build_chord(degrees, 4, "triad"),
    ]
    chords = [replace(c, duration=d) for c, d in zip(chords, [2, 1, 1])]
    prog = Progression("C", "major", chords)
    assert [(s, e) for _c, s, e in prog.spans()] == [(0, 32), (32, 48), (48, 64)]


def test_choose_handles_upper_bound():
    """A draw of exactly one still returns the last element."""

    assert choose(["a", "b", "c"], lambda: 1.0) == "c"
    assert choose(["a", "b", "c"], lambda: 0.5) == "b"
