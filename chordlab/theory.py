"""Static music theory tables and selector lookups.

Everything the generators need to know about keys, modes, chord types and the
melody style catalogs lives here so the builder modules only deal with
algorithms.  The tables are plain module level constants and are never
mutated at runtime.

Selector helpers such as :func:`resolve_key` implement the library's lenient
policy: unknown values are logged and replaced by a safe default so generation
always produces output.  Passing ``strict=True`` raises
:class:`InvalidSelectorError` instead, which is useful for callers (tests,
scripted batch runs) that prefer hard failures.

Example
-------
>>> resolve_key("db")
'C#/Db'
>>> chord_type("sus4").intervals
(0, 5, 7)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

__all__ = [
    "InvalidSelectorError",
    "ChordType",
    "KEYS",
    "MODES",
    "MODE_INTERVALS",
    "MAJOR_NUMERALS",
    "MINOR_NUMERALS",
    "NOTE_TO_MIDI",
    "CHORD_TYPES",
    "RHYTHM_PATTERNS",
    "ARPEGGIO_PATTERNS",
    "QUANTIZE_OPTIONS",
    "resolve_key",
    "resolve_mode",
    "chord_type",
    "resolve_rhythm",
    "resolve_arpeggio",
    "resolve_quantize",
]

logger = logging.getLogger(__name__)


class InvalidSelectorError(ValueError):
    """Raised in strict mode when a key, mode or pattern id is unknown."""


@dataclass(frozen=True)
class ChordType:
    """Chord shape expressed as semitone offsets from the root."""

    id: str
    label: str
    intervals: Tuple[int, ...]


# The twelve pitch classes in chromatic order.  Enharmonic pairs share a
# single entry so a key always resolves to exactly one MIDI pitch class.
KEYS: List[str] = [
    "C", "C#/Db", "D", "D#/Eb", "E", "F",
    "F#/Gb", "G", "G#/Ab", "A", "A#/Bb", "B",
]

MODES: List[str] = ["major", "minor"]

MODE_INTERVALS: Dict[str, Tuple[int, ...]] = {
    "major": (0, 2, 4, 5, 7, 9, 11),
    "minor": (0, 2, 3, 5, 7, 8, 10),
}

MAJOR_NUMERALS: List[str] = ["I", "ii", "iii", "IV", "V", "vi", "vii°"]
MINOR_NUMERALS: List[str] = ["i", "ii°", "III", "iv", "v", "VI", "VII"]

# Reference octave for every key.  Chord roots are always placed between
# middle C (60) and the B above it (71).
NOTE_TO_MIDI: Dict[str, int] = {
    "C": 60,
    "C#": 61,
    "Db": 61,
    "D": 62,
    "D#": 63,
    "Eb": 63,
    "E": 64,
    "F": 65,
    "F#": 66,
    "Gb": 66,
    "G": 67,
    "G#": 68,
    "Ab": 68,
    "A": 69,
    "A#": 70,
    "Bb": 70,
    "B": 71,
}

CHORD_TYPES: List[ChordType] = [
    ChordType("triad", "Triads", (0, 4, 7)),
    ChordType("seventh", "7th Chords", (0, 4, 7, 10)),
    ChordType("major7", "Major 7th", (0, 4, 7, 11)),
    ChordType("minor7", "Minor 7th", (0, 3, 7, 10)),
    ChordType("sus4", "Sus4", (0, 5, 7)),
    ChordType("add9", "Add9", (0, 4, 7, 14)),
]

# Melody strategies.  All of them place notes on the quantize grid.
RHYTHM_PATTERNS: Dict[str, str] = {
    "varied": "Varied",
    "conjunct": "Conjunct (Stepwise)",
    "arpeggiation": "Arpeggiation",
}

# Order matters: when a pattern yields no notes the generator moves on to
# the next entry.
ARPEGGIO_PATTERNS: List[Tuple[str, str]] = [
    ("none", "No Arpeggiation"),
    ("ascending", "Ascending"),
    ("descending", "Descending"),
    ("ascending-descending", "Ascending-Descending"),
    ("descending-ascending", "Descending-Ascending"),
    ("inside-out", "Inside-Out"),
    ("outside-in", "Outside-In"),
    ("random", "Random"),
]

QUANTIZE_OPTIONS: Dict[str, int] = {
    "quarter": 4,
    "eighth": 2,
    "sixteenth": 1,
}

_CHORD_TYPES_BY_ID = {ct.id: ct for ct in CHORD_TYPES}
_ARPEGGIO_IDS = [pid for pid, _label in ARPEGGIO_PATTERNS]

# Every accepted key spelling, lowercased, mapped to its table entry.
_KEY_LOOKUP: Dict[str, str] = {}
for _entry in KEYS:
    _KEY_LOOKUP[_entry.lower()] = _entry
    for _spelling in _entry.split("/"):
        _KEY_LOOKUP[_spelling.lower()] = _entry


def _reject(kind: str, value: object, default: object, strict: bool) -> None:
    """Raise in strict mode, otherwise log that ``default`` replaces ``value``."""

    if strict:
        raise InvalidSelectorError(f"Unknown {kind}: {value!r}")
    logger.warning("Unknown %s %r; falling back to %r", kind, value, default)


def resolve_key(name: str, *, strict: bool = False) -> str:
    """Return the :data:`KEYS` entry matching ``name``.

    ``name`` may be a table entry (``"C#/Db"``), either enharmonic spelling
    (``"C#"``, ``"Db"``) and is matched case-insensitively.  Unknown keys
    resolve to ``"C"``.
    """

    entry = _KEY_LOOKUP.get(str(name).strip().lower())
    if entry is None:
        _reject("key", name, "C", strict)
        return "C"
    return entry


def resolve_mode(name: str, *, strict: bool = False) -> str:
    """Return ``"major"`` or ``"minor"`` for ``name``."""

    mode = str(name).strip().lower()
    if mode not in MODE_INTERVALS:
        _reject("mode", name, "major", strict)
        return "major"
    return mode


def chord_type(type_id: str, *, strict: bool = False) -> ChordType:
    """Return the :class:`ChordType` for ``type_id``, defaulting to triads."""

    found = _CHORD_TYPES_BY_ID.get(type_id)
    if found is None:
        _reject("chord type", type_id, "triad", strict)
        return _CHORD_TYPES_BY_ID["triad"]
    return found


def resolve_rhythm(name: str, *, strict: bool = False) -> str:
    """Return a valid melody strategy id, defaulting to ``"varied"``."""

    if name not in RHYTHM_PATTERNS:
        _reject("rhythm pattern", name, "varied", strict)
        return "varied"
    return name


def resolve_arpeggio(name: str, *, strict: bool = False) -> str:
    """Return a valid arpeggio pattern id, defaulting to ``"ascending"``."""

    if name not in _ARPEGGIO_IDS:
        _reject("arpeggio pattern", name, "ascending", strict)
        return "ascending"
    return name


def resolve_quantize(value, *, strict: bool = False) -> int:
    """Return the quantize unit in sixteenths.

    Accepts either an option id (``"eighth"``) or the unit itself (``2``).
    Anything else falls back to quarter notes.
    """

    if isinstance(value, str):
        if value in QUANTIZE_OPTIONS:
            return QUANTIZE_OPTIONS[value]
        if value.isdigit():
            value = int(value)
    if isinstance(value, int) and value in QUANTIZE_OPTIONS.values():
        return value
    _reject("quantize unit", value, 4, strict)
    return 4
