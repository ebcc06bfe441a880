"""Standard MIDI File encoding and the filesystem save sink.

The encoder writes a format 1 file with two tracks:

* a conductor track holding the 4/4 time signature and the tempo;
* a note track on channel 0 holding a program change followed by the notes.

Timing uses 480 ticks per quarter note, so one sixteenth (the unit every
generator in the package works in) is 120 ticks.

Notes sharing a start time are written as one group.  All note-ons of a
group are emitted together and all note-offs follow after the *first*
note's duration.  Chords always share one duration so this is exact for
them.  Melodies never stack notes, so the grouping only matters for hand
built input.

mido writes *running status*: a channel message whose status byte equals
the previous one in the same track omits it.  A two note chord therefore
encodes its second note-on as ``00 40 64`` rather than ``00 90 40 64``.
The files are valid SMF, but byte comparisons against writers that repeat
every status byte only match when no status byte repeats (a single note).

:func:`encode_midi` can add further note tracks via ``extra_tracks``; the
playback preview uses this to put the melody beside the chords.

Example
-------
>>> data = encode_midi([(60, 0, 16)], bpm=120)
>>> data[:4]
b'MThd'
"""

from __future__ import annotations

import io
import logging
import math
import os
from itertools import groupby
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional, Sequence, Union

from .note_utils import spelling
from .theory import resolve_key, resolve_mode

__all__ = [
    "DEFAULT_BPM",
    "MIDI_MIME_TYPE",
    "MidiNote",
    "encode_midi",
    "melody_to_midi_notes",
    "chords_to_midi_notes",
    "export_filename",
    "save_midi",
    "export_progression",
    "export_melody",
]

logger = logging.getLogger(__name__)

DEFAULT_BPM = 120
TICKS_PER_BEAT = 480
TICKS_PER_SIXTEENTH = TICKS_PER_BEAT // 4
NOTE_ON_VELOCITY = 100
NOTE_OFF_VELOCITY = 64
MIDI_MIME_TYPE = "audio/midi"

# Environment variable naming the default export directory.
OUTPUT_DIR_ENV = "CHORDLAB_OUTPUT_DIR"


class MidiNote(NamedTuple):
    """A note to encode, timed in sixteenth notes."""

    pitch: int
    start: float
    duration: float


NoteLike = Union[MidiNote, tuple]


def _as_midi_note(note) -> MidiNote:
    if hasattr(note, "pitch"):
        return MidiNote(note.pitch, note.start, note.duration)
    pitch, start, duration = note
    return MidiNote(pitch, start, duration)


def _ticks(sixteenths: float) -> int:
    """Return ``sixteenths`` in ticks, rounding halves up."""

    return int(math.floor(sixteenths * TICKS_PER_SIXTEENTH + 0.5))


def _clamp_pitch(pitch: int) -> int:
    if 0 <= pitch <= 127:
        return int(pitch)
    clamped = max(0, min(127, int(pitch)))
    logger.warning("Pitch %s outside MIDI range; clamped to %d", pitch, clamped)
    return clamped


def _note_track(notes: Iterable[NoteLike], channel: int, Message, MetaMessage, MidiTrack):
    """Build one note track on ``channel`` with the start-group encoding."""

    track = MidiTrack()
    track.append(Message("program_change", program=0, channel=channel, time=0))

    ordered = sorted((_as_midi_note(n) for n in notes), key=lambda n: n.start)
    last_tick = 0
    for start, group in groupby(ordered, key=lambda n: n.start):
        group = list(group)
        start_tick = _ticks(start)
        delta = max(0, start_tick - last_tick)
        for i, note in enumerate(group):
            track.append(
                Message(
                    "note_on",
                    channel=channel,
                    note=_clamp_pitch(note.pitch),
                    velocity=NOTE_ON_VELOCITY,
                    time=delta if i == 0 else 0,
                )
            )
        last_tick = start_tick

        length = max(0, _ticks(group[0].duration))
        for i, note in enumerate(group):
            track.append(
                Message(
                    "note_off",
                    channel=channel,
                    note=_clamp_pitch(note.pitch),
                    velocity=NOTE_OFF_VELOCITY,
                    time=length if i == 0 else 0,
                )
            )
        last_tick += length

    track.append(MetaMessage("end_of_track", time=0))
    return track


def encode_midi(
    notes: Iterable[NoteLike],
    bpm: float = DEFAULT_BPM,
    *,
    extra_tracks: Sequence[Iterable[NoteLike]] = (),
) -> bytes:
    """Encode ``notes`` as a Standard MIDI File.

    Parameters
    ----------
    notes:
        ``(pitch, start, duration)`` tuples, :class:`MidiNote` records or
        :class:`~chordlab.melody.MelodyNote` objects.  Times are in
        sixteenth notes.  An empty iterable yields a valid file without
        notes.
    bpm:
        Tempo in beats per minute.
    extra_tracks:
        Further note lists, each written to its own track on the next
        channel.  Parts that overlap in time (chords under a melody) belong
        in separate tracks so the start-group encoding keeps their timing.

    Returns
    -------
    bytes
        The complete file contents.

    Raises
    ------
    ValueError
        If ``bpm`` is not positive.
    ImportError
        If ``mido`` is not installed.
    """

    try:
        from mido import Message, MetaMessage, MidiFile, MidiTrack
    except ModuleNotFoundError as exc:
        raise ImportError(
            "mido is required to create MIDI files; install it with 'pip install mido'"
        ) from exc

    if bpm <= 0:
        raise ValueError("bpm must be a positive number")
    # Channel 9 is the General MIDI percussion channel.
    if len(extra_tracks) > 8:
        raise ValueError("at most 8 extra tracks are supported")

    mid = MidiFile(type=1, ticks_per_beat=TICKS_PER_BEAT)

    conductor = MidiTrack()
    conductor.append(
        MetaMessage(
            "time_signature",
            numerator=4,
            denominator=4,
            clocks_per_click=24,
            notated_32nd_notes_per_beat=8,
            time=0,
        )
    )
    conductor.append(MetaMessage("set_tempo", tempo=int(60_000_000 // bpm), time=0))
    conductor.append(MetaMessage("end_of_track", time=0))
    mid.tracks.append(conductor)

    for channel, part in enumerate([notes, *extra_tracks]):
        mid.tracks.append(_note_track(part, channel, Message, MetaMessage, MidiTrack))

    buffer = io.BytesIO()
    mid.save(file=buffer)
    return buffer.getvalue()


def melody_to_midi_notes(melody) -> List[MidiNote]:
    """Convert melody notes to :class:`MidiNote` records."""

    return [MidiNote(n.pitch, n.start, n.duration) for n in melody]


def chords_to_midi_notes(progression) -> List[MidiNote]:
    """Return every chord note, sounding for the whole chord span."""

    notes = []
    for chord, start, end in progression.spans():
        notes.extend(MidiNote(pitch, start, end - start) for pitch in chord.notes)
    return notes


def export_filename(kind: str, key: str, mode: str) -> str:
    """Return the download name for a ``"progression"`` or ``"melody"`` export.

    >>> export_filename("melody", "Db", "minor")
    'chordlab-melody-C#-minor.mid'
    """

    if kind not in ("progression", "melody"):
        raise ValueError(f"Unknown export kind: {kind}")
    return f"chordlab-{kind}-{spelling(resolve_key(key))}-{resolve_mode(mode)}.mid"


def save_midi(
    buffer: bytes,
    filename: str,
    mime_type: str = MIDI_MIME_TYPE,
    directory: Optional[Union[str, Path]] = None,
) -> Path:
    """Write ``buffer`` to ``filename`` and return the resulting path.

    ``directory`` defaults to ``$CHORDLAB_OUTPUT_DIR`` or the current
    working directory and is created when missing.  ``OSError`` from the
    filesystem propagates to the caller.
    """

    if directory is None:
        directory = os.environ.get(OUTPUT_DIR_ENV) or "."
    target_dir = Path(directory).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / filename
    path.write_bytes(bytes(buffer))
    logger.info("Saved %s (%s, %d bytes)", path, mime_type, len(buffer))
    return path


def export_progression(progression, bpm: float = DEFAULT_BPM,
                       directory: Optional[Union[str, Path]] = None) -> Path:
    """Encode ``progression`` and save it under its export filename."""

    data = encode_midi(chords_to_midi_notes(progression), bpm)
    name = export_filename("progression", progression.key, progression.mode)
    return save_midi(data, name, MIDI_MIME_TYPE, directory)


def export_melody(melody, key: str, mode: str, bpm: float = DEFAULT_BPM,
                  directory: Optional[Union[str, Path]] = None) -> Path:
    """Encode ``melody`` and save it under its export filename."""

    data = encode_midi(melody_to_midi_notes(melody), bpm)
    return save_midi(data, export_filename("melody", key, mode), MIDI_MIME_TYPE, directory)
