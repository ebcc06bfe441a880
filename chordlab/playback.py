"""Audio preview of chords and melodies using FluidSynth.

The generators never play audio themselves.  They hand chords and notes to a
*playback sink*: any object implementing :class:`PlaybackSink`.  The
:class:`FluidSynthSink` shipped here synthesizes them in real time with the
``pyfluidsynth`` bindings, which need a SoundFont (SF2) file.

Example usage
-------------
>>> from chordlab.playback import FluidSynthSink, PlaybackSettings, play_preview
>>> settings = PlaybackSettings(bpm=100, volume=60)
>>> with FluidSynthSink(settings) as sink:
...     play_preview(progression, melody, sink, settings, mode="both")

:func:`play_preview` encodes the chords and the melody as two tracks of one
MIDI buffer and lets FluidSynth's player sound it, so both parts run in
sync.  :func:`play_progression` and :func:`play_melody` drive a sink chord
by chord or note by note instead.

The SoundFont path can be supplied via :attr:`PlaybackSettings.soundfont` or
the ``SOUND_FONT`` environment variable.  Otherwise the usual install
locations of FluidR3_GM and TimGM6mb are searched.

Timing helpers convert the package's musical units to seconds: one bar of
4/4 lasts ``4 * 60 / bpm`` seconds and one sixteenth a sixteenth of that.
"""

from __future__ import annotations

import logging
import math
import os
import sys
import time
from dataclasses import dataclass
from tempfile import NamedTemporaryFile
from typing import Callable, Iterable, List, Optional, Protocol, Sequence

from .midi_io import MidiNote, chords_to_midi_notes, encode_midi, melody_to_midi_notes

__all__ = [
    "MidiPlaybackError",
    "PlaybackSink",
    "PlaybackSettings",
    "FluidSynthSink",
    "volume_to_db",
    "seconds_per_bar",
    "bars_to_seconds",
    "sixteenths_to_seconds",
    "play_progression",
    "play_melody",
    "PLAY_MODES",
    "preview_parts",
    "play_preview",
]


logger = logging.getLogger(__name__)

DEFAULT_VOLUME = 75
PREVIEW_VELOCITY = 100
PLAY_MODES = ("both", "chords", "melody")


class MidiPlaybackError(RuntimeError):
    """Raised when audio playback fails."""


class PlaybackSink(Protocol):
    """Anything able to sound notes for a given number of seconds."""

    def play_note(self, pitch: int, seconds: float) -> None:
        ...

    def play_chord(self, pitches: Sequence[int], seconds: float) -> None:
        ...

    def set_volume(self, percent: float) -> None:
        ...

    def play_midi_file(self, path: str, seconds: float) -> None:
        ...


@dataclass
class PlaybackSettings:
    """Caller-owned audio context.

    ``volume`` is a percentage (0 mutes).  ``soundfont`` overrides the
    ``SOUND_FONT`` environment variable.
    """

    bpm: float = 120
    volume: float = DEFAULT_VOLUME
    soundfont: Optional[str] = None


def volume_to_db(percent: float) -> float:
    """Map a 0-100 volume to decibels (``-60`` to ``0``; ``0`` is ``-inf``)."""

    percent = max(0.0, min(100.0, float(percent)))
    if percent == 0:
        return -math.inf
    return -60 + percent / 100 * 60


def seconds_per_bar(bpm: float) -> float:
    if bpm <= 0:
        raise ValueError("bpm must be positive")
    return 4 * 60 / bpm


def bars_to_seconds(bars: float, bpm: float) -> float:
    return bars * seconds_per_bar(bpm)


def sixteenths_to_seconds(sixteenths: float, bpm: float) -> float:
    return sixteenths / 16 * seconds_per_bar(bpm)


SOUNDFONT_ENV = "SOUND_FONT"

# Searched in order when neither the settings nor $SOUND_FONT name a file.
DEFAULT_SOUNDFONTS = {
    "win": [r"C:\Windows\System32\drivers\gm.dls"],
    "darwin": [
        "/Library/Audio/Sounds/Banks/FluidR3_GM.sf2",
        "~/Library/Audio/Sounds/Banks/FluidR3_GM.sf2",
    ],
    "linux": [
        "/usr/share/sounds/sf2/FluidR3_GM.sf2",
        "/usr/share/sounds/sf2/TimGM6mb.sf2",
        "/usr/share/soundfonts/default.sf2",
    ],
}


def _platform_soundfonts() -> List[str]:
    if sys.platform.startswith("win"):
        return DEFAULT_SOUNDFONTS["win"]
    return DEFAULT_SOUNDFONTS.get(sys.platform, DEFAULT_SOUNDFONTS["linux"])


def _resolve_soundfont(settings: PlaybackSettings) -> str:
    """Return the SoundFont file used for ``settings``.

    A path named by ``settings.soundfont`` or ``$SOUND_FONT`` must exist;
    it is never silently replaced by a system font.  Without one, the first
    existing entry of :data:`DEFAULT_SOUNDFONTS` for this platform is used.

    Raises
    ------
    MidiPlaybackError
        If the named file is missing or no system font is installed.
    """

    named = settings.soundfont or os.environ.get(SOUNDFONT_ENV)
    if named:
        path = os.path.expanduser(os.path.expandvars(named))
        if not os.path.isfile(path):
            raise MidiPlaybackError(
                f"SoundFont {path} does not exist; check --soundfont or ${SOUNDFONT_ENV}"
            )
        return path

    tried = [os.path.expanduser(p) for p in _platform_soundfonts()]
    for path in tried:
        if os.path.isfile(path):
            logger.debug("Using system SoundFont %s", path)
            return path
    raise MidiPlaybackError(
        f"No SoundFont found (tried {', '.join(tried)}); "
        f"pass --soundfont or set ${SOUNDFONT_ENV}"
    )


class FluidSynthSink:
    """Playback sink rendering notes through a FluidSynth synthesizer.

    The synthesizer is started on construction and released by
    :meth:`close` (or on leaving a ``with`` block).  ``sleep`` is called to
    hold notes and can be replaced in tests.
    """

    def __init__(self, settings: Optional[PlaybackSettings] = None,
                 sleep: Callable[[float], None] = time.sleep) -> None:
        try:
            import fluidsynth  # type: ignore
        except FileNotFoundError as exc:
            raise MidiPlaybackError(
                "fluidsynth not installed. Install the FluidSynth library and "
                "pyFluidSynth package."
            ) from exc
        except ImportError as exc:
            raise MidiPlaybackError("PyFluidSynth is required for playback") from exc

        self.settings = settings or PlaybackSettings()
        self._sleep = sleep
        sf_path = _resolve_soundfont(self.settings)

        try:
            self._synth = fluidsynth.Synth()
        except FileNotFoundError as exc:
            raise MidiPlaybackError(
                "fluidsynth not installed. Install the FluidSynth library and "
                "pyFluidSynth package."
            ) from exc
        try:
            self._synth.start()
        except Exception as exc:
            self._synth.delete()
            raise MidiPlaybackError(f"Could not start audio driver: {exc}") from exc

        try:
            sfid = self._synth.sfload(sf_path)
            self._synth.program_select(0, sfid, 0, 0)
        except Exception as exc:
            self._synth.delete()
            raise MidiPlaybackError(f"Could not load SoundFont: {exc}") from exc
        self.set_volume(self.settings.volume)

    def __enter__(self) -> "FluidSynthSink":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def set_volume(self, percent: float) -> None:
        db = volume_to_db(percent)
        gain = 0.0 if db == -math.inf else 10 ** (db / 20)
        self.settings.volume = percent
        self._synth.setting("synth.gain", gain)
        logger.debug("Volume %s%% (%.1f dB, gain %.3f)", percent, db, gain)

    def play_chord(self, pitches: Sequence[int], seconds: float) -> None:
        try:
            for pitch in pitches:
                self._synth.noteon(0, pitch, PREVIEW_VELOCITY)
            self._sleep(seconds)
            for pitch in pitches:
                self._synth.noteoff(0, pitch)
        except Exception as exc:
            raise MidiPlaybackError(f"Playback failed: {exc}") from exc

    def play_note(self, pitch: int, seconds: float) -> None:
        self.play_chord([pitch], seconds)

    def play_midi_file(self, path: str, seconds: float) -> None:
        """Play the MIDI file at ``path`` and stop it after ``seconds``."""

        try:
            self._synth.play_midi_file(path)
            self._sleep(seconds)
            self._synth.play_midi_stop()
        except Exception as exc:
            raise MidiPlaybackError(f"Playback failed: {exc}") from exc

    def close(self) -> None:
        if self._synth is not None:
            self._synth.delete()
            self._synth = None


def play_progression(progression, sink: PlaybackSink,
                     settings: Optional[PlaybackSettings] = None) -> None:
    """Sound every chord of ``progression`` for its duration."""

    settings = settings or PlaybackSettings()
    for chord in progression:
        sink.play_chord(list(chord.notes), bars_to_seconds(chord.duration, settings.bpm))


def play_melody(melody: Iterable, sink: PlaybackSink,
                settings: Optional[PlaybackSettings] = None,
                sleep: Callable[[float], None] = time.sleep) -> None:
    """Sound ``melody`` note by note, waiting out the rests between notes.

    Overlapping notes are played back to back.
    """

    settings = settings or PlaybackSettings()
    position = 0
    for note in sorted(melody, key=lambda n: n.start):
        if note.start > position:
            sleep(sixteenths_to_seconds(note.start - position, settings.bpm))
        sink.play_note(note.pitch, sixteenths_to_seconds(note.duration, settings.bpm))
        position = max(position, note.start + note.duration)


def preview_parts(progression, melody: Iterable = (), mode: str = "both") -> List[List[MidiNote]]:
    """Return the note lists sounded for ``mode``, chords before melody.

    Empty parts are left out, so ``"melody"`` without a melody yields ``[]``.
    """

    if mode not in PLAY_MODES:
        raise ValueError(f"Unknown play mode: {mode!r}")
    parts = []
    if mode in ("both", "chords"):
        parts.append(chords_to_midi_notes(progression))
    if mode in ("both", "melody"):
        parts.append(melody_to_midi_notes(melody))
    return [part for part in parts if part]


def play_preview(progression, melody: Iterable, sink, settings: Optional[PlaybackSettings] = None,
                 mode: str = "both", loops: int = 1) -> None:
    """Sound the progression and melody together.

    The parts chosen by ``mode`` are encoded as tracks of one MIDI buffer so
    chords and melody start in sync.  The buffer is written to a temporary
    file, handed to ``sink.play_midi_file`` ``loops`` times and removed.
    """

    settings = settings or PlaybackSettings()
    if loops < 1:
        raise ValueError("loops must be at least 1")

    parts = preview_parts(progression, melody, mode)
    if not parts:
        logger.warning("Nothing to play in %r mode", mode)
        return
    data = encode_midi(parts[0], settings.bpm, extra_tracks=parts[1:])
    end = max(note.start + note.duration for part in parts for note in part)
    seconds = sixteenths_to_seconds(end, settings.bpm)

    tmp = NamedTemporaryFile(suffix=".mid", delete=False)
    tmp_path = tmp.name
    try:
        tmp.write(data)
        tmp.close()
        for _ in range(loops):
            sink.play_midi_file(tmp_path, seconds)
    finally:
        tmp.close()
        try:
            os.remove(tmp_path)
        except OSError as exc:
            logger.warning("Could not remove temporary file %s: %s", tmp_path, exc)
