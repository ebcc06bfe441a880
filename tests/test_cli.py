"""Command line interface tests.

``run_cli`` reads ``sys.argv`` directly, so each test patches it and writes
its MIDI files into a temporary directory.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import mido
import pytest

# Ensure the repository root is on `sys.path` so `chordlab` can be imported regardless of where pytest is executed from.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chordlab import cli, playback  # noqa: E402
from chordlab.theory import CHORD_TYPES, KEYS  # noqa: E402


def _run(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["chordlab", *args])
    cli.run_cli()


def test_generates_progression_and_melody(monkeypatch, tmp_path, capsys):
    _run(monkeypatch, "--key", "Eb", "--mode", "minor", "--seed", "3", "--output-dir", str(tmp_path))
    assert (tmp_path / "chordlab-progression-D#-minor.mid").is_file()
    assert (tmp_path / "chordlab-melody-D#-minor.mid").is_file()
    out = capsys.readouterr().out
    assert out.startswith("D#/Eb minor:")
    assert "Melody:" in out


def test_no_melody(monkeypatch, tmp_path):
    _run(monkeypatch, "--no-melody", "--chords", "2", "--output-dir", str(tmp_path))
    assert [p.name for p in tmp_path.iterdir()] == ["chordlab-progression-C-major.mid"]


def test_output_dir_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("CHORDLAB_OUTPUT_DIR", str(tmp_path))
    _run(monkeypatch, "--rhythm", "arpeggiation", "--arpeggio", "outside-in", "--quantize", "quarter")
    assert (tmp_path / "chordlab-melody-C-major.mid").is_file()


def test_seed_makes_output_reproducible(monkeypatch, tmp_path):
    first, second = tmp_path / "a", tmp_path / "b"
    _run(monkeypatch, "--seed", "11", "--rhythm", "conjunct", "--output-dir", str(first))
    _run(monkeypatch, "--seed", "11", "--rhythm", "conjunct", "--output-dir", str(second))
    name = "chordlab-melody-C-major.mid"
    assert (first / name).read_bytes() == (second / name).read_bytes()


def test_list_keys(monkeypatch, capsys):
    _run(monkeypatch, "--list-keys")
    assert capsys.readouterr().out == "\n".join(KEYS) + "\n"


def test_list_chord_types(monkeypatch, capsys):
    _run(monkeypatch, "--list-chord-types")
    lines = capsys.readouterr().out.splitlines()
    assert [line.split("\t")[0] for line in lines] == [ct.id for ct in CHORD_TYPES]


@pytest.mark.parametrize(
    "args, message",
    [
        (["--bpm", "0"], "bpm must be a positive integer"),
        (["--volume", "101"], "volume must be between"),
        (["--complexity", "-1"], "complexity must be between"),
        (["--strict", "--key", "H"], "unknown key"),
        (["--strict", "--rhythm", "swing"], "unknown rhythm pattern"),
    ],
)
def test_invalid_options_exit(monkeypatch, tmp_path, caplog, args, message):
    with caplog.at_level(logging.ERROR):
        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch, *args, "--output-dir", str(tmp_path))
    assert exc.value.code == 1
    assert message in caplog.text.lower()


def test_lenient_selectors_still_generate(monkeypatch, tmp_path, caplog):
    with caplog.at_level(logging.WARNING):
        _run(monkeypatch, "--key", "H", "--rhythm", "swing", "--output-dir", str(tmp_path))
    assert (tmp_path / "chordlab-melody-C-major.mid").is_file()
    assert "Unknown key" in caplog.text


def test_unwritable_output_directory(monkeypatch, tmp_path, caplog):
    """Filesystem errors are logged and end the run with exit code 1."""

    def _fail(*_args, **_kwargs):
        raise OSError("permission denied")

    monkeypatch.setattr(cli, "export_progression", _fail)
    with caplog.at_level(logging.ERROR):
        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch, "--output-dir", str(tmp_path))
    assert exc.value.code == 1
    assert "could not write midi file" in caplog.text.lower()


def test_playback_failure_is_logged(monkeypatch, tmp_path, caplog):
    """A failing synthesizer does not affect the written files."""

    def _broken_sink(_settings):
        raise playback.MidiPlaybackError("no audio driver")

    monkeypatch.setattr(playback, "FluidSynthSink", _broken_sink)
    with caplog.at_level(logging.ERROR):
        _run(monkeypatch, "--play", "--output-dir", str(tmp_path))
    assert "no audio driver" in caplog.text
    assert (tmp_path / "chordlab-progression-C-major.mid").is_file()


def _recording_sink(played):
    class _Sink:
        def __init__(self, settings):
            played.append(("settings", settings.bpm, settings.volume))

        def __enter__(self):
            return self

        def __exit__(self, *exc_info):
            played.append(("closed",))

        def play_chord(self, pitches, seconds):
            played.append(("chord", seconds))

        def play_note(self, pitch, seconds):
            played.append(("note", seconds))

        def play_midi_file(self, path, seconds):
            tracks = mido.MidiFile(path).tracks[1:]
            notes = [sum(1 for m in track if m.type == "note_on") for track in tracks]
            played.append(("midi", notes, seconds))

        def set_volume(self, percent):
            pass

    return _Sink


def test_playback_receives_settings(monkeypatch, tmp_path):
    played = []
    monkeypatch.setattr(playback, "FluidSynthSink", _recording_sink(played))
    _run(monkeypatch, "--play", "--bpm", "60", "--volume", "40", "--no-melody", "--output-dir", str(tmp_path))
    assert played[0] == ("settings", 60, 40)
    assert played[-1] == ("closed",)
    midi = [event for event in played if event[0] == "midi"]
    assert len(midi) == 1
    # Four bars at 60 BPM, chords only.
    assert midi[0][2] == 16.0
    assert len(midi[0][1]) == 1


def test_play_mode_both_sounds_chords_with_melody(monkeypatch, tmp_path):
    played = []
    monkeypatch.setattr(playback, "FluidSynthSink", _recording_sink(played))
    _run(monkeypatch, "--play", "--seed", "5", "--output-dir", str(tmp_path))
    (event,) = [event for event in played if event[0] == "midi"]
    chord_notes, melody_notes = event[1]
    assert chord_notes >= 12
    assert melody_notes > 0
    assert not any(e[0] in ("chord", "note") for e in played)


@pytest.mark.parametrize("mode", ["chords", "melody"])
def test_play_mode_single_part(monkeypatch, tmp_path, mode):
    played = []
    monkeypatch.setattr(playback, "FluidSynthSink", _recording_sink(played))
    _run(monkeypatch, "--play", "--play-mode", mode, "--loop", "2", "--seed", "5", "--output-dir", str(tmp_path))
    midi = [event for event in played if event[0] == "midi"]
    assert len(midi) == 2
    assert len(midi[0][1]) == 1


def test_invalid_loop_count(monkeypatch, tmp_path, caplog):
    with caplog.at_level(logging.ERROR):
        with pytest.raises(SystemExit):
            _run(monkeypatch, "--play", "--loop", "0", "--output-dir", str(tmp_path))
    assert "loop count" in caplog.text.lower()
