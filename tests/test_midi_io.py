"""Unit tests for ``midi_io``'s behaviour and error handling.

The suite renders composed performances with the real ``mido`` library and
inspects the resulting ``MidiFile`` objects:

* the conductor track carries tempo, meter and key signature;
* every performance track becomes a named MIDI track with a program change
  and correctly ordered note events;
* a helpful ``ImportError`` is raised when ``mido`` is absent. ``monkeypatch``
  simulates the module being unavailable so the error path can be exercised
  without manipulating the environment.
"""

from __future__ import annotations

import builtins
import io
import logging
import sys
from pathlib import Path

import mido
import pytest

# Ensure the package is importable regardless of the current working directory
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from pattern_composer import midi_io  # noqa: E402  # isort:skip
from pattern_composer import models  # noqa: E402  # isort:skip
from pattern_composer.composer import create_performance  # noqa: E402  # isort:skip

PEDAL_SPEC = {
    "tempo": 120,
    "time_signature": [3, 4],
    "key_signature": "A minor",
    "metadata": {
        "recipe_name": "Soup",
        "structure_markers": [{"label": "intro", "time": 0}, {"label": "outro", "time": 2}],
    },
    "tracks": [
        {
            "component_source": "Bass",
            "track_number": 2,
            "midi_program": 33,
            "sections": [
                {
                    "start_time": 0,
                    "end_time": 4,
                    "pattern_type": "foundation_pedal",
                    "velocity_avg": 80,
                    "pitch_range": {"low": "C2", "high": "C3"},
                }
            ],
        }
    ],
}


def make_performance(notes, key=None):
    return models.Performance(
        header=models.PerformanceHeader(tempo=120, key_signature=key),
        tracks=(models.PerformanceTrack("Lead", 0, 0, tuple(notes)),),
    )


def messages(track, kind):
    return [msg for msg in track if msg.type == kind]


def test_create_midi_file_returns_midifile(tmp_path):
    """The written ``MidiFile`` is returned and parent folders are created."""

    out = tmp_path / "nested" / "song.mid"
    performance = create_performance(PEDAL_SPEC).performance
    mid = midi_io.create_midi_file(performance, str(out))

    assert isinstance(mid, mido.MidiFile)
    assert out.exists()
    assert len(mido.MidiFile(str(out)).tracks) == len(mid.tracks)


def test_conductor_track():
    """Tempo, time signature and normalised key go in the first track."""

    mid = midi_io.performance_to_midi(create_performance(PEDAL_SPEC).performance)
    conductor = mid.tracks[0]
    assert messages(conductor, "set_tempo")[0].tempo == mido.bpm2tempo(120)
    signature = messages(conductor, "time_signature")[0]
    assert (signature.numerator, signature.denominator) == (3, 4)
    assert messages(conductor, "key_signature")[0].key == "Am"


def test_note_track_contents():
    """The pedal note is written on the track's channel with its program."""

    mid = midi_io.performance_to_midi(create_performance(PEDAL_SPEC).performance)
    assert mid.type == 1
    track = mid.tracks[1]
    assert messages(track, "track_name")[0].name == "Bass"
    program = messages(track, "program_change")[0]
    assert (program.program, program.channel) == (33, 1)

    on = messages(track, "note_on")[0]
    off = messages(track, "note_off")[0]
    assert on.note == off.note == 39
    assert on.velocity == 55
    assert on.channel == 1
    # 3.95 seconds at 120 BPM and 480 ticks per beat.
    assert on.time + off.time == 3792


def test_metadata_track_markers():
    """Structure markers become marker events at their tick positions."""

    mid = midi_io.performance_to_midi(create_performance(PEDAL_SPEC).performance)
    meta = mid.tracks[-1]
    assert messages(meta, "track_name")[0].name == "Recipe: Soup"
    markers = messages(meta, "marker")
    assert [m.text for m in markers] == ["intro", "outro"]
    assert markers[1].time == 1920


def test_repeated_pitch_is_released_before_restrike():
    """A note-off sharing a tick with a note-on of the same pitch comes first."""

    notes = [models.NoteEvent(60, 0.0, 0.5, 0.5), models.NoteEvent(60, 0.5, 0.5, 0.5)]
    track = midi_io.performance_to_midi(make_performance(notes)).tracks[1]
    kinds = [msg.type for msg in track if msg.type in ("note_on", "note_off")]
    assert kinds == ["note_on", "note_off", "note_on", "note_off"]


def test_overlapping_notes_use_absolute_times():
    """Delta times add up to each event's absolute tick."""

    notes = [models.NoteEvent(60, 0.0, 1.0, 0.5), models.NoteEvent(64, 0.25, 0.25, 0.5)]
    track = midi_io.performance_to_midi(make_performance(notes)).tracks[1]
    tick = 0
    seen = []
    for msg in track:
        tick += msg.time
        if msg.type in ("note_on", "note_off"):
            seen.append((msg.type, msg.note, tick))
    assert seen == [
        ("note_on", 60, 0),
        ("note_on", 64, 240),
        ("note_off", 64, 480),
        ("note_off", 60, 960),
    ]


def test_invalid_key_signature_is_skipped(caplog):
    """Unknown keys are logged and left out."""

    with caplog.at_level(logging.WARNING):
        mid = midi_io.performance_to_midi(make_performance([], key="H major"))
    assert messages(mid.tracks[0], "key_signature") == []
    assert "Skipping key signature" in caplog.text


@pytest.mark.parametrize(
    "key, expected",
    [("C", "C"), ("a minor", "Am"), ("Eb major", "Eb"), ("F#m", "F#m"), ("bb", "Bb")],
)
def test_normalise_key_signature(key, expected):
    """Common spellings map onto MIDI key names."""

    assert midi_io.normalise_key_signature(key) == expected


def test_normalise_key_signature_rejects_unknown():
    """Keys without a MIDI signature raise ``ValueError``."""

    with pytest.raises(ValueError):
        midi_io.normalise_key_signature("Db minor")


def test_midi_bytes_round_trip():
    """Encoded bytes parse back into the same track layout."""

    performance = create_performance(PEDAL_SPEC).performance
    data = midi_io.midi_bytes(performance)
    assert data.startswith(b"MThd")
    parsed = mido.MidiFile(file=io.BytesIO(data))
    assert len(parsed.tracks) == 3


def test_create_midi_from_spec():
    """Raw specifications go straight to bytes; invalid ones raise."""

    assert midi_io.create_midi_from_spec(PEDAL_SPEC).startswith(b"MThd")
    with pytest.raises(models.SpecificationError):
        midi_io.create_midi_from_spec({"tempo": 120, "tracks": []})


def test_create_midi_file_missing_mido(monkeypatch, tmp_path):
    """Absent ``mido`` should raise ``ImportError`` with install guidance.

    The test removes ``mido`` from ``sys.modules`` and patches ``__import__`` to
    raise ``ModuleNotFoundError`` when ``mido`` is requested.
    """

    monkeypatch.delitem(sys.modules, "mido", raising=False)

    original_import = builtins.__import__

    def fake_import(name, globals=None, locals=None, fromlist=(), level=0):
        if name == "mido":
            raise ModuleNotFoundError("No module named 'mido'")
        return original_import(name, globals, locals, fromlist, level)

    monkeypatch.setattr(builtins, "__import__", fake_import)

    with pytest.raises(ImportError, match="pip install mido"):
        midi_io.create_midi_file(make_performance([]), str(tmp_path / "song.mid"))


def test_fractional_tempo_reaches_conductor_track():
    """A 90.5 BPM header is written without truncation."""
    spec = dict(PEDAL_SPEC, tempo=90.5)
    performance = create_performance(spec).performance
    conductor = midi_io.performance_to_midi(performance).tracks[0]
    assert messages(conductor, "set_tempo")[0].tempo == mido.bpm2tempo(90.5)
