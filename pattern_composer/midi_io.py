"""Serialise performances as Standard MIDI Files.

Modification summary
--------------------
* Rendering works from a composed :class:`~pattern_composer.models.Performance`
  instead of a single melody line, writing a type-1 file with a conductor
  track, one track per performance track and a marker track for metadata.
* Times in seconds are converted to ticks with :func:`mido.second2tick` at
  the header tempo, so absolute positions never drift.
* Imports from ``mido`` are deferred so the package can load even when the
  optional dependency is missing.
* ``create_midi_file`` still creates the destination directory automatically
  and returns the in-memory ``MidiFile``.

The module never calls the composer itself except through
:func:`create_midi_from_spec`, a convenience wrapper for callers that hold
raw specification JSON and only want the encoded bytes.
"""

from __future__ import annotations

import io
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Tuple

if TYPE_CHECKING:
    # ``MidiFile`` is only needed for type checking to avoid requiring the
    # optional dependency at import time.
    from mido import MidiFile

from .composer import create_performance
from .models import NoteEvent, Performance
from .strategies import StrategyConfig

__all__ = [
    "DEFAULT_TICKS_PER_BEAT",
    "normalise_key_signature",
    "performance_to_midi",
    "create_midi_file",
    "midi_bytes",
    "create_midi_from_spec",
]

DEFAULT_TICKS_PER_BEAT = 480

# Key names accepted by the ``key_signature`` meta message.
_MIDI_KEYS = {
    "Cb", "Gb", "Db", "Ab", "Eb", "Bb", "F", "C", "G", "D", "A", "E", "B", "F#", "C#",
    "Abm", "Ebm", "Bbm", "Fm", "Cm", "Gm", "Dm", "Am", "Em", "Bm", "F#m", "C#m",
    "G#m", "D#m", "A#m",
}

_KEY_PATTERN = re.compile(
    r"^\s*([A-Ga-g])([#b]?)\s*(m|min|minor|maj|major)?\s*$", re.IGNORECASE
)


def _import_mido():
    # ``mido`` is imported lazily so code that only composes performances does
    # not need the MIDI dependency.  A clear error message guides users on how
    # to install the requirement.
    try:
        import mido
    except ModuleNotFoundError as exc:
        raise ImportError(
            "mido is required to create MIDI files; install it with 'pip install mido'"
        ) from exc
    return mido


def normalise_key_signature(key: str) -> str:
    """Return ``key`` spelled the way MIDI key signature events expect.

    ``"A minor"``, ``"am"`` and ``"Am"`` all become ``"Am"``; ``"Eb major"``
    becomes ``"Eb"``.

    Raises
    ------
    ValueError
        If ``key`` cannot be parsed or has no MIDI key signature.
    """

    match = _KEY_PATTERN.match(key or "")
    if not match:
        raise ValueError(f"Unrecognised key signature: {key!r}")
    letter, accidental, quality = match.groups()
    name = letter.upper() + accidental.lower()
    if quality and quality.lower() in ("m", "min", "minor"):
        name += "m"
    if name not in _MIDI_KEYS:
        raise ValueError(f"Key {key!r} has no MIDI key signature")
    return name


def _velocity_to_midi(velocity: float) -> int:
    return max(1, min(127, int(round(velocity * 127))))


def _note_messages(
    mido, notes: Tuple[NoteEvent, ...], channel: int, ticks_per_beat: int, tempo: int
) -> List[Tuple[int, int, Any]]:
    """Return ``(tick, order, message)`` triples for ``notes``.

    ``order`` puts note-offs before note-ons that share a tick so a repeated
    pitch is released before it is struck again.
    """

    events = []
    for note in notes:
        on_tick = int(mido.second2tick(note.time, ticks_per_beat, tempo))
        off_tick = int(mido.second2tick(note.end, ticks_per_beat, tempo))
        # Notes shorter than a tick still need a non-zero length.
        off_tick = max(off_tick, on_tick + 1)
        velocity = _velocity_to_midi(note.velocity)
        events.append(
            (on_tick, 1, mido.Message("note_on", note=note.pitch, velocity=velocity, channel=channel))
        )
        events.append(
            (off_tick, 0, mido.Message("note_off", note=note.pitch, velocity=velocity, channel=channel))
        )
    events.sort(key=lambda e: (e[0], e[1]))
    return events


def _append_absolute(track, events) -> None:
    """Append ``(tick, order, message)`` events converting to delta times."""

    last = 0
    for tick, _, msg in events:
        track.append(msg.copy(time=tick - last))
        last = tick


def performance_to_midi(
    performance: Performance, ticks_per_beat: int = DEFAULT_TICKS_PER_BEAT
) -> "MidiFile":
    """Build a type-1 ``MidiFile`` for ``performance``.

    Track layout:

    1. conductor track with tempo, time signature and (when valid) key
       signature;
    2. one track per :class:`~pattern_composer.models.PerformanceTrack`
       holding its name, a program change and the note events on its
       channel;
    3. a marker track when the performance carries metadata.

    An unusable key signature is logged and left out rather than failing the
    whole file.
    """

    mido = _import_mido()
    header = performance.header
    if header.tempo <= 0:
        raise ValueError("tempo must be a positive number")
    tempo = mido.bpm2tempo(header.tempo)

    mid = mido.MidiFile(type=1, ticks_per_beat=ticks_per_beat)

    conductor = mido.MidiTrack()
    mid.tracks.append(conductor)
    conductor.append(mido.MetaMessage("set_tempo", tempo=tempo, time=0))
    numerator, denominator = header.time_signature
    conductor.append(
        mido.MetaMessage("time_signature", numerator=numerator, denominator=denominator, time=0)
    )
    if header.key_signature:
        try:
            key = normalise_key_signature(header.key_signature)
        except ValueError as exc:
            logging.warning("Skipping key signature: %s", exc)
        else:
            conductor.append(mido.MetaMessage("key_signature", key=key, time=0))

    for perf_track in performance.tracks:
        track = mido.MidiTrack()
        mid.tracks.append(track)
        track.append(mido.MetaMessage("track_name", name=perf_track.name, time=0))
        track.append(
            mido.Message(
                "program_change",
                program=perf_track.instrument_program,
                channel=perf_track.channel,
                time=0,
            )
        )
        _append_absolute(
            track,
            _note_messages(mido, perf_track.notes, perf_track.channel, ticks_per_beat, tempo),
        )

    if performance.metadata_track is not None:
        meta = performance.metadata_track
        track = mido.MidiTrack()
        mid.tracks.append(track)
        track.append(mido.MetaMessage("track_name", name=meta.name, time=0))
        markers = [
            (
                int(mido.second2tick(marker.time, ticks_per_beat, tempo)),
                0,
                mido.MetaMessage("marker", text=marker.label),
            )
            for marker in meta.markers
        ]
        _append_absolute(track, markers)

    return mid


def create_midi_file(
    performance: Performance,
    output_file: str,
    ticks_per_beat: int = DEFAULT_TICKS_PER_BEAT,
) -> "MidiFile":
    """Write ``performance`` to ``output_file`` and return the ``MidiFile``.

    The parent directory of ``output_file`` is created automatically so
    callers may supply paths in a new folder without preparing it
    beforehand.
    """

    mid = performance_to_midi(performance, ticks_per_beat)

    # Ensure the destination directory exists so ``mid.save`` succeeds even
    # when the caller specifies a path in a new folder.
    Path(output_file).expanduser().parent.mkdir(parents=True, exist_ok=True)

    mid.save(output_file)
    logging.info("MIDI file saved to %s", output_file)
    return mid


def midi_bytes(performance: Performance, ticks_per_beat: int = DEFAULT_TICKS_PER_BEAT) -> bytes:
    """Return ``performance`` encoded as Standard MIDI File bytes."""

    buffer = io.BytesIO()
    performance_to_midi(performance, ticks_per_beat).save(file=buffer)
    return buffer.getvalue()


def create_midi_from_spec(
    raw: Mapping[str, Any],
    strategies: Optional[StrategyConfig] = None,
    strict: bool = False,
) -> bytes:
    """Validate and compose ``raw`` then return the encoded MIDI bytes.

    Raises
    ------
    SpecificationError
        If the specification fails validation.
    """

    result = create_performance(raw, strategies=strategies, strict=strict)
    return midi_bytes(result.performance)
