"""Pitch and scale helpers used by every composition pattern.

This module groups the conversions between note names and MIDI numbers
together with the small amount of music theory the patterns rely on: scale
construction, pitch-range filtering, scale-relative stepping, melodic contour
and triad building.  None of the helpers keep state, so they can be shared by
the composer and the tests without setup.

Example
-------
>>> from pattern_composer.note_utils import note_to_midi, get_scale
>>> note_to_midi("C4")
60
>>> get_scale("C4", "major")[:3]
[36, 38, 40]
"""

# Modification Summary
# ---------------------
# * ``note_to_midi`` accepts plain integers (and floats) in addition to note
#   names so section ranges can mix both spellings. Numeric input is
#   range-checked before it is floored.
# * Added scale construction, range filtering, scale stepping, contour and
#   chord helpers used by the pattern modules.
# * ``get_interval`` works on integers as well as note names.

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Dict, List, Mapping, Optional, Sequence, Union

from . import NOTE_TO_SEMITONE, NOTES

__all__ = [
    "SCALE_INTERVALS",
    "note_to_midi",
    "midi_to_note",
    "get_interval",
    "get_scale",
    "get_pitches_in_range",
    "get_scale_step",
    "get_contour_direction",
    "build_chord",
]

NoteLike = Union[str, int, float]

# Semitone offsets from the root for every supported scale type. Unknown
# names fall back to ``major`` inside :func:`get_scale`.
SCALE_INTERVALS: Dict[str, List[int]] = {
    "major": [0, 2, 4, 5, 7, 9, 11],
    "minor": [0, 2, 3, 5, 7, 8, 10],
    "natural_minor": [0, 2, 3, 5, 7, 8, 10],
    "harmonic_minor": [0, 2, 3, 5, 7, 8, 11],
    "melodic_minor": [0, 2, 3, 5, 7, 9, 11],
    "pentatonic": [0, 2, 4, 7, 9],
    "pentatonic_minor": [0, 3, 5, 7, 10],
    "chromatic": [0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11],
    "dorian": [0, 2, 3, 5, 7, 9, 10],
    "phrygian": [0, 1, 3, 5, 7, 8, 10],
    "lydian": [0, 2, 4, 6, 7, 9, 11],
    "mixolydian": [0, 2, 4, 5, 7, 9, 10],
    "locrian": [0, 1, 3, 5, 6, 8, 10],
}

# Semitone offsets used by ``build_chord`` when the root is not a member of
# the supplied scale.
_FALLBACK_THIRD = 4
_FALLBACK_FIFTH = 7
_FALLBACK_SEVENTH = 11


@lru_cache(maxsize=None)
def note_to_midi(note: NoteLike) -> int:
    """Convert a note such as ``C#4`` (or a MIDI number) into a MIDI number.

    Parameters
    ----------
    note:
        Either a note name including octave or a number already expressed as
        a MIDI pitch. Octaves may be negative or contain multiple digits.

    Returns
    -------
    int
        MIDI note number in the range ``0-127``. ``C4`` maps to ``60``.

    Raises
    ------
    ValueError
        If ``note`` is not properly formatted or if the computed MIDI value
        falls outside the allowed ``0-127`` range.
    """

    # Numbers pass straight through once they are known to be in range.
    # ``bool`` is an ``int`` subclass but never a meaningful pitch.
    if isinstance(note, (int, float)) and not isinstance(note, bool):
        if not 0 <= note <= 127:
            logging.error("MIDI note number out of range: %s", note)
            raise ValueError(f"MIDI note number must be 0-127, got {note}")
        return int(note // 1)

    if not isinstance(note, str):
        logging.error("Invalid note name: %r", note)
        raise ValueError(f"Invalid note name: {note!r}")

    # A letter A–G followed by an optional accidental and a signed integer
    # octave. Examples: ``C#4``, ``Gb9``, ``C-1``.
    match = re.fullmatch(r"([A-Ga-g][#b]?)(-?\d+)", note)
    if not match:
        logging.error("Invalid note format: %s", note)
        raise ValueError(
            f"Invalid note format: {note}. Expected format like 'C4', 'F#3', 'Bb5'"
        )

    note_name, octave_str = match.groups()
    # MIDI's octave numbers are offset by one relative to scientific pitch
    # notation, hence the ``+ 1`` adjustment.
    octave = int(octave_str) + 1
    note_name = note_name[0].upper() + note_name[1:]

    try:
        note_idx = NOTE_TO_SEMITONE[note_name]
    except KeyError:
        logging.error("Unknown note name: %s", note_name)
        raise ValueError(f"Unknown note name: {note_name}")

    midi_val = note_idx + (octave * 12)

    #   * ``C-1`` → 0 (valid lower boundary)
    #   * ``G9``  → 127 (valid upper boundary)
    #   * ``C-2`` → -12 and ``C10`` → 132 raise
    if not 0 <= midi_val <= 127:
        logging.error("MIDI value out of range: %s -> %d", note, midi_val)
        raise ValueError(
            f"Computed MIDI value {midi_val} out of range 0-127 for note {note}"
        )

    return midi_val


def midi_to_note(midi_note: int) -> str:
    """Convert a MIDI number into a note name using sharps.

    Examples
    --------
    >>> midi_to_note(60)
    'C4'
    >>> midi_to_note(61)
    'C#4'
    >>> midi_to_note(-1)
    Traceback (most recent call last):
        ...
    ValueError: MIDI note -1 out of range 0-127
    """

    if not 0 <= midi_note <= 127:
        raise ValueError(f"MIDI note {midi_note} out of range 0-127")

    octave = midi_note // 12 - 1
    name = NOTES[midi_note % 12]
    return f"{name}{octave}"


def get_interval(note1: NoteLike, note2: NoteLike) -> int:
    """Return the interval between ``note1`` and ``note2`` in semitones."""

    return abs(note_to_midi(note1) - note_to_midi(note2))


def get_scale(root: NoteLike, scale_type: str = "major", octaves: int = 4) -> List[int]:
    """Return every pitch of ``scale_type`` built on ``root``.

    The scale is enumerated across a window of octaves centred on the
    root's own octave: it starts ``octaves // 2`` octaves below and spans
    ``octaves + 1`` octaves in total. Pitches outside ``0-127`` are clipped.

    Parameters
    ----------
    root:
        Note name or MIDI number of the tonic.
    scale_type:
        Key into :data:`SCALE_INTERVALS`. Unknown names fall back to major.
    octaves:
        Width of the octave window.

    Returns
    -------
    List[int]
        Ascending, de-duplicated MIDI pitches.
    """

    root_midi = note_to_midi(root)
    intervals = SCALE_INTERVALS.get(scale_type, SCALE_INTERVALS["major"])
    root_pitch_class = root_midi % 12

    start_octave = root_midi // 12 - octaves // 2
    end_octave = start_octave + octaves

    pitches = set()
    for octave in range(start_octave, end_octave + 1):
        octave_base = octave * 12
        for interval in intervals:
            pitch = octave_base + root_pitch_class + interval
            if 0 <= pitch <= 127:
                pitches.add(pitch)
    return sorted(pitches)


def get_pitches_in_range(pitch_range, scale: Optional[Sequence[int]] = None) -> List[int]:
    """Return the pitches between ``pitch_range.low`` and ``pitch_range.high``.

    ``pitch_range`` may be a :class:`~pattern_composer.models.PitchRange` or
    any mapping with ``low`` and ``high`` keys. When ``scale`` is non-empty
    only its members inside the bounds are returned; otherwise every
    chromatic pitch in the bounds is.

    Raises
    ------
    ValueError
        If either bound is malformed or ``low`` is above ``high``.
    """

    if isinstance(pitch_range, Mapping):
        low, high = pitch_range.get("low"), pitch_range.get("high")
    else:
        low, high = pitch_range.low, pitch_range.high

    low_midi = note_to_midi(low)
    high_midi = note_to_midi(high)
    if low_midi > high_midi:
        raise ValueError(f"Invalid range: low ({low}) is higher than high ({high})")

    if scale:
        return [p for p in scale if low_midi <= p <= high_midi]
    return list(range(low_midi, high_midi + 1))


def get_scale_step(current: int, scale: Sequence[int], steps: int) -> int:
    """Move ``steps`` positions through ``scale`` starting at ``current``.

    When ``current`` is not a scale member the nearest one is used as the
    starting point (the lower pitch wins a tie). The result is clamped to the
    first or last scale entry; there is no wrap-around.
    """

    if not scale:
        raise ValueError("scale must not be empty")

    try:
        index = list(scale).index(current)
    except ValueError:
        index = min(range(len(scale)), key=lambda i: abs(scale[i] - current))

    new_index = index + steps
    if new_index < 0:
        return scale[0]
    if new_index >= len(scale):
        return scale[-1]
    return scale[new_index]


def get_contour_direction(notes: Sequence[int]) -> int:
    """Return ``1``, ``-1`` or ``0`` for a rising, falling or flat melody."""

    if len(notes) < 2:
        return 0
    movement = notes[-1] - notes[0]
    if movement > 0:
        return 1
    if movement < 0:
        return -1
    return 0


def build_chord(root: int, scale: Sequence[int], chord_type: str = "triad") -> List[int]:
    """Build a triad (or seventh chord) on ``root``.

    If ``root`` belongs to ``scale`` the chord stacks diatonic thirds by
    taking the scale entries two, four (and six) positions above it; entries
    past the end of the scale are omitted. Otherwise a major-sounding chord
    is approximated with fixed semitone offsets.
    """

    try:
        root_index = list(scale).index(root)
    except ValueError:
        chord = [root, root + _FALLBACK_THIRD, root + _FALLBACK_FIFTH]
        if chord_type == "seventh":
            chord.append(root + _FALLBACK_SEVENTH)
        return chord

    offsets = [2, 4, 6] if chord_type == "seventh" else [2, 4]
    chord = [scale[root_index]]
    for offset in offsets:
        if root_index + offset < len(scale):
            chord.append(scale[root_index + offset])
    return chord
