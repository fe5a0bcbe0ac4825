"""Pattern Composer library.

This package turns a structured musical specification into a concrete
performance: per-track lists of timed, pitched, velocity-scaled note events
plus the header metadata needed to serialise them as a MIDI file.  A typical
workflow is to call :func:`create_performance` with a decoded JSON
specification and hand the resulting :class:`Performance` to
:func:`create_midi_file`.

Underlying Algorithm
--------------------
A specification lists tracks; each track is divided into timed *sections*
tagged with a pattern name.  For every section the composer derives a scale
and a pitch pool, looks the pattern up in the registry and runs it.  Thematic
patterns transform a short reference melody (statement, fragmentation,
extension, inversion, retrograde) while procedural patterns generate
accompaniment from scratch (arpeggios, counterpoint, pads, pedals, breathing
lines, percussion loops).  Every tunable number lives in a single immutable
:class:`StrategyConfig` and randomness comes from a seeded generator derived
from each section's start time, so identical input always yields identical
output::

    result = create_performance(spec)
    for track in result.performance.tracks:
        for note in track.notes:
            print(note.pitch, note.time, note.duration, note.velocity)

Failures inside a single section never abort the whole piece.  They are
collected as :class:`Diagnostic` entries on the returned
:class:`CompositionResult` and logged through :mod:`logging`.
"""

__version__ = "0.1.0"

# ---------------------------------------------------------------
# Modification Summary
# ---------------------------------------------------------------
# * Note tables moved to the package root so ``note_utils`` and the pattern
#   modules share a single definition.
# * ``create_performance`` validates before parsing so structural errors are
#   reported together instead of one at a time.
# * Strategy tuning is passed explicitly to ``compose`` instead of being read
#   from a module global, which lets tests swap in alternate tunings.
# * Pattern names are a closed ``PatternType`` enum; short aliases such as
#   ``statement`` resolve to their canonical ``thematic_*`` names.
# ---------------------------------------------------------------

from typing import Dict, List

# NOTE_TO_SEMITONE maps both sharp and flat spellings to the correct
# semitone offset within an octave so that ``note_to_midi`` can handle
# enharmonic notes (e.g. ``Db`` and ``C#``).
NOTE_TO_SEMITONE: Dict[str, int] = {
    "C": 0,
    "B#": 0,
    "C#": 1,
    "Db": 1,
    "D": 2,
    "D#": 3,
    "Eb": 3,
    "E": 4,
    "Fb": 4,
    "E#": 5,
    "F": 5,
    "F#": 6,
    "Gb": 6,
    "G": 7,
    "G#": 8,
    "Ab": 8,
    "A": 9,
    "A#": 10,
    "Bb": 10,
    "B": 11,
    "Cb": 11,
}

# Sharp spellings used whenever a pitch is turned back into a name.
NOTES: List[str] = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

from .note_utils import (  # noqa: E402
    SCALE_INTERVALS,
    build_chord,
    get_contour_direction,
    get_interval,
    get_pitches_in_range,
    get_scale,
    get_scale_step,
    midi_to_note,
    note_to_midi,
)
from .strategies import (  # noqa: E402
    DEFAULT_STRATEGIES,
    StrategyConfig,
    apply_velocity_modifier,
    calculate_late_entry_start,
    humanize_value,
    load_strategies,
    strategies_from_dict,
)
from .dynamics import SeededRandom, section_seed  # noqa: E402
from .models import (  # noqa: E402
    CompositionResult,
    Diagnostic,
    NoteEvent,
    PatternError,
    Performance,
    PerformanceTrack,
    Section,
    Specification,
    SpecificationError,
    Theme,
    parse_specification,
)
from .registry import (  # noqa: E402
    PatternFamily,
    PatternType,
    get_all_pattern_names,
    get_pattern,
    is_supporting_pattern,
    is_thematic_pattern,
    is_valid_pattern,
)
from .validation import ValidationResult, validate_spec, validate_time_signature  # noqa: E402
from .composer import compose, create_performance  # noqa: E402
from .midi_io import (  # noqa: E402
    create_midi_file,
    create_midi_from_spec,
    midi_bytes,
    performance_to_midi,
)
