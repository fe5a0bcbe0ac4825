"""Turn a :class:`~pattern_composer.models.Specification` into a performance.

The composer walks every track and every section in order. For each section
it resolves the pattern, derives the section's scale and pitch pool, seeds a
fresh :class:`~pattern_composer.dynamics.SeededRandom` and runs the pattern.
Problems local to a section never stop the run:

* a missing or unknown ``pattern_type`` skips the section with a warning;
* a thematic pattern without a theme skips the section with a warning;
* a bad scale or pitch range is replaced by an empty one with a warning;
* an exception raised by the pattern is recorded as an error and the next
  section is processed.

Every diagnostic is both logged and returned inside the
:class:`~pattern_composer.models.CompositionResult`. Only an invalid
top-level specification (see :func:`create_performance`) prevents output.

Example
-------
>>> result = create_performance({
...     "tempo": 120,
...     "tracks": [{"sections": [
...         {"start_time": 0, "end_time": 4, "pattern_type": "foundation_pedal"}
...     ]}],
... })
>>> len(result.performance.tracks[0].notes)
1
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Tuple, Union

from .dynamics import SeededRandom, section_seed
from .models import (
    CompositionResult,
    Diagnostic,
    MetadataTrack,
    NoteEvent,
    PatternContext,
    Performance,
    PerformanceHeader,
    PerformanceTrack,
    Section,
    Specification,
    SpecificationError,
    parse_specification,
    unwrap_specification,
)
from .note_utils import get_pitches_in_range, get_scale
from .registry import get_pattern, is_thematic_pattern
from .strategies import DEFAULT_STRATEGIES, StrategyConfig, calculate_late_entry_start
from .validation import validate_spec

__all__ = ["compose", "create_performance"]


class _Diagnostics(list):
    """List of :class:`Diagnostic` that logs every entry as it is added."""

    def record(
        self,
        level: str,
        message: str,
        track_index: int,
        section_index: int,
        pattern_type: Optional[str] = None,
    ) -> None:
        where = f"track {track_index + 1} section {section_index + 1}"
        if level == "error":
            logging.error("%s: %s", where, message)
        else:
            logging.warning("%s: %s", where, message)
        self.append(Diagnostic(level, message, track_index, section_index, pattern_type))


def _section_scale(
    section: Section, diagnostics: _Diagnostics, track_index: int, section_index: int
) -> Tuple[int, ...]:
    if section.scale is None:
        return ()
    try:
        return tuple(get_scale(section.scale.root, section.scale.type))
    except (TypeError, ValueError) as exc:
        diagnostics.record(
            "warning",
            f"Failed to build scale: {exc}",
            track_index,
            section_index,
            section.pattern_type,
        )
        return ()


def _section_pitches(
    section: Section,
    scale: Tuple[int, ...],
    diagnostics: _Diagnostics,
    track_index: int,
    section_index: int,
) -> Tuple[int, ...]:
    if section.pitch_range is None:
        return ()
    try:
        return tuple(get_pitches_in_range(section.pitch_range, scale or None))
    except (TypeError, ValueError) as exc:
        diagnostics.record(
            "warning",
            f"Failed to get pitches in range: {exc}",
            track_index,
            section_index,
            section.pattern_type,
        )
        return ()


def _compose_section(
    spec: Specification,
    section: Section,
    strategies: StrategyConfig,
    diagnostics: _Diagnostics,
    track_index: int,
    section_index: int,
) -> List[NoteEvent]:
    pattern_type = section.pattern_type
    pattern = get_pattern(pattern_type)
    if pattern is None:
        diagnostics.record(
            "warning",
            f"Unknown pattern type: {pattern_type}" if pattern_type else "Missing pattern type",
            track_index,
            section_index,
            pattern_type,
        )
        return []

    if is_thematic_pattern(pattern_type) and spec.theme is None:
        diagnostics.record(
            "warning",
            f"Thematic pattern {pattern_type} requires a theme",
            track_index,
            section_index,
            pattern_type,
        )
        return []

    scale = _section_scale(section, diagnostics, track_index, section_index)
    pitches = _section_pitches(section, scale, diagnostics, track_index, section_index)
    ctx = PatternContext(
        section=section,
        tempo=spec.tempo,
        strategies=strategies,
        rng=SeededRandom(section_seed(calculate_late_entry_start(section))),
        theme=spec.theme,
        scale=scale,
        pitches=pitches,
    )

    try:
        return list(pattern(ctx))
    except Exception as exc:
        diagnostics.record(
            "error",
            f"Failed to apply pattern {pattern_type}: {exc}",
            track_index,
            section_index,
            pattern_type,
        )
        return []


def compose(
    spec: Union[Specification, Mapping[str, Any]],
    strategies: Optional[StrategyConfig] = None,
) -> CompositionResult:
    """Render ``spec`` into a :class:`Performance`.

    Parameters
    ----------
    spec:
        A parsed :class:`Specification` or a raw mapping, which is validated
        and parsed first.
    strategies:
        Tuning table; :data:`~pattern_composer.strategies.DEFAULT_STRATEGIES`
        when omitted.

    Returns
    -------
    CompositionResult
        The performance, with each track's notes in ascending time order
        (ties keep the order the pattern produced them), plus every
        diagnostic recorded on the way.

    Raises
    ------
    SpecificationError
        If a raw mapping fails validation.
    """

    if not isinstance(spec, Specification):
        spec = _validated_specification(spec, strict=False)
    if strategies is None:
        strategies = DEFAULT_STRATEGIES

    diagnostics = _Diagnostics()
    tracks = []
    for track_index, track in enumerate(spec.tracks):
        notes: List[NoteEvent] = []
        for section_index, section in enumerate(track.sections):
            notes.extend(
                _compose_section(spec, section, strategies, diagnostics, track_index, section_index)
            )
        # ``sort`` is stable so simultaneous notes keep their emission order.
        notes.sort(key=lambda note: note.time)
        tracks.append(
            PerformanceTrack(
                name=track.name,
                channel=track.channel,
                instrument_program=track.program,
                notes=tuple(notes),
            )
        )

    metadata_track = None
    if spec.metadata is not None:
        title = spec.metadata.title
        metadata_track = MetadataTrack(
            name=f"Recipe: {title}" if title else "Metadata",
            markers=tuple(sorted(spec.metadata.structure_markers, key=lambda m: m.time)),
        )

    performance = Performance(
        header=PerformanceHeader(
            tempo=spec.tempo,
            time_signature=spec.time_signature,
            key_signature=spec.key_signature,
        ),
        tracks=tuple(tracks),
        metadata_track=metadata_track,
    )
    total = sum(len(t.notes) for t in tracks)
    logging.info("Composed %d notes across %d tracks", total, len(tracks))
    return CompositionResult(performance=performance, diagnostics=tuple(diagnostics))


def create_performance(
    raw: Mapping[str, Any],
    strategies: Optional[StrategyConfig] = None,
    strict: bool = False,
) -> CompositionResult:
    """Validate, parse and compose a raw specification.

    Raises
    ------
    SpecificationError
        If :func:`~pattern_composer.validation.validate_spec` reports any
        problem. ``errors`` on the exception lists all of them.
    """

    return compose(_validated_specification(raw, strict=strict), strategies)


def _validated_specification(raw: Mapping[str, Any], strict: bool) -> Specification:
    raw = unwrap_specification(raw)
    result = validate_spec(raw, strict=strict)
    if not result.is_valid:
        logging.error("Invalid specification: %s", "; ".join(result.errors))
        raise SpecificationError(
            "Invalid specification: " + "; ".join(result.errors), result.errors
        )
    return parse_specification(raw, strict=strict)
