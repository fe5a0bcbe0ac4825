"""Data model for specifications and the performances built from them.

Input side
    :class:`Specification` → :class:`Track` → :class:`Section`, plus the
    optional :class:`Theme` and :class:`Metadata`. Use
    :func:`parse_specification` to build one from decoded JSON.

Output side
    :class:`Performance` holds a :class:`PerformanceHeader`, one
    :class:`PerformanceTrack` of :class:`NoteEvent` objects per input track
    and an optional :class:`MetadataTrack`. :class:`CompositionResult` pairs
    the performance with the :class:`Diagnostic` entries collected while it
    was built.

All classes are frozen dataclasses; nothing is mutated once constructed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .strategies import calculate_late_entry_start

__all__ = [
    "SpecificationError",
    "PatternError",
    "Theme",
    "ScaleSpec",
    "PitchRange",
    "Section",
    "Track",
    "StructureMarker",
    "Metadata",
    "Specification",
    "NoteEvent",
    "PerformanceHeader",
    "PerformanceTrack",
    "MetadataTrack",
    "Performance",
    "Diagnostic",
    "CompositionResult",
    "PatternContext",
    "parse_specification",
    "unwrap_specification",
]

NoteLike = Union[str, int]

DEFAULT_TEMPO = 120


class SpecificationError(ValueError):
    """Raised when a specification is structurally invalid."""

    def __init__(self, message: str, errors: Optional[Sequence[str]] = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [message])


class PatternError(ValueError):
    """Raised by a pattern whose preconditions are not met."""


@dataclass(frozen=True)
class Theme:
    """Reference melody that thematic patterns transform."""

    notes: Tuple[int, ...]
    rhythm: Tuple[float, ...]
    description: Optional[str] = None


@dataclass(frozen=True)
class ScaleSpec:
    root: NoteLike
    type: str = "major"


@dataclass(frozen=True)
class PitchRange:
    low: NoteLike
    high: NoteLike


@dataclass(frozen=True)
class Section:
    """Time-bounded, pattern-tagged slice of a track.

    ``velocity_avg`` is optional; patterns fall back to their configured
    default velocity when it is ``None``.
    """

    start_time: float
    end_time: float
    pattern_type: Optional[str] = None
    velocity_avg: Optional[int] = None
    scale: Optional[ScaleSpec] = None
    pitch_range: Optional[PitchRange] = None
    late_entry: Optional[float] = None
    sequence: bool = False

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class Track:
    name: str
    program: int = 0
    channel: int = 0
    sections: Tuple[Section, ...] = ()


@dataclass(frozen=True)
class StructureMarker:
    label: str
    time: float


@dataclass(frozen=True)
class Metadata:
    title: Optional[str] = None
    structure_markers: Tuple[StructureMarker, ...] = ()


@dataclass(frozen=True)
class Specification:
    """Root input: tempo, meter, optional key and theme, and the tracks."""

    tempo: float
    tracks: Tuple[Track, ...]
    time_signature: Tuple[int, int] = (4, 4)
    key_signature: Optional[str] = None
    theme: Optional[Theme] = None
    metadata: Optional[Metadata] = None


@dataclass(frozen=True)
class NoteEvent:
    """A single performed note.

    ``time`` and ``duration`` are in seconds; ``velocity`` is normalised to
    ``0.0-1.0``.
    """

    pitch: int
    time: float
    duration: float
    velocity: float

    def __post_init__(self) -> None:
        if not 0 <= self.pitch <= 127:
            raise ValueError(f"pitch {self.pitch} out of range 0-127")
        if self.time < 0:
            raise ValueError(f"note time must be non-negative, got {self.time}")
        if self.duration <= 0:
            raise ValueError(f"note duration must be positive, got {self.duration}")
        if not 0.0 <= self.velocity <= 1.0:
            raise ValueError(f"velocity {self.velocity} out of range 0.0-1.0")

    @property
    def end(self) -> float:
        return self.time + self.duration

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pitch": self.pitch,
            "time": self.time,
            "duration": self.duration,
            "velocity": self.velocity,
        }


@dataclass(frozen=True)
class PerformanceHeader:
    tempo: float
    time_signature: Tuple[int, int] = (4, 4)
    key_signature: Optional[str] = None


@dataclass(frozen=True)
class PerformanceTrack:
    name: str
    channel: int
    instrument_program: int
    notes: Tuple[NoteEvent, ...] = ()


@dataclass(frozen=True)
class MetadataTrack:
    """Non-sounding track carrying the title and structure markers."""

    name: str
    markers: Tuple[StructureMarker, ...] = ()


@dataclass(frozen=True)
class Performance:
    header: PerformanceHeader
    tracks: Tuple[PerformanceTrack, ...] = ()
    metadata_track: Optional[MetadataTrack] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the plain structure handed to a note-file codec."""

        header: Dict[str, Any] = {
            "tempo": self.header.tempo,
            "timeSignature": list(self.header.time_signature),
        }
        if self.header.key_signature:
            header["keySignature"] = self.header.key_signature
        data: Dict[str, Any] = {
            "header": header,
            "tracks": [
                {
                    "name": track.name,
                    "channel": track.channel,
                    "instrumentProgram": track.instrument_program,
                    "notes": [note.to_dict() for note in track.notes],
                }
                for track in self.tracks
            ],
        }
        if self.metadata_track is not None:
            data["metadata"] = {
                "name": self.metadata_track.name,
                "markers": [
                    {"label": m.label, "time": m.time} for m in self.metadata_track.markers
                ],
            }
        return data


@dataclass(frozen=True)
class Diagnostic:
    """Non-fatal problem recorded while composing.

    ``level`` is ``"warning"`` for skipped or degraded sections and
    ``"error"`` when a pattern raised.
    """

    level: str
    message: str
    track_index: Optional[int] = None
    section_index: Optional[int] = None
    pattern_type: Optional[str] = None


@dataclass(frozen=True)
class CompositionResult:
    """Best-effort performance plus every diagnostic collected on the way."""

    performance: Performance
    diagnostics: Tuple[Diagnostic, ...] = ()

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.level == "warning"]

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.level == "error"]


@dataclass(frozen=True)
class PatternContext:
    """Everything a pattern algorithm may read for one section.

    ``scale`` and ``pitches`` are derived fresh for every section. ``rng``
    is the section's own seeded random source.
    """

    section: Section
    tempo: float
    strategies: Any
    rng: Any
    theme: Optional[Theme] = None
    scale: Tuple[int, ...] = ()
    pitches: Tuple[int, ...] = ()

    @property
    def quarter_note(self) -> float:
        """Length of one beat in seconds."""

        return 60.0 / self.tempo

    @property
    def start_time(self) -> float:
        """Section start after applying ``late_entry``."""

        return calculate_late_entry_start(self.section)

    def base_velocity(self, default: int) -> int:
        if self.section.velocity_avg is None:
            return default
        return self.section.velocity_avg


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_scale(raw: Any) -> Optional[ScaleSpec]:
    if not raw:
        return None
    if not isinstance(raw, Mapping):
        raise SpecificationError(f"scale must be a mapping, got {raw!r}")
    return ScaleSpec(root=raw.get("root"), type=raw.get("type") or "major")


def _parse_pitch_range(raw: Any) -> Optional[PitchRange]:
    if not raw:
        return None
    if not isinstance(raw, Mapping):
        raise SpecificationError(f"pitch_range must be a mapping, got {raw!r}")
    return PitchRange(low=raw.get("low"), high=raw.get("high"))


def _parse_section(raw: Any, where: str) -> Section:
    if not isinstance(raw, Mapping):
        raise SpecificationError(f"{where} must be a mapping")
    try:
        start_time = float(raw["start_time"])
        end_time = float(raw["end_time"])
    except (KeyError, TypeError, ValueError) as exc:
        raise SpecificationError(f"{where} needs numeric start_time and end_time") from exc

    velocity = raw.get("velocity_avg")
    late_entry = raw.get("late_entry")
    try:
        velocity = int(velocity) if velocity is not None else None
        late_entry = float(late_entry) if late_entry is not None else None
    except (TypeError, ValueError) as exc:
        raise SpecificationError(f"{where} needs numeric velocity_avg and late_entry") from exc
    return Section(
        start_time=start_time,
        end_time=end_time,
        pattern_type=raw.get("pattern_type"),
        velocity_avg=velocity,
        scale=_parse_scale(raw.get("scale")),
        pitch_range=_parse_pitch_range(raw.get("pitch_range")),
        late_entry=late_entry,
        sequence=bool(raw.get("sequence", False)),
    )


def _parse_track(raw: Any, index: int) -> Track:
    if not isinstance(raw, Mapping):
        raise SpecificationError(f"track {index + 1} must be a mapping")

    name = raw.get("component_source") or raw.get("instrument_name") or raw.get("name")
    track_number = raw.get("track_number")
    try:
        # ``track_number`` is 1-based; fall back to the list position.
        channel = (int(track_number) - 1) % 16 if track_number else index % 16
        program = int(raw.get("midi_program") or 0)
    except (TypeError, ValueError) as exc:
        raise SpecificationError(
            f"track {index + 1} needs integer track_number and midi_program"
        ) from exc
    if not 0 <= program <= 127:
        raise SpecificationError(f"track {index + 1} midi_program must be 0-127")

    sections = raw.get("sections") or []
    if not isinstance(sections, (list, tuple)):
        raise SpecificationError(f"track {index + 1} sections must be a list")
    return Track(
        name=name or f"Track {index + 1}",
        program=program,
        channel=channel,
        sections=tuple(
            _parse_section(section, f"track {index + 1} section {i + 1}")
            for i, section in enumerate(sections)
        ),
    )


def _parse_theme(raw: Any) -> Optional[Theme]:
    if not raw:
        return None
    if not isinstance(raw, Mapping):
        raise SpecificationError("theme must be a mapping")
    notes = raw.get("notes") or []
    rhythm = raw.get("rhythm") or []
    if not isinstance(notes, (list, tuple)) or not isinstance(rhythm, (list, tuple)):
        raise SpecificationError("theme notes and rhythm must be lists")
    if len(notes) != len(rhythm):
        raise SpecificationError("theme notes and rhythm must have the same length")
    try:
        return Theme(
            notes=tuple(int(n) for n in notes),
            rhythm=tuple(float(r) for r in rhythm),
            description=raw.get("description"),
        )
    except (TypeError, ValueError) as exc:
        raise SpecificationError(f"theme notes and rhythm must be numeric: {exc}") from exc


def _parse_metadata(raw: Any) -> Optional[Metadata]:
    if not raw:
        return None
    if not isinstance(raw, Mapping):
        raise SpecificationError("metadata must be a mapping")
    try:
        markers = tuple(
            StructureMarker(label=str(m.get("label", "")), time=float(m.get("time", 0.0)))
            for m in raw.get("structure_markers") or []
        )
    except (AttributeError, TypeError, ValueError) as exc:
        raise SpecificationError(f"structure_markers need a label and numeric time: {exc}") from exc
    return Metadata(title=raw.get("recipe_name") or raw.get("title"), structure_markers=markers)


def unwrap_specification(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return the inner specification of a ``{"midi_spec": {...}}`` wrapper."""

    if isinstance(raw, Mapping) and isinstance(raw.get("midi_spec"), Mapping):
        return raw["midi_spec"]
    return raw


def parse_specification(raw: Mapping[str, Any], *, strict: bool = False) -> Specification:
    """Build a :class:`Specification` from decoded JSON.

    Parameters
    ----------
    raw:
        Mapping shaped like the upstream generator's output. A ``midi_spec``
        wrapper is unwrapped and ``themeDefinition`` is accepted as an alias
        of ``theme``.
    strict:
        When ``True`` unknown ``pattern_type`` names are rejected here
        instead of being skipped during composition.

    Raises
    ------
    SpecificationError
        If the structure cannot be interpreted.
    """

    raw = unwrap_specification(raw)
    if not isinstance(raw, Mapping):
        raise SpecificationError("Specification must be a mapping")

    tempo = raw.get("tempo") or DEFAULT_TEMPO
    time_signature = raw.get("time_signature") or (4, 4)
    if isinstance(time_signature, str):
        time_signature = time_signature.split("/")
    if not isinstance(time_signature, (list, tuple)) or len(time_signature) != 2:
        raise SpecificationError("time_signature must be a pair of integers")
    try:
        tempo = float(tempo)
        time_signature = (int(time_signature[0]), int(time_signature[1]))
    except (TypeError, ValueError) as exc:
        raise SpecificationError(f"tempo and time_signature must be numeric: {exc}") from exc
    # Fractional tempos are kept; whole ones stay ``int``.
    if tempo.is_integer():
        tempo = int(tempo)

    raw_tracks = raw.get("tracks") or []
    if not isinstance(raw_tracks, (list, tuple)):
        raise SpecificationError("tracks must be a list")
    tracks = tuple(_parse_track(track, i) for i, track in enumerate(raw_tracks))

    if strict:
        from .registry import is_valid_pattern

        unknown = sorted(
            {
                str(section.pattern_type)
                for track in tracks
                for section in track.sections
                if not is_valid_pattern(section.pattern_type)
            }
        )
        if unknown:
            raise SpecificationError(
                f"Unknown pattern types: {', '.join(unknown)}",
                [f"Unknown pattern type: {name}" for name in unknown],
            )

    theme_raw = raw.get("theme") or raw.get("themeDefinition")
    return Specification(
        tempo=tempo,
        tracks=tracks,
        time_signature=time_signature,
        key_signature=raw.get("key_signature") or None,
        theme=_parse_theme(theme_raw),
        metadata=_parse_metadata(raw.get("metadata")),
    )
