"""Pre-flight checks for raw specifications.

:func:`validate_spec` inspects decoded JSON before anything is composed and
reports every problem it finds at once so a caller can fix a specification
in one pass. It never raises. :func:`validate_time_signature` is the shared
meter parser used by the validator and by callers that accept ``"3/4"``
style strings.

Usage Example
-------------
>>> from pattern_composer.validation import validate_spec, validate_time_signature
>>> validate_time_signature("3/4")
(3, 4)
>>> validate_spec({"tempo": 10, "tracks": []}).errors
['Invalid or missing tempo (must be 20-300 BPM)', 'Missing or empty tracks array']
"""

from __future__ import annotations

from dataclasses import dataclass, field
from numbers import Real
from typing import Any, List, Mapping, Sequence, Tuple, Union

from .models import unwrap_specification
from .registry import is_thematic_pattern, is_valid_pattern

__all__ = ["ValidationResult", "validate_spec", "validate_time_signature"]

MIN_TEMPO = 20
MAX_TEMPO = 300


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.is_valid


def validate_time_signature(ts: Union[str, Sequence[int]]) -> Tuple[int, int]:
    """Parse and validate a time signature.

    Parameters
    ----------
    ts:
        Either ``"NUM/DEN"`` (whitespace around the separator is ignored) or
        a ``(numerator, denominator)`` pair.

    Returns
    -------
    tuple[int, int]
        ``(numerator, denominator)`` when ``ts`` is valid.

    Raises
    ------
    ValueError
        If ``ts`` is malformed or uses an unsupported denominator.
    """

    if isinstance(ts, str):
        # Accept input such as "4/4" or " 3 / 8 " by trimming whitespace
        parts = ts.strip().split("/")
    else:
        parts = list(ts)
    if len(parts) != 2:
        raise ValueError(
            "Time signature must be in the form 'numerator/denominator'."
        )

    if any(isinstance(p, (bool, float)) for p in parts):
        raise ValueError(
            "Time signature must contain integer numerator and denominator."
        )
    try:
        numerator = int(parts[0])
        denominator = int(parts[1])
    except (TypeError, ValueError) as exc:  # non-integer values
        raise ValueError(
            "Time signature must contain integer numerator and denominator."
        ) from exc

    # Restrict denominator to common simple meter values
    valid_denominators = {1, 2, 4, 8, 16}
    if numerator <= 0 or denominator not in valid_denominators:
        raise ValueError(
            "Time signature numerator must be > 0 and denominator one of 1, 2, 4, 8 or 16."
        )

    return numerator, denominator


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _iter_sections(tracks: Sequence[Any]):
    for track_index, track in enumerate(tracks):
        if not isinstance(track, Mapping):
            continue
        sections = track.get("sections")
        if not isinstance(sections, list):
            continue
        for section_index, section in enumerate(sections):
            yield track_index, section_index, section


def _track_errors(track_index: int, track: Any) -> List[str]:
    where = f"Track {track_index + 1}"
    if not isinstance(track, Mapping):
        return [f"{where} must be an object"]
    errors = []
    sections = track.get("sections")
    if sections is not None and not isinstance(sections, list):
        errors.append(f"{where} sections must be an array")
    program = track.get("midi_program")
    if program is not None and (
        not isinstance(program, int) or isinstance(program, bool) or not 0 <= program <= 127
    ):
        errors.append(f"{where} midi_program must be an integer between 0 and 127")
    number = track.get("track_number")
    if number is not None and (not isinstance(number, int) or isinstance(number, bool) or number < 1):
        errors.append(f"{where} track_number must be a positive integer")
    return errors


def _section_errors(where: str, section: Mapping[str, Any]) -> List[str]:
    errors = []
    start, end = section.get("start_time"), section.get("end_time")
    if not _is_number(start) or not _is_number(end):
        errors.append(f"{where} needs numeric start_time and end_time")
    elif start < 0 or end <= start:
        errors.append(f"{where} must satisfy 0 <= start_time < end_time")
    velocity = section.get("velocity_avg")
    if velocity is not None and (not _is_number(velocity) or not 1 <= velocity <= 127):
        errors.append(f"{where} velocity_avg must be a number between 1 and 127")
    late_entry = section.get("late_entry")
    if late_entry is not None and (not _is_number(late_entry) or not 0 <= late_entry <= 1):
        errors.append(f"{where} late_entry must be a number between 0 and 1")
    for key in ("scale", "pitch_range"):
        if section.get(key) is not None and not isinstance(section.get(key), Mapping):
            errors.append(f"{where} {key} must be an object")
    return errors


def validate_spec(raw: Any, strict: bool = False) -> ValidationResult:
    """Check ``raw`` for structural problems without modifying it.

    Parameters
    ----------
    raw:
        Decoded specification, optionally wrapped as ``{"midi_spec": ...}``.
    strict:
        Also report sections whose ``pattern_type`` is not registered.

    Returns
    -------
    ValidationResult
        ``is_valid`` is ``True`` only when ``errors`` is empty. Messages are
        ordered: tempo, tracks, theme, meter, then per-track and per-section
        problems.
    """

    errors: List[str] = []
    raw = unwrap_specification(raw)
    if not isinstance(raw, Mapping):
        return ValidationResult(False, ["Specification is missing or not an object"])

    tempo = raw.get("tempo")
    if not _is_number(tempo) or not MIN_TEMPO <= tempo <= MAX_TEMPO:
        errors.append(f"Invalid or missing tempo (must be {MIN_TEMPO}-{MAX_TEMPO} BPM)")

    tracks = raw.get("tracks")
    if not isinstance(tracks, list) or not tracks:
        errors.append("Missing or empty tracks array")
        tracks = []

    sections = list(_iter_sections(tracks))
    uses_theme = any(
        isinstance(section, Mapping) and is_thematic_pattern(section.get("pattern_type"))
        for _, _, section in sections
    )

    theme = raw.get("theme") or raw.get("themeDefinition")
    if uses_theme and not theme:
        errors.append("Spec contains thematic patterns but no theme")

    if theme:
        notes = theme.get("notes") if isinstance(theme, Mapping) else None
        rhythm = theme.get("rhythm") if isinstance(theme, Mapping) else None
        if not isinstance(notes, list) or not isinstance(rhythm, list):
            errors.append("Theme must have notes and rhythm arrays")
        else:
            if len(notes) != len(rhythm):
                errors.append("Theme notes and rhythm arrays must have the same length")
            if uses_theme and not notes:
                errors.append("Theme notes must not be empty when thematic patterns are used")
            if any(not isinstance(n, int) or isinstance(n, bool) or not 0 <= n <= 127 for n in notes):
                errors.append("Theme notes must be integers between 0 and 127")
            if any(not _is_number(r) or r <= 0 for r in rhythm):
                errors.append("Theme rhythm values must be positive numbers")

    time_signature = raw.get("time_signature")
    if time_signature is not None:
        try:
            validate_time_signature(time_signature)
        except (TypeError, ValueError) as exc:
            errors.append(f"Invalid time_signature: {exc}")

    for track_index, track in enumerate(tracks):
        errors.extend(_track_errors(track_index, track))

    for track_index, section_index, section in sections:
        where = f"Track {track_index + 1} section {section_index + 1}"
        if not isinstance(section, Mapping):
            errors.append(f"{where} must be an object")
            continue
        errors.extend(_section_errors(where, section))
        if strict and not is_valid_pattern(section.get("pattern_type")):
            errors.append(f"{where} has unknown pattern type: {section.get('pattern_type')}")

    return ValidationResult(not errors, errors)
