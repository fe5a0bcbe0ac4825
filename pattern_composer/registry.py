"""Closed catalogue of pattern kinds.

:class:`PatternType` enumerates every pattern the composer understands and
:class:`PatternFamily` classifies them. Lookup helpers accept either enum
members or plain strings, including the short thematic aliases
(``statement``, ``fragmented`` ...). Unknown names are never an error here;
callers get ``None`` or ``False`` and decide how to react.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, List, Optional, Union

from . import percussion, supporting, thematic
from .models import NoteEvent, PatternContext

__all__ = [
    "PatternFamily",
    "PatternType",
    "PatternFunc",
    "resolve_pattern_type",
    "get_pattern",
    "get_pattern_family",
    "is_valid_pattern",
    "is_thematic_pattern",
    "is_supporting_pattern",
    "get_all_pattern_names",
]

PatternFunc = Callable[[PatternContext], List[NoteEvent]]


class PatternFamily(str, Enum):
    THEMATIC = "thematic"
    SUPPORTING = "supporting"
    PERCUSSION = "percussion"


class PatternType(str, Enum):
    """Every pattern name a section may use."""

    THEMATIC_STATEMENT = "thematic_statement"
    THEMATIC_FRAGMENTED = "thematic_fragmented"
    THEMATIC_EXTENDED = "thematic_extended"
    THEMATIC_INVERTED = "thematic_inverted"
    THEMATIC_RETROGRADE = "thematic_retrograde"

    HARMONIC_ARPEGGIO = "harmonic_arpeggio"
    MELODIC_COUNTERPOINT = "melodic_counterpoint"
    GENTLE_BREATHING = "gentle_breathing"
    SPARSE_BREATHING = "sparse_breathing"
    VERY_SPARSE_BREATHING = "very_sparse_breathing"
    MODERATE_BREATHING = "moderate_breathing"
    ACTIVE_BREATHING = "active_breathing"
    FOUNDATION_PEDAL = "foundation_pedal"
    DECORATIVE_FLOURISH = "decorative_flourish"
    MINIMAL_ACCENTS = "minimal_accents"
    SUSTAINED_PAD = "sustained_pad"
    SILENCE = "silence"

    RHYTHMIC_FOUNDATION = "rhythmic_foundation"
    HAND_PERCUSSION = "hand_percussion"
    ACCENT_HITS = "accent_hits"
    GENTLE_SHAKER = "gentle_shaker"


_ALIASES: Dict[str, PatternType] = {
    "statement": PatternType.THEMATIC_STATEMENT,
    "fragmented": PatternType.THEMATIC_FRAGMENTED,
    "extended": PatternType.THEMATIC_EXTENDED,
    "inverted": PatternType.THEMATIC_INVERTED,
    "retrograde": PatternType.THEMATIC_RETROGRADE,
}

_PATTERNS: Dict[PatternType, PatternFunc] = {
    PatternType.THEMATIC_STATEMENT: thematic.thematic_statement,
    PatternType.THEMATIC_FRAGMENTED: thematic.thematic_fragmented,
    PatternType.THEMATIC_EXTENDED: thematic.thematic_extended,
    PatternType.THEMATIC_INVERTED: thematic.thematic_inverted,
    PatternType.THEMATIC_RETROGRADE: thematic.thematic_retrograde,
    PatternType.HARMONIC_ARPEGGIO: supporting.harmonic_arpeggio,
    PatternType.MELODIC_COUNTERPOINT: supporting.melodic_counterpoint,
    PatternType.GENTLE_BREATHING: supporting.gentle_breathing,
    PatternType.SPARSE_BREATHING: supporting.sparse_breathing,
    PatternType.VERY_SPARSE_BREATHING: supporting.very_sparse_breathing,
    PatternType.MODERATE_BREATHING: supporting.moderate_breathing,
    PatternType.ACTIVE_BREATHING: supporting.active_breathing,
    PatternType.FOUNDATION_PEDAL: supporting.foundation_pedal,
    PatternType.DECORATIVE_FLOURISH: supporting.decorative_flourish,
    PatternType.MINIMAL_ACCENTS: supporting.minimal_accents,
    PatternType.SUSTAINED_PAD: supporting.sustained_pad,
    PatternType.SILENCE: supporting.silence,
    PatternType.RHYTHMIC_FOUNDATION: percussion.rhythmic_foundation,
    PatternType.HAND_PERCUSSION: percussion.hand_percussion,
    PatternType.ACCENT_HITS: percussion.accent_hits,
    PatternType.GENTLE_SHAKER: percussion.gentle_shaker,
}

_THEMATIC = {
    PatternType.THEMATIC_STATEMENT,
    PatternType.THEMATIC_FRAGMENTED,
    PatternType.THEMATIC_EXTENDED,
    PatternType.THEMATIC_INVERTED,
    PatternType.THEMATIC_RETROGRADE,
}

_PERCUSSION = {
    PatternType.RHYTHMIC_FOUNDATION,
    PatternType.HAND_PERCUSSION,
    PatternType.ACCENT_HITS,
    PatternType.GENTLE_SHAKER,
}


def resolve_pattern_type(name: Union[str, PatternType, None]) -> Optional[PatternType]:
    """Return the :class:`PatternType` for ``name`` or ``None`` if unknown."""

    if isinstance(name, PatternType):
        return name
    if not isinstance(name, str):
        return None
    try:
        return PatternType(name)
    except ValueError:
        return _ALIASES.get(name)


def get_pattern(name: Union[str, PatternType, None]) -> Optional[PatternFunc]:
    """Return the algorithm registered for ``name`` or ``None``."""

    pattern_type = resolve_pattern_type(name)
    if pattern_type is None:
        return None
    return _PATTERNS[pattern_type]


def get_pattern_family(name: Union[str, PatternType, None]) -> Optional[PatternFamily]:
    pattern_type = resolve_pattern_type(name)
    if pattern_type is None:
        return None
    if pattern_type in _THEMATIC:
        return PatternFamily.THEMATIC
    if pattern_type in _PERCUSSION:
        return PatternFamily.PERCUSSION
    return PatternFamily.SUPPORTING


def is_valid_pattern(name: Union[str, PatternType, None]) -> bool:
    return resolve_pattern_type(name) is not None


def is_thematic_pattern(name: Union[str, PatternType, None]) -> bool:
    """Return ``True`` if ``name`` needs a theme."""

    return get_pattern_family(name) is PatternFamily.THEMATIC


def is_supporting_pattern(name: Union[str, PatternType, None]) -> bool:
    """Return ``True`` for every known pattern that works without a theme.

    Percussion patterns count as supporting here; use
    :func:`get_pattern_family` to tell them apart.
    """

    family = get_pattern_family(name)
    return family is not None and family is not PatternFamily.THEMATIC


def get_all_pattern_names() -> List[str]:
    """Return the canonical name of every registered pattern.

    Aliases are not included.
    """

    return [pattern_type.value for pattern_type in PatternType]
