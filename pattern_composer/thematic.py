"""Theme-dependent patterns.

Each function here takes a :class:`~pattern_composer.models.PatternContext`
and transforms the specification's theme into note events:

``thematic_statement``
    Plays the theme as written.
``thematic_fragmented``
    Loops the opening fragment, optionally rising by a fixed interval on
    every repetition (a melodic sequence).
``thematic_extended``
    Plays the theme, then keeps walking stepwise in the direction of its
    overall contour.
``thematic_inverted``
    Mirrors every interval around the first note.
``thematic_retrograde``
    Plays the theme backwards.

Rhythm values are measured in beats, so ``1.0`` is a quarter note at the
specification's tempo. A note is only placed while its full rhythmic span
ends strictly before the section end; the first note that would not fit ends
the phrase. The fragmented pattern instead only starts a repetition when the
whole fragment fits, so partial fragments are never heard.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from .models import NoteEvent, PatternContext, PatternError, Theme
from .note_utils import get_contour_direction, get_scale_step
from .strategies import apply_velocity_modifier

__all__ = [
    "thematic_statement",
    "thematic_fragmented",
    "thematic_extended",
    "thematic_inverted",
    "thematic_retrograde",
]


def _require_theme(ctx: PatternContext, name: str) -> Theme:
    theme = ctx.theme
    if theme is None or not theme.notes or not theme.rhythm:
        raise PatternError(f"{name} requires a theme with notes and rhythm arrays")
    return theme


def _beats(rhythm: Sequence[float], index: int) -> float:
    """Return the beat value at ``index``; missing or non-positive means one beat."""

    value = rhythm[index] if index < len(rhythm) else 0
    return value if value > 0 else 1.0


def _velocity(ctx: PatternContext, config) -> float:
    base = ctx.base_velocity(config.default_velocity)
    return apply_velocity_modifier(base, config.velocity_modifier) / 127


def _play_line(
    pitches: Sequence[int],
    rhythm: Sequence[float],
    ctx: PatternContext,
    config,
) -> Tuple[List[NoteEvent], float]:
    """Lay ``pitches`` end to end from the section's effective start.

    Returns the events and the time at which the next note would begin.
    """

    quarter = ctx.quarter_note
    factor = config.duration_factor
    velocity = _velocity(ctx, config)
    end_time = ctx.section.end_time

    notes: List[NoteEvent] = []
    current = ctx.start_time
    for index, pitch in enumerate(pitches):
        span = _beats(rhythm, index) * quarter
        if current + max(span, span * factor) >= end_time:
            break
        notes.append(NoteEvent(pitch, current, span * factor, velocity))
        current += span
    return notes, current


def thematic_statement(ctx: PatternContext) -> List[NoteEvent]:
    """Replay the theme verbatim."""

    theme = _require_theme(ctx, "thematic_statement")
    notes, _ = _play_line(theme.notes, theme.rhythm, ctx, ctx.strategies.thematic_statement)
    return notes


def thematic_fragmented(ctx: PatternContext) -> List[NoteEvent]:
    """Repeat the opening fragment of the theme until the section ends.

    When the section sets ``sequence`` each repetition ``k`` is transposed
    up by ``k * sequence_interval`` semitones. Transposed pitches outside
    ``0-127`` are dropped but still take up their time.
    """

    config = ctx.strategies.thematic_fragmented
    length = config.fragment_length
    theme = ctx.theme
    if theme is None or len(theme.notes) < length or len(theme.rhythm) < length:
        raise PatternError(
            f"thematic_fragmented requires theme with at least {length} notes"
        )

    quarter = ctx.quarter_note
    factor = config.duration_factor
    velocity = _velocity(ctx, config)
    end_time = ctx.section.end_time

    fragment = theme.notes[:length]
    spans = [_beats(theme.rhythm, i) * quarter for i in range(length)]
    # Time from the first onset until the last note of the fragment releases.
    extent = sum(spans[:-1]) + spans[-1] * max(1.0, factor)

    notes: List[NoteEvent] = []
    current = ctx.start_time
    repetition = 0
    while current + extent <= end_time:
        transposition = repetition * config.sequence_interval if ctx.section.sequence else 0
        for pitch, span in zip(fragment, spans):
            shifted = pitch + transposition
            if 0 <= shifted <= 127:
                notes.append(NoteEvent(shifted, current, span * factor, velocity))
            current += span
        repetition += 1
    return notes


def thematic_extended(ctx: PatternContext) -> List[NoteEvent]:
    """Play the theme, then continue stepwise along its contour.

    The continuation moves ``extension_step_size`` scale degrees per note
    (or ``chromatic_step`` semitones when the section has no scale) at the
    theme's average rhythm value. A flat contour continues upwards. The
    walk stops at the section end or when it would leave ``0-127``.
    """

    theme = _require_theme(ctx, "thematic_extended")
    config = ctx.strategies.thematic_extended
    notes, current = _play_line(theme.notes, theme.rhythm, ctx, config)
    if len(notes) < len(theme.notes):
        return notes

    direction = get_contour_direction(theme.notes) or 1
    average = sum(theme.rhythm) / len(theme.rhythm)
    span = (average if average > 0 else 1.0) * ctx.quarter_note
    factor = config.duration_factor
    velocity = _velocity(ctx, config)
    end_time = ctx.section.end_time

    pitch = theme.notes[-1]
    while current + max(span, span * factor) < end_time:
        if ctx.scale:
            pitch = get_scale_step(pitch, ctx.scale, direction * config.extension_step_size)
        else:
            pitch += direction * config.chromatic_step
        if not 0 <= pitch <= 127:
            break
        notes.append(NoteEvent(pitch, current, span * factor, velocity))
        current += span
    return notes


def thematic_inverted(ctx: PatternContext) -> List[NoteEvent]:
    """Play the theme with every interval mirrored.

    The inverted line starts on the theme's first note; each following note
    moves by the negated interval of the original. Pitches are clamped to
    ``0-127`` as they are played while the walk itself stays unclamped.
    """

    theme = _require_theme(ctx, "thematic_inverted")
    if len(theme.notes) < 2:
        raise PatternError("thematic_inverted requires at least 2 notes")

    inverted = [theme.notes[0]]
    for previous, following in zip(theme.notes, theme.notes[1:]):
        inverted.append(inverted[-1] - (following - previous))
    clamped = [max(0, min(127, pitch)) for pitch in inverted]

    notes, _ = _play_line(clamped, theme.rhythm, ctx, ctx.strategies.thematic_inverted)
    return notes


def thematic_retrograde(ctx: PatternContext) -> List[NoteEvent]:
    """Play the theme backwards, reversing pitches and rhythm together."""

    theme = _require_theme(ctx, "thematic_retrograde")
    notes, _ = _play_line(
        theme.notes[::-1], theme.rhythm[::-1], ctx, ctx.strategies.thematic_retrograde
    )
    return notes
