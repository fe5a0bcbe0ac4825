"""Procedural accompaniment patterns.

These patterns do not need a theme. They draw pitches from the section's
pitch pool (see :func:`pitch_pool`) and take all timing, velocity and
probability knobs from ``ctx.strategies``. Randomised choices use the
section's :class:`~pattern_composer.dynamics.SeededRandom` so identical
input always yields identical output.

Every pattern keeps its notes inside the section: a note is only written
when ``time + duration`` does not pass ``section.end_time``.
"""

# Modification Summary
# ---------------------
# * All breathing densities share ``_breathe`` and differ only in their
#   rhythmic spacing preset.
# * Sustained pad voicings are cut at the section end instead of ringing
#   past it.

from __future__ import annotations

from typing import List

from .models import NoteEvent, PatternContext
from .note_utils import build_chord, get_pitches_in_range, get_scale_step, note_to_midi
from .strategies import SpacingPreset, apply_velocity_modifier, humanize_value

__all__ = [
    "pitch_pool",
    "harmonic_arpeggio",
    "melodic_counterpoint",
    "gentle_breathing",
    "sparse_breathing",
    "very_sparse_breathing",
    "moderate_breathing",
    "active_breathing",
    "sustained_pad",
    "foundation_pedal",
    "decorative_flourish",
    "minimal_accents",
    "silence",
]

# Chromatic span used when a section gives no pitch information at all.
DEFAULT_POOL_LOW = 48
DEFAULT_POOL_HIGH = 72


def pitch_pool(ctx: PatternContext) -> List[int]:
    """Return the pitches a procedural pattern may choose from.

    The first non-empty source wins: the section's in-range pitches, the
    section's scale, every chromatic pitch of ``pitch_range`` and finally
    the default span ``48-72``.
    """

    if ctx.pitches:
        return list(ctx.pitches)
    if ctx.scale:
        return list(ctx.scale)
    if ctx.section.pitch_range is not None:
        return get_pitches_in_range(ctx.section.pitch_range)
    return list(range(DEFAULT_POOL_LOW, DEFAULT_POOL_HIGH + 1))


def _velocity(ctx: PatternContext, config) -> float:
    base = ctx.base_velocity(config.default_velocity)
    return apply_velocity_modifier(base, config.velocity_modifier) / 127


def harmonic_arpeggio(ctx: PatternContext) -> List[NoteEvent]:
    """Cycle through a triad using the configured index pattern.

    The root is the section's scale root when given, otherwise the lowest
    scale pitch, the lowest pool pitch or ``default_root``.
    """

    config = ctx.strategies.harmonic_arpeggio
    section = ctx.section

    if section.scale is not None and section.scale.root is not None:
        root = note_to_midi(section.scale.root)
    elif ctx.scale:
        root = ctx.scale[0]
    elif ctx.pitches:
        root = ctx.pitches[0]
    else:
        root = config.default_root

    chord = build_chord(root, ctx.scale, "triad")
    while len(chord) < 3:
        chord.append(chord[-1] + config.fill_interval)
    chord = [min(127, pitch) for pitch in chord]

    span = ctx.quarter_note * config.note_value
    duration = span * config.duration_factor
    velocity = _velocity(ctx, config)

    notes: List[NoteEvent] = []
    current = ctx.start_time
    index = 0
    while current + span <= section.end_time:
        pitch = chord[config.pattern[index % len(config.pattern)] % len(chord)]
        notes.append(NoteEvent(pitch, current, duration, velocity))
        current += span
        index += 1
    return notes


def melodic_counterpoint(ctx: PatternContext) -> List[NoteEvent]:
    """Generate a mostly stepwise line with arch-shaped contours.

    Each move is a step (sometimes doubled) with probability
    ``stepwise_bias``, a small leap with ``leap_probability`` and otherwise a
    reversal of direction. The direction also flips every
    ``direction_change_every`` notes, and the line bounces off the ends of
    the pitch pool instead of leaving it.
    """

    config = ctx.strategies.melodic_counterpoint
    rng = ctx.rng
    pool = pitch_pool(ctx)

    interval = ctx.quarter_note * config.note_interval
    duration = interval * config.note_duration
    velocity = _velocity(ctx, config)

    index = int(len(pool) * config.start_in_range)
    ascending = True
    since_change = 0

    notes: List[NoteEvent] = []
    current = ctx.start_time
    while current + duration <= ctx.section.end_time:
        notes.append(NoteEvent(pool[index], current, duration, velocity))

        motion = rng()
        if motion < config.stepwise_bias:
            move = 1 if ascending else -1
            if rng() < config.double_step_probability:
                move *= 2
        elif motion < config.stepwise_bias + config.leap_probability:
            leap = config.min_leap + rng.randint_below(config.max_leap - config.min_leap + 1)
            move = leap if ascending else -leap
        else:
            ascending = not ascending
            move = 1 if ascending else -1
        index += move

        since_change += 1
        if since_change >= config.direction_change_every:
            ascending = not ascending
            since_change = 0

        if index <= 0:
            index = 0
            ascending = True
        elif index >= len(pool) - 1:
            index = len(pool) - 1
            ascending = False

        current += interval
    return notes


def _breathe(ctx: PatternContext, preset: SpacingPreset) -> List[NoteEvent]:
    """Sustained notes spaced ``preset.interval`` beats apart.

    The line starts in the middle of the pitch pool. With a scale it moves
    up to ``max_interval`` pool positions per note; without one it moves up
    to ``chromatic_max_step`` semitones and is held inside the pool's
    bounds.
    """

    config = ctx.strategies.gentle_breathing
    rng = ctx.rng
    pool = pitch_pool(ctx)

    quarter = ctx.quarter_note
    base_interval = preset.interval * quarter
    duration = config.note_duration * quarter
    velocity = _velocity(ctx, config)

    pitch = pool[len(pool) // 2]
    notes: List[NoteEvent] = []
    current = ctx.start_time
    while current + duration <= ctx.section.end_time:
        notes.append(NoteEvent(pitch, current, duration, velocity))
        current += humanize_value(base_interval, preset.humanize, rng)

        if ctx.scale:
            limit = config.max_interval
            step = rng.randint_below(limit * 2 + 1) - limit
            pitch = get_scale_step(pitch, pool, step)
        else:
            limit = config.chromatic_max_step
            step = rng.randint_below(limit * 2 + 1) - limit
            pitch = max(pool[0], min(pool[-1], pitch + step))
    return notes


def gentle_breathing(ctx: PatternContext) -> List[NoteEvent]:
    """One sustained note roughly every three beats."""

    return _breathe(ctx, ctx.strategies.rhythmic_spacing.breathing)


def sparse_breathing(ctx: PatternContext) -> List[NoteEvent]:
    return _breathe(ctx, ctx.strategies.rhythmic_spacing.sparse_breathing)


def very_sparse_breathing(ctx: PatternContext) -> List[NoteEvent]:
    return _breathe(ctx, ctx.strategies.rhythmic_spacing.very_sparse_breathing)


def moderate_breathing(ctx: PatternContext) -> List[NoteEvent]:
    """One sustained note roughly every two beats."""

    return _breathe(ctx, ctx.strategies.rhythmic_spacing.moderate_breathing)


def active_breathing(ctx: PatternContext) -> List[NoteEvent]:
    return _breathe(ctx, ctx.strategies.rhythmic_spacing.active_breathing)


def sustained_pad(ctx: PatternContext) -> List[NoteEvent]:
    """Quiet overlapping chord voicings re-struck every ``update_interval`` beats.

    The root sits ``pitch_range_position`` of the way up the pitch pool.
    When it is a scale tone it occasionally moves to a neighbouring scale
    tone for variety. Voicings ring ``release_overlap`` seconds into the
    next chord but never past the section end.
    """

    config = ctx.strategies.sustained_pad
    rng = ctx.rng
    pool = pitch_pool(ctx)
    end_time = ctx.section.end_time

    chord_span = ctx.quarter_note * config.update_interval
    base = ctx.base_velocity(config.default_velocity)
    velocity = min(1.0, base / 127 * config.velocity_multiplier)
    base_root = pool[int(len(pool) * config.pitch_range_position)]
    scale = list(ctx.scale)

    notes: List[NoteEvent] = []
    current = ctx.start_time
    while current < end_time:
        root = base_root
        if base_root in scale and rng() > config.root_shift_threshold:
            offset = 1 if rng() > config.shift_up_probability else -1
            position = max(0, min(len(scale) - 1, scale.index(base_root) + offset))
            root = scale[position]

        duration = min(chord_span + config.release_overlap, end_time - current)
        for interval in config.voicing_spread:
            pitch = root + interval
            if 0 <= pitch <= 127:
                notes.append(NoteEvent(pitch, current, duration, velocity))
        current += chord_span
    return notes


def foundation_pedal(ctx: PatternContext) -> List[NoteEvent]:
    """A single low note held for almost the whole section.

    The pitch is taken ``quartile_position`` of the way up the in-range
    pitches, falling back to the bottom of ``pitch_range``, the lowest scale
    pitch and finally ``default_pitch``. The note stops ``sustain_gap``
    seconds before the section end.
    """

    config = ctx.strategies.foundation_pedal
    section = ctx.section

    if ctx.pitches:
        pitch = ctx.pitches[int(len(ctx.pitches) * config.quartile_position)]
    elif section.pitch_range is not None:
        pitch = note_to_midi(section.pitch_range.low)
    elif ctx.scale:
        pitch = ctx.scale[0]
    else:
        pitch = config.default_pitch

    start = ctx.start_time
    available = section.end_time - start
    duration = available - config.sustain_gap
    if duration <= 0:
        duration = available
    if duration <= 0:
        return []
    return [NoteEvent(pitch, start, duration, _velocity(ctx, config))]


def decorative_flourish(ctx: PatternContext) -> List[NoteEvent]:
    """A short run of ``note_count`` notes from the top of the register.

    The run starts at the late-entry position when the section sets one,
    otherwise ``appear_time`` of the way through the section. Notes that
    would run past the section end are dropped.
    """

    config = ctx.strategies.decorative_flourish
    section = ctx.section
    count = config.note_count

    source = ctx.pitches if len(ctx.pitches) >= count else ctx.scale
    if len(source) >= count:
        first = int(len(source) * config.register_position)
        pitches = list(source[first:first + count])
    elif section.pitch_range is not None:
        high = note_to_midi(section.pitch_range.high)
        pitches = [high - (count - 1 - i) * config.fallback_step for i in range(count)]
    else:
        pitches = list(config.default_pitches[:count])

    while len(pitches) < count:
        last = pitches[-1] if pitches else config.default_pitches[0]
        pitches.append(last + config.fallback_step)
    pitches = sorted(max(0, min(127, p)) for p in pitches)

    if config.direction == "descending":
        pitches.reverse()
    elif config.direction == "random":
        ctx.rng.shuffle(pitches)

    if section.late_entry is not None and section.late_entry > 0:
        current = ctx.start_time
    else:
        current = section.start_time + section.duration * config.appear_time

    span = ctx.quarter_note * config.note_value
    duration = span * config.duration_factor
    velocity = _velocity(ctx, config)

    notes: List[NoteEvent] = []
    for pitch in pitches:
        if current + duration > section.end_time:
            break
        notes.append(NoteEvent(pitch, current, duration, velocity))
        current += span
    return notes


def minimal_accents(ctx: PatternContext) -> List[NoteEvent]:
    """Isolated short notes every ``min_interval`` to ``max_interval`` seconds."""

    config = ctx.strategies.minimal_accents
    rng = ctx.rng
    section = ctx.section

    if ctx.pitches:
        pool = list(ctx.pitches)
    elif section.pitch_range is not None:
        pool = get_pitches_in_range(section.pitch_range)
    else:
        pool = list(config.default_pitches)

    velocity = _velocity(ctx, config)
    duration = config.duration * config.duration_factor

    notes: List[NoteEvent] = []
    current = ctx.start_time
    while current + config.duration <= section.end_time:
        pitch = pool[rng.randint_below(len(pool))]
        notes.append(NoteEvent(pitch, current, duration, velocity))
        current += config.min_interval + rng() * (config.max_interval - config.min_interval)
    return notes


def silence(ctx: PatternContext) -> List[NoteEvent]:
    """Rest for the whole section."""

    return []
