"""Fixed-pitch percussion patterns.

Pitches follow the General MIDI percussion map (36 kick, 38 snare, 42 closed
hi-hat and so on) and come from the ``strategies`` table; the section's
scale and pitch range are ignored. Velocities are the section average
scaled by each voice's multiplier. Hits that would ring past the section end
are dropped, or shortened for the long accent hits.
"""

from __future__ import annotations

import math
from typing import List

from .models import NoteEvent, PatternContext
from .strategies import DrumVoice

__all__ = [
    "rhythmic_foundation",
    "hand_percussion",
    "accent_hits",
    "gentle_shaker",
]


def _scaled_velocity(ctx: PatternContext, default: int, multiplier: float) -> float:
    return min(1.0, ctx.base_velocity(default) / 127 * multiplier)


def _beat_hits(ctx: PatternContext, voice: DrumVoice, beats: int, per_measure: int, default: int):
    quarter = ctx.quarter_note
    velocity = _scaled_velocity(ctx, default, voice.velocity_multiplier)
    return [
        NoteEvent(voice.pitch, ctx.start_time + beat * quarter, quarter * voice.duration_factor, velocity)
        for beat in range(beats)
        if beat % per_measure in voice.beats
    ]


def rhythmic_foundation(ctx: PatternContext) -> List[NoteEvent]:
    """Kick and snare on their configured beats, hi-hats on a steady grid.

    Only whole beats that fit in the section are counted, so every kick and
    snare ends inside it.
    """

    config = ctx.strategies.rhythmic_foundation
    quarter = ctx.quarter_note
    start = ctx.start_time
    end_time = ctx.section.end_time
    beats = math.floor((end_time - start) / quarter)

    notes = _beat_hits(ctx, config.kick, beats, config.beats_per_measure, config.default_velocity)
    notes += _beat_hits(ctx, config.snare, beats, config.beats_per_measure, config.default_velocity)

    hihat = config.hihat
    span = quarter * hihat.note_value
    duration = span * hihat.duration_factor
    velocity = _scaled_velocity(ctx, config.default_velocity, hihat.velocity_multiplier)
    current = start
    while current + duration <= end_time:
        notes.append(NoteEvent(hihat.pitch, current, duration, velocity))
        current += span
    return notes


def hand_percussion(ctx: PatternContext) -> List[NoteEvent]:
    """Repeat the conga/bongo loop every ``loop_length`` beats."""

    config = ctx.strategies.hand_percussion
    quarter = ctx.quarter_note
    end_time = ctx.section.end_time
    loop_span = quarter * config.loop_length
    duration = quarter * config.note_duration

    notes: List[NoteEvent] = []
    loop_start = ctx.start_time
    while loop_start < end_time:
        for hit in config.pattern:
            time = loop_start + quarter * hit.offset
            if time + duration <= end_time:
                velocity = _scaled_velocity(ctx, config.default_velocity, hit.velocity_multiplier)
                notes.append(NoteEvent(hit.pitch, time, duration, velocity))
        loop_start += loop_span
    return notes


def accent_hits(ctx: PatternContext) -> List[NoteEvent]:
    """Evenly spaced cymbal hits, skipping the very start and end.

    Hit ``i`` of ``n`` lands ``(i + 1) / (n + 1)`` of the way through the
    section and alternates between the configured instruments. The sustain
    is cut short at the section end.
    """

    config = ctx.strategies.accent_hits
    start = ctx.start_time
    end_time = ctx.section.end_time
    span = end_time - start
    count = config.hits_per_section
    velocity = _scaled_velocity(ctx, config.default_velocity, config.velocity_multiplier)

    notes: List[NoteEvent] = []
    for i in range(count):
        time = start + span * (i + 1) / (count + 1)
        duration = min(config.duration, end_time - time)
        if duration <= 0:
            continue
        pitch = config.instruments[i % len(config.instruments)]
        notes.append(NoteEvent(pitch, time, duration, velocity))
    return notes


def gentle_shaker(ctx: PatternContext) -> List[NoteEvent]:
    """Very quiet shaker strokes following an on/off bit pattern."""

    config = ctx.strategies.gentle_shaker
    end_time = ctx.section.end_time
    span = ctx.quarter_note * config.note_value
    duration = span * config.duration_factor
    velocity = _scaled_velocity(ctx, config.default_velocity, config.velocity_multiplier)

    notes: List[NoteEvent] = []
    current = ctx.start_time
    index = 0
    while current + duration <= end_time:
        if config.pattern[index % len(config.pattern)]:
            notes.append(NoteEvent(config.pitch, current, duration, velocity))
        current += span
        index += 1
    return notes
