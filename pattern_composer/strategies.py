"""Tunable composition strategies.

Every "magic number" the patterns use lives in this module: articulation
(duration factors), additive velocity modifiers, rhythmic spacing presets,
late-entry defaults and one sub-configuration per pattern type.  The whole
table is a tree of frozen dataclasses so it can be shared freely and passed
explicitly into :func:`pattern_composer.composer.compose`.  Retuning the
output is a configuration change, never a code change::

    tuned = strategies_from_dict({"foundation_pedal": {"velocity_modifier": -10}})
    result = compose(spec, strategies=tuned)

Overrides may also be loaded from a JSON file with :func:`load_strategies`.
The file path defaults to the ``PATTERN_COMPOSER_STRATEGIES`` environment
variable.

The three helpers at the bottom of the module are the only arithmetic shared
by all patterns: late-entry start time, velocity clamping and timing
humanisation.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Tuple

__all__ = [
    "StrategyConfig",
    "DEFAULT_STRATEGIES",
    "strategies_from_dict",
    "load_strategies",
    "calculate_late_entry_start",
    "apply_velocity_modifier",
    "humanize_value",
]

# Environment variable naming a JSON file with strategy overrides.
STRATEGIES_ENV_VAR = "PATTERN_COMPOSER_STRATEGIES"


@dataclass(frozen=True)
class DurationFactors:
    """Multipliers applied to a beat to control articulation.

    Values below ``1.0`` leave space between notes, values above overlap.
    """

    staccato: float = 0.4
    portato: float = 0.85
    normal: float = 0.95
    legato: float = 1.05
    molto_legato: float = 1.15


@dataclass(frozen=True)
class VelocityModifiers:
    """Additive adjustments to a section's average velocity."""

    harmony_below: int = -15
    bass_below: int = -20
    accent_above: int = 10
    pedal_below: int = -25
    flourish_above: int = 5


@dataclass(frozen=True)
class SpacingPreset:
    """Beats between successive notes and the humanise fraction applied."""

    interval: float
    humanize: float = 0.0


@dataclass(frozen=True)
class RhythmicSpacing:
    breathing: SpacingPreset = SpacingPreset(3.0, 0.1)
    sparse_breathing: SpacingPreset = SpacingPreset(3.5, 0.1)
    very_sparse_breathing: SpacingPreset = SpacingPreset(4.0, 0.1)
    moderate_breathing: SpacingPreset = SpacingPreset(2.0, 0.08)
    active_breathing: SpacingPreset = SpacingPreset(1.0, 0.05)
    accents: SpacingPreset = SpacingPreset(4.0, 0.3)


@dataclass(frozen=True)
class LateEntryDefaults:
    """Fractions of a section after which secondary material enters."""

    secondary_in_prep: float = 0.65
    bass_fade_in: float = 0.3
    decoration: float = 0.7


# ---------------------------------------------------------------------------
# Per-pattern configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ThematicConfig:
    duration_factor: float = 0.95
    velocity_modifier: int = 0
    default_velocity: int = 80


@dataclass(frozen=True)
class FragmentedConfig(ThematicConfig):
    # Number of theme notes taken as the fragment.
    fragment_length: int = 3
    # Semitones added per repetition when ``sequence`` is set.
    sequence_interval: int = 2


@dataclass(frozen=True)
class ExtendedConfig(ThematicConfig):
    # Scale degrees moved per extension note.
    extension_step_size: int = 1
    # Semitones moved per extension note when no scale is available.
    chromatic_step: int = 2


@dataclass(frozen=True)
class BreathingConfig:
    # Sustain in beats for each breathing note.
    note_duration: float = 1.2
    # Largest scale-degree move between two notes.
    max_interval: int = 2
    # Largest semitone move when the section has no scale.
    chromatic_max_step: int = 2
    velocity_modifier: int = 0
    default_velocity: int = 70


@dataclass(frozen=True)
class CounterpointConfig:
    note_interval: float = 0.75
    note_duration: float = 0.9
    stepwise_bias: float = 0.7
    leap_probability: float = 0.2
    # Chance that a stepwise move doubles to two positions.
    double_step_probability: float = 0.3
    min_leap: int = 2
    max_leap: int = 3
    direction_change_every: int = 7
    start_in_range: float = 0.4
    velocity_modifier: int = -10
    default_velocity: int = 70


@dataclass(frozen=True)
class PedalConfig:
    quartile_position: float = 0.25
    # Seconds left silent before the section end.
    sustain_gap: float = 0.05
    velocity_modifier: int = -25
    default_velocity: int = 80
    default_pitch: int = 36


@dataclass(frozen=True)
class FlourishConfig:
    note_count: int = 4
    appear_time: float = 0.65
    note_value: float = 0.25
    # ``ascending``, ``descending`` or ``random``.
    direction: str = "ascending"
    duration_factor: float = 0.8
    # Fraction of the pitch pool below which flourish notes are not taken.
    register_position: float = 0.75
    # Semitones between notes built down from the top of the range.
    fallback_step: int = 2
    velocity_modifier: int = 5
    default_velocity: int = 80
    default_pitches: Tuple[int, ...] = (72, 74, 76, 79)


@dataclass(frozen=True)
class AccentsConfig:
    min_interval: float = 3.0
    max_interval: float = 4.0
    # Seconds reserved for each accent before the section end.
    duration: float = 0.3
    duration_factor: float = 0.4
    velocity_modifier: int = 0
    default_velocity: int = 70
    default_pitches: Tuple[int, ...] = (60, 62, 64, 65, 67, 69, 71, 72)


@dataclass(frozen=True)
class ArpeggioConfig:
    note_value: float = 0.5
    # Indices into the built chord: root, fifth, third, fifth.
    pattern: Tuple[int, ...] = (0, 2, 1, 2)
    duration_factor: float = 0.9
    velocity_modifier: int = -12
    default_velocity: int = 80
    default_root: int = 48
    # Semitones stacked on top when the chord comes back short.
    fill_interval: int = 4


@dataclass(frozen=True)
class PadConfig:
    # Beats between chord changes.
    update_interval: float = 8.0
    # Seconds each voicing rings past the next change.
    release_overlap: float = 0.5
    velocity_multiplier: float = 0.5
    pitch_range_position: float = 0.3
    voicing_spread: Tuple[int, ...] = (0, 7, 12, 16)
    # A random draw above this moves the root to a neighbouring scale tone.
    root_shift_threshold: float = 0.6
    # A second draw above this shifts up rather than down.
    shift_up_probability: float = 0.5
    default_velocity: int = 70


@dataclass(frozen=True)
class DrumVoice:
    pitch: int
    beats: Tuple[int, ...] = ()
    velocity_multiplier: float = 1.0
    duration_factor: float = 0.3
    # Beats between hits for voices that play on a grid instead of ``beats``.
    note_value: float = 0.0


@dataclass(frozen=True)
class RhythmicFoundationConfig:
    beats_per_measure: int = 4
    kick: DrumVoice = DrumVoice(36, beats=(0, 2), velocity_multiplier=1.0, duration_factor=0.3)
    snare: DrumVoice = DrumVoice(38, beats=(1, 3), velocity_multiplier=0.9, duration_factor=0.2)
    hihat: DrumVoice = DrumVoice(42, velocity_multiplier=0.6, duration_factor=0.8, note_value=0.5)
    default_velocity: int = 70


@dataclass(frozen=True)
class HandHit:
    offset: float
    pitch: int
    velocity_multiplier: float = 1.0


@dataclass(frozen=True)
class HandPercussionConfig:
    loop_length: float = 4.0
    note_duration: float = 0.25
    pattern: Tuple[HandHit, ...] = (
        HandHit(0.0, 63, 1.0),
        HandHit(0.75, 62, 0.7),
        HandHit(1.5, 64, 0.85),
        HandHit(2.0, 60, 0.8),
        HandHit(2.5, 61, 0.7),
        HandHit(3.0, 64, 0.9),
        HandHit(3.5, 62, 0.6),
    )
    default_velocity: int = 70


@dataclass(frozen=True)
class AccentHitsConfig:
    hits_per_section: int = 2
    # Crash cymbal 1 and 2.
    instruments: Tuple[int, ...] = (49, 57)
    duration: float = 2.0
    velocity_multiplier: float = 0.9
    default_velocity: int = 70


@dataclass(frozen=True)
class ShakerConfig:
    pitch: int = 70
    note_value: float = 0.125
    pattern: Tuple[int, ...] = (1, 0, 1, 1, 1, 0, 1, 1)
    duration_factor: float = 0.8
    velocity_multiplier: float = 0.35
    default_velocity: int = 70


@dataclass(frozen=True)
class StrategyConfig:
    """Complete, immutable tuning table for every pattern."""

    durations: DurationFactors = field(default_factory=DurationFactors)
    velocity_modifiers: VelocityModifiers = field(default_factory=VelocityModifiers)
    rhythmic_spacing: RhythmicSpacing = field(default_factory=RhythmicSpacing)
    late_entry: LateEntryDefaults = field(default_factory=LateEntryDefaults)

    thematic_statement: ThematicConfig = field(default_factory=ThematicConfig)
    thematic_fragmented: FragmentedConfig = field(default_factory=FragmentedConfig)
    thematic_extended: ExtendedConfig = field(default_factory=ExtendedConfig)
    thematic_inverted: ThematicConfig = field(default_factory=ThematicConfig)
    thematic_retrograde: ThematicConfig = field(default_factory=ThematicConfig)

    gentle_breathing: BreathingConfig = field(default_factory=BreathingConfig)
    melodic_counterpoint: CounterpointConfig = field(default_factory=CounterpointConfig)
    foundation_pedal: PedalConfig = field(default_factory=PedalConfig)
    decorative_flourish: FlourishConfig = field(default_factory=FlourishConfig)
    minimal_accents: AccentsConfig = field(default_factory=AccentsConfig)
    harmonic_arpeggio: ArpeggioConfig = field(default_factory=ArpeggioConfig)
    sustained_pad: PadConfig = field(default_factory=PadConfig)

    rhythmic_foundation: RhythmicFoundationConfig = field(default_factory=RhythmicFoundationConfig)
    hand_percussion: HandPercussionConfig = field(default_factory=HandPercussionConfig)
    accent_hits: AccentHitsConfig = field(default_factory=AccentHitsConfig)
    gentle_shaker: ShakerConfig = field(default_factory=ShakerConfig)


DEFAULT_STRATEGIES = StrategyConfig()


def _merge(current: Any, override: Any, path: str) -> Any:
    """Return ``current`` with ``override`` applied, preserving its types."""

    if dataclasses.is_dataclass(current):
        if not isinstance(override, Mapping):
            raise ValueError(f"{path or 'strategies'} must be a mapping")
        known = {f.name for f in dataclasses.fields(current)}
        changes = {}
        for key, value in override.items():
            if key not in known:
                raise ValueError(f"Unknown strategy option: {path + '.' if path else ''}{key}")
            child_path = f"{path}.{key}" if path else key
            changes[key] = _merge(getattr(current, key), value, child_path)
        return dataclasses.replace(current, **changes)

    if isinstance(current, tuple):
        if not isinstance(override, (list, tuple)):
            raise ValueError(f"{path} must be a list")
        # Tuples of dataclasses (e.g. the hand percussion loop) are rebuilt
        # item by item from mappings.
        if current and dataclasses.is_dataclass(current[0]):
            item_type = type(current[0])
            return tuple(
                item if isinstance(item, item_type) else item_type(**item)
                for item in override
            )
        return tuple(override)

    return override


def strategies_from_dict(
    overrides: Mapping[str, Any], base: StrategyConfig = DEFAULT_STRATEGIES
) -> StrategyConfig:
    """Return a new :class:`StrategyConfig` with ``overrides`` merged into ``base``.

    ``overrides`` mirrors the dataclass tree using snake_case keys, e.g.
    ``{"thematic_fragmented": {"fragment_length": 4}}``. Only the supplied
    keys change; ``base`` itself is left untouched.

    Raises
    ------
    ValueError
        If a key does not name a known option or a nested value has the
        wrong shape.
    """

    return _merge(base, overrides, "")


def load_strategies(path: Optional[Path] = None) -> StrategyConfig:
    """Load strategy overrides from ``path`` if it exists.

    When ``path`` is ``None`` the ``PATTERN_COMPOSER_STRATEGIES`` environment
    variable is consulted. Missing files yield :data:`DEFAULT_STRATEGIES`;
    unreadable or invalid files are logged and also fall back to the
    defaults so a bad tuning file never prevents composition.
    """

    if path is None:
        env_path = os.environ.get(STRATEGIES_ENV_VAR)
        if not env_path:
            return DEFAULT_STRATEGIES
        path = Path(env_path).expanduser()

    path = Path(path)
    if not path.is_file():
        return DEFAULT_STRATEGIES
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        return strategies_from_dict(data)
    except (OSError, ValueError, TypeError) as exc:
        logging.error("Could not load strategies from %s: %s", path, exc)
        return DEFAULT_STRATEGIES


def _section_field(section: Any, name: str) -> Any:
    if isinstance(section, Mapping):
        return section.get(name)
    return getattr(section, name, None)


def calculate_late_entry_start(section: Any) -> float:
    """Return the effective start time of ``section`` after late entry.

    ``section`` may be a :class:`~pattern_composer.models.Section` or a
    mapping with ``start_time``, ``end_time`` and optional ``late_entry``.
    ``late_entry`` is clamped to ``0.0-1.0``; absent or non-positive values
    leave the start time unchanged.

    >>> calculate_late_entry_start({"start_time": 10, "end_time": 20, "late_entry": 0.5})
    15.0
    """

    start_time = _section_field(section, "start_time")
    late_entry = _section_field(section, "late_entry")
    if late_entry is None or late_entry <= 0:
        return start_time

    end_time = _section_field(section, "end_time")
    clamped = min(1.0, max(0.0, late_entry))
    return start_time + (end_time - start_time) * clamped


def apply_velocity_modifier(base_velocity: int, modifier: int) -> int:
    """Return ``base_velocity + modifier`` clamped to ``1-127``."""

    return max(1, min(127, base_velocity + modifier))


def humanize_value(
    value: float, humanize: float, random_fn: Callable[[], float] = random.random
) -> float:
    """Scale ``value`` by a random factor within ``±humanize``.

    ``random_fn`` must return floats in ``[0, 1)``; the patterns pass their
    section's :class:`~pattern_composer.dynamics.SeededRandom` so the jitter
    is reproducible.
    """

    if humanize <= 0:
        return value
    variation = (random_fn() * 2 - 1) * humanize
    return value * (1 + variation)
