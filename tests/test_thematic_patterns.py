"""Behaviour of the theme-dependent patterns.

Each test builds a :class:`PatternContext` directly so the pattern is
exercised without the composer. Tempo 120 is used throughout, so one beat is
half a second.
"""

import importlib
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

models = importlib.import_module("pattern_composer.models")
thematic = importlib.import_module("pattern_composer.thematic")
strategies = importlib.import_module("pattern_composer.strategies")
dynamics = importlib.import_module("pattern_composer.dynamics")
note_utils = importlib.import_module("pattern_composer.note_utils")


def make_context(theme, start=0.0, end=4.0, scale=(), **section_kw):
    section = models.Section(start_time=start, end_time=end, **section_kw)
    return models.PatternContext(
        section=section,
        tempo=120,
        strategies=strategies.DEFAULT_STRATEGIES,
        rng=dynamics.SeededRandom(dynamics.section_seed(start)),
        theme=theme,
        scale=tuple(scale),
    )


def theme_of(notes, rhythm=None):
    return models.Theme(notes=tuple(notes), rhythm=tuple(rhythm or [1.0] * len(notes)))


def test_statement_drops_notes_that_do_not_fit():
    """Three one-beat notes in a 1.5 second section yield exactly two."""
    ctx = make_context(theme_of([60, 62, 64]), end=1.5)
    notes = thematic.thematic_statement(ctx)
    assert [n.time for n in notes] == [0.0, 0.5]
    assert [n.pitch for n in notes] == [60, 62]
    assert all(n.end <= 1.5 for n in notes)


def test_statement_scales_durations_and_velocity():
    """Durations are beat × quarter × factor; velocity is normalised."""
    ctx = make_context(theme_of([60, 62], [2.0, 1.0]), velocity_avg=100)
    notes = thematic.thematic_statement(ctx)
    assert notes[0].duration == pytest.approx(1.0 * 0.95)
    assert notes[1].time == pytest.approx(1.0)
    assert notes[1].duration == pytest.approx(0.5 * 0.95)
    assert notes[0].velocity == pytest.approx(100 / 127)


def test_statement_uses_default_velocity_when_missing():
    """Sections without ``velocity_avg`` fall back to the configured default."""
    notes = thematic.thematic_statement(make_context(theme_of([60])))
    assert notes[0].velocity == pytest.approx(80 / 127)


def test_statement_honours_late_entry():
    """Late entry moves the first note into the section."""
    ctx = make_context(theme_of([60, 62]), end=4.0, late_entry=0.5)
    notes = thematic.thematic_statement(ctx)
    assert notes[0].time == pytest.approx(2.0)


def test_statement_requires_theme():
    """Without a theme the pattern refuses to run."""
    with pytest.raises(models.PatternError):
        thematic.thematic_statement(make_context(None))


def test_fragmented_sequence_transposes_each_repetition():
    """With ``sequence`` the second repetition is two semitones higher."""
    ctx = make_context(theme_of([60, 62, 64, 65]), end=4.0, sequence=True)
    notes = thematic.thematic_fragmented(ctx)
    pitches = [n.pitch for n in notes]
    assert pitches[:3] == [60, 62, 64]
    assert pitches[3:6] == [p + 2 for p in pitches[:3]]


def test_fragmented_without_sequence_repeats_verbatim():
    """Repetitions are identical when ``sequence`` is off."""
    notes = thematic.thematic_fragmented(make_context(theme_of([60, 62, 64, 65]), end=4.0))
    assert [n.pitch for n in notes] == [60, 62, 64, 60, 62, 64]


def test_fragmented_discards_partial_fragments():
    """Only whole fragments are played."""
    notes = thematic.thematic_fragmented(make_context(theme_of([60, 62, 64]), end=4.0))
    # Fragments take 1.5 s; a third one starting at 3.0 would overrun.
    assert len(notes) == 6
    assert max(n.end for n in notes) <= 4.0


def test_fragmented_drops_out_of_range_pitches():
    """Transposed pitches above 127 are silently skipped."""
    ctx = make_context(theme_of([125, 126, 127]), end=3.0, sequence=True)
    notes = thematic.thematic_fragmented(ctx)
    assert [n.pitch for n in notes] == [125, 126, 127, 127]


def test_fragmented_requires_enough_notes():
    """The theme must contain at least one full fragment."""
    with pytest.raises(models.PatternError, match="at least 3"):
        thematic.thematic_fragmented(make_context(theme_of([60, 62])))


def test_extended_continues_in_whole_tones_without_scale():
    """A rising theme continues upwards two semitones per step."""
    notes = thematic.thematic_extended(make_context(theme_of([60, 62, 64]), end=3.0))
    assert [n.pitch for n in notes] == [60, 62, 64, 66, 68]
    assert all(n.end <= 3.0 for n in notes)


def test_extended_follows_scale():
    """With a scale the continuation moves by scale degrees."""
    scale = note_utils.get_scale(60, "major")
    notes = thematic.thematic_extended(make_context(theme_of([60, 62, 64]), end=3.0, scale=scale))
    assert [n.pitch for n in notes] == [60, 62, 64, 65, 67]


def test_extended_descends_for_falling_theme():
    """A falling contour continues downwards."""
    notes = thematic.thematic_extended(make_context(theme_of([64, 62, 60]), end=3.0))
    assert [n.pitch for n in notes][3:] == [58, 56]


def test_extended_stops_at_midi_boundary():
    """The walk ends rather than leaving ``0-127``."""
    notes = thematic.thematic_extended(make_context(theme_of([124, 126]), end=10.0))
    assert [n.pitch for n in notes] == [124, 126]


def test_inverted_mirrors_intervals():
    """Rising steps become falling steps from the same first note."""
    notes = thematic.thematic_inverted(make_context(theme_of([60, 62, 67])))
    assert [n.pitch for n in notes] == [60, 58, 53]


def test_inverted_clamps_pitches():
    """Mirrored pitches below zero are clamped."""
    notes = thematic.thematic_inverted(make_context(theme_of([2, 10])))
    assert [n.pitch for n in notes] == [2, 0]


def test_inverted_requires_two_notes():
    """A single note has no intervals to invert."""
    with pytest.raises(models.PatternError, match="at least 2"):
        thematic.thematic_inverted(make_context(theme_of([60])))


def test_retrograde_reverses_notes_and_rhythm():
    """Pitches and rhythm are both reversed."""
    notes = thematic.thematic_retrograde(make_context(theme_of([60, 62, 67], [1.0, 1.0, 2.0])))
    assert [n.pitch for n in notes] == [67, 62, 60]
    assert [n.time for n in notes] == pytest.approx([0.0, 1.0, 1.5])
