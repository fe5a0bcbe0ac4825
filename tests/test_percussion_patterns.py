"""Behaviour of the fixed-pitch percussion patterns at tempo 120."""

import importlib
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

models = importlib.import_module("pattern_composer.models")
percussion = importlib.import_module("pattern_composer.percussion")
strategies = importlib.import_module("pattern_composer.strategies")
dynamics = importlib.import_module("pattern_composer.dynamics")


def make_context(start=0.0, end=2.0, **section_kw):
    section = models.Section(start_time=start, end_time=end, **section_kw)
    return models.PatternContext(
        section=section,
        tempo=120,
        strategies=strategies.DEFAULT_STRATEGIES,
        rng=dynamics.SeededRandom(dynamics.section_seed(start)),
    )


def by_pitch(notes, pitch):
    return [n for n in notes if n.pitch == pitch]


def test_rhythmic_foundation_one_measure():
    """Kick on 1 and 3, snare on 2 and 4, eighth-note hi-hats."""
    notes = percussion.rhythmic_foundation(make_context(end=2.0))
    assert [n.time for n in by_pitch(notes, 36)] == pytest.approx([0.0, 1.0])
    assert [n.time for n in by_pitch(notes, 38)] == pytest.approx([0.5, 1.5])
    hats = by_pitch(notes, 42)
    assert len(hats) == 8
    assert hats[1].time == pytest.approx(0.25)
    assert all(n.end <= 2.0 for n in notes)


def test_rhythmic_foundation_velocities():
    """Voices scale the section velocity by their multipliers."""
    notes = percussion.rhythmic_foundation(make_context(end=2.0, velocity_avg=100))
    assert by_pitch(notes, 36)[0].velocity == pytest.approx(100 / 127)
    assert by_pitch(notes, 38)[0].velocity == pytest.approx(100 / 127 * 0.9)
    assert by_pitch(notes, 42)[0].velocity == pytest.approx(100 / 127 * 0.6)


def test_rhythmic_foundation_late_entry():
    """Drums start at the late-entry point and only count whole beats."""
    notes = percussion.rhythmic_foundation(make_context(end=4.0, late_entry=0.5))
    assert min(n.time for n in notes) == pytest.approx(2.0)
    assert len(by_pitch(notes, 36)) == 2


def test_hand_percussion_loop():
    """A four-beat loop fits exactly once in two seconds."""
    notes = percussion.hand_percussion(make_context(end=2.0))
    assert [n.pitch for n in notes] == [63, 62, 64, 60, 61, 64, 62]
    assert notes[1].time == pytest.approx(0.375)
    assert notes[0].duration == pytest.approx(0.125)
    assert notes[1].velocity == pytest.approx(70 / 127 * 0.7)


def test_hand_percussion_truncates_last_loop():
    """Hits past the section end are left out of the final loop."""
    notes = percussion.hand_percussion(make_context(end=3.0))
    assert len(notes) == 10
    assert all(n.end <= 3.0 for n in notes)


def test_accent_hits_even_spacing():
    """Two hits split the section in thirds and alternate cymbals."""
    notes = percussion.accent_hits(make_context(end=9.0))
    assert [n.time for n in notes] == pytest.approx([3.0, 6.0])
    assert [n.pitch for n in notes] == [49, 57]
    assert all(n.duration == pytest.approx(2.0) for n in notes)
    assert notes[0].velocity == pytest.approx(70 / 127 * 0.9)


def test_accent_hits_sustain_truncated():
    """A hit near the end is shortened to fit."""
    notes = percussion.accent_hits(make_context(end=3.0))
    assert [n.duration for n in notes] == pytest.approx([2.0, 1.0])


def test_gentle_shaker_follows_bit_pattern():
    """Thirty-second notes with the configured gaps, very quiet."""
    notes = percussion.gentle_shaker(make_context(end=1.0))
    assert len(notes) == 12
    assert {n.pitch for n in notes} == {70}
    # Slot 1 of the pattern is a rest.
    assert notes[1].time == pytest.approx(0.125)
    assert notes[0].duration == pytest.approx(0.05)
    assert notes[0].velocity == pytest.approx(70 / 127 * 0.35)
    assert all(n.end <= 1.0 for n in notes)
