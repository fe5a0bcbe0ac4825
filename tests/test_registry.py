"""Tests for pattern lookup and classification."""

import importlib
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

registry = importlib.import_module("pattern_composer.registry")
thematic = importlib.import_module("pattern_composer.thematic")
supporting = importlib.import_module("pattern_composer.supporting")

THEMATIC = [
    "thematic_statement",
    "thematic_fragmented",
    "thematic_extended",
    "thematic_inverted",
    "thematic_retrograde",
]


def test_every_registered_name_resolves_to_a_callable():
    """Enumeration and lookup agree."""
    names = registry.get_all_pattern_names()
    assert len(names) == len(set(names)) == 21
    for name in names:
        assert callable(registry.get_pattern(name))
        assert registry.is_valid_pattern(name)


def test_aliases_resolve_but_are_not_enumerated():
    """Short thematic names map to their canonical pattern."""
    assert registry.get_pattern("statement") is thematic.thematic_statement
    assert registry.resolve_pattern_type("retrograde") is registry.PatternType.THEMATIC_RETROGRADE
    assert "statement" not in registry.get_all_pattern_names()


def test_enum_members_are_accepted():
    """``PatternType`` members work wherever names do."""
    assert registry.get_pattern(registry.PatternType.SILENCE) is supporting.silence
    assert registry.PatternType.SILENCE == "silence"


@pytest.mark.parametrize("name", [None, "", "jazz_solo", 42])
def test_unknown_names_are_soft(name):
    """Unknown names give ``None``/``False`` instead of raising."""
    assert registry.get_pattern(name) is None
    assert not registry.is_valid_pattern(name)
    assert not registry.is_thematic_pattern(name)
    assert not registry.is_supporting_pattern(name)


@pytest.mark.parametrize("name", THEMATIC + ["inverted"])
def test_thematic_classification(name):
    """Thematic patterns are thematic and not supporting."""
    assert registry.is_thematic_pattern(name)
    assert not registry.is_supporting_pattern(name)
    assert registry.get_pattern_family(name) is registry.PatternFamily.THEMATIC


def test_procedural_classification():
    """Accompaniment and percussion both count as supporting."""
    assert registry.is_supporting_pattern("foundation_pedal")
    assert registry.is_supporting_pattern("gentle_shaker")
    assert registry.get_pattern_family("gentle_shaker") is registry.PatternFamily.PERCUSSION
    assert registry.get_pattern_family("silence") is registry.PatternFamily.SUPPORTING
