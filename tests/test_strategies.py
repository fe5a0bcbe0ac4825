"""Tests for the strategy table and its shared arithmetic helpers."""

import dataclasses
import importlib
import json
import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

strategies = importlib.import_module("pattern_composer.strategies")
models = importlib.import_module("pattern_composer.models")


def test_default_table_is_frozen():
    """The default table cannot be mutated in place."""
    with pytest.raises(dataclasses.FrozenInstanceError):
        strategies.DEFAULT_STRATEGIES.foundation_pedal.velocity_modifier = 0


def test_default_values():
    """A few representative defaults used by the patterns."""
    table = strategies.DEFAULT_STRATEGIES
    assert table.durations.staccato == 0.4
    assert table.durations.molto_legato == 1.15
    assert table.thematic_fragmented.fragment_length == 3
    assert table.thematic_fragmented.sequence_interval == 2
    assert table.foundation_pedal.sustain_gap == 0.05
    assert table.rhythmic_spacing.moderate_breathing.interval == 2.0
    assert table.rhythmic_foundation.kick.pitch == 36


def test_strategies_from_dict_overrides_only_given_keys():
    """Overrides produce a new table and leave the base untouched."""
    tuned = strategies.strategies_from_dict(
        {"foundation_pedal": {"velocity_modifier": -10}, "durations": {"staccato": 0.3}}
    )
    assert tuned.foundation_pedal.velocity_modifier == -10
    assert tuned.foundation_pedal.sustain_gap == 0.05
    assert tuned.durations.staccato == 0.3
    assert strategies.DEFAULT_STRATEGIES.foundation_pedal.velocity_modifier == -25


def test_strategies_from_dict_rebuilds_nested_tuples():
    """Lists of mappings become tuples of the configured dataclass."""
    tuned = strategies.strategies_from_dict(
        {
            "hand_percussion": {"pattern": [{"offset": 0, "pitch": 60}]},
            "gentle_shaker": {"pattern": [1, 0]},
            "rhythmic_foundation": {"kick": {"beats": [0]}},
        }
    )
    assert tuned.hand_percussion.pattern == (strategies.HandHit(0, 60),)
    assert tuned.gentle_shaker.pattern == (1, 0)
    assert tuned.rhythmic_foundation.kick.beats == (0,)
    assert tuned.rhythmic_foundation.kick.pitch == 36


def test_strategies_from_dict_rejects_unknown_keys():
    """Typos in override files are reported instead of ignored."""
    with pytest.raises(ValueError, match="foundation_pedal.volume"):
        strategies.strategies_from_dict({"foundation_pedal": {"volume": 3}})
    with pytest.raises(ValueError, match="Unknown strategy option: nonsense"):
        strategies.strategies_from_dict({"nonsense": {}})


def test_load_strategies_from_env(tmp_path, monkeypatch):
    """The environment variable names a JSON override file."""
    path = tmp_path / "tuning.json"
    path.write_text(json.dumps({"thematic_fragmented": {"fragment_length": 4}}))
    monkeypatch.setenv(strategies.STRATEGIES_ENV_VAR, str(path))
    tuned = strategies.load_strategies()
    assert tuned.thematic_fragmented.fragment_length == 4


def test_load_strategies_without_file_returns_defaults(tmp_path, monkeypatch):
    """No variable or a missing file means the default table."""
    monkeypatch.delenv(strategies.STRATEGIES_ENV_VAR, raising=False)
    assert strategies.load_strategies() is strategies.DEFAULT_STRATEGIES
    assert strategies.load_strategies(tmp_path / "absent.json") is strategies.DEFAULT_STRATEGIES


def test_load_strategies_logs_invalid_file(tmp_path, caplog):
    """Broken JSON is logged and the defaults are used."""
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with caplog.at_level(logging.ERROR):
        table = strategies.load_strategies(path)
    assert table is strategies.DEFAULT_STRATEGIES
    assert "Could not load strategies" in caplog.text


def test_late_entry_start():
    """Late entry delays the start by a fraction of the section."""
    section = {"start_time": 10, "end_time": 20, "late_entry": 0.5}
    assert strategies.calculate_late_entry_start(section) == 15
    assert strategies.calculate_late_entry_start({"start_time": 10, "end_time": 20}) == 10
    assert strategies.calculate_late_entry_start(
        {"start_time": 10, "end_time": 20, "late_entry": 0}
    ) == 10


def test_late_entry_is_clamped():
    """Values above one are treated as one."""
    section = models.Section(start_time=2.0, end_time=4.0, late_entry=3.0)
    assert strategies.calculate_late_entry_start(section) == 4.0


def test_apply_velocity_modifier_clamps():
    """Velocities are clamped to ``1-127``."""
    assert strategies.apply_velocity_modifier(125, 10) == 127
    assert strategies.apply_velocity_modifier(5, -20) == 1
    assert strategies.apply_velocity_modifier(80, -25) == 55


def test_humanize_value():
    """Humanisation scales by ``1 ± fraction`` and is identity at zero."""
    assert strategies.humanize_value(2.0, 0.0, lambda: 0.9) == 2.0
    assert strategies.humanize_value(2.0, 0.1, lambda: 0.5) == pytest.approx(2.0)
    assert strategies.humanize_value(2.0, 0.1, lambda: 0.0) == pytest.approx(1.8)
    assert strategies.humanize_value(2.0, 0.1, lambda: 1.0) == pytest.approx(2.2)
