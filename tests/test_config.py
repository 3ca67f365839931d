"""Tests for YAML configuration loading and hardware detection."""

import pytest
import yaml

from src.config import recommended_workers, setup_hardware
from src.fingering_rl.config import (
    DEFAULT_CONFIG_PATH,
    FingeringConfig,
    SolverConfig,
    load_config,
)


def _write_config(tmp_path, mutate=None):
    with open(DEFAULT_CONFIG_PATH, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if mutate is not None:
        mutate(raw)
    path = tmp_path / "fingering.yaml"
    path.write_text(yaml.safe_dump(raw), encoding="utf-8")
    return path


def test_default_config_matches_dataclass_defaults():
    config = load_config()
    assert config == FingeringConfig()
    assert config.solver.n_episodes == 10000
    assert config.solver.priority_threshold == 3.0
    assert config.reward.finger_strength == (2.0, 4.0, 5.0, 3.0, 1.0)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_missing_key_is_named(tmp_path):
    path = _write_config(tmp_path, lambda raw: raw["solver"].pop("learning_rate"))
    with pytest.raises(ValueError, match="solver.learning_rate"):
        load_config(path)


def test_missing_section_raises(tmp_path):
    path = _write_config(tmp_path, lambda raw: raw.pop("reward"))
    with pytest.raises(ValueError, match="reward"):
        load_config(path)


def test_unknown_key_raises(tmp_path):
    path = _write_config(tmp_path, lambda raw: raw["solver"].update(gamma=0.9))
    with pytest.raises(ValueError, match="gamma"):
        load_config(path)


def test_finger_strength_needs_five_weights(tmp_path):
    path = _write_config(tmp_path, lambda raw: raw["reward"].update(finger_strength=[1, 2]))
    with pytest.raises(ValueError, match="finger_strength"):
        load_config(path)


def test_non_positive_budget_raises(tmp_path):
    path = _write_config(tmp_path, lambda raw: raw["solver"].update(n_episodes=0))
    with pytest.raises(ValueError, match="positive"):
        load_config(path)


def test_optional_keys_default(tmp_path):
    def drop_optional(raw):
        for key in ("replicas", "max_workers", "eval_trajectories", "convergence_precision"):
            raw["solver"].pop(key)

    config = load_config(_write_config(tmp_path, drop_optional))
    assert config.solver.replicas == 1
    assert config.solver.max_workers is None


def test_with_overrides_skips_none():
    config = SolverConfig().with_overrides(random_seed=4, n_episodes=None)
    assert config.random_seed == 4
    assert config.n_episodes == 10000


def test_recommended_workers():
    assert recommended_workers(1) == 1
    assert recommended_workers(4) == 2
    assert recommended_workers(16) == 4


def test_setup_hardware_reports_workers():
    info = setup_hardware()
    assert {"os", "arch", "python_version", "cores", "workers"} <= set(info)
    assert info["workers"] == recommended_workers(info["cores"])
