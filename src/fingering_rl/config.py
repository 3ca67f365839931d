"""Configuration — solver and reward settings loaded from YAML.

All tunable numbers live in ``configs/fingering.yaml``::

    solver:
      n_episodes: 10000
      ...
    reward:
      long_note_ticks: 15120
      ...

:func:`load_config` validates that every required key is present and
raises a ``ValueError`` naming the missing key otherwise.  The dataclass
defaults mirror the shipped YAML so the engine can also be driven
programmatically without a file.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml


# Fixed, not configurable.
DISCOUNT: float = 0.99

DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parents[2] / "configs" / "fingering.yaml"


@dataclass(frozen=True)
class SolverConfig:
    """Training and orchestration settings."""

    n_episodes: int = 10000
    max_episode_length: int = 100
    learning_rate: float = 0.99
    exploration_rate: float = 0.8
    random_seed: int = 0
    segment_size: int = 50
    evaluation_interval: int = 300
    eval_trajectories: int = 20
    convergence_precision: int = 1
    priority_threshold: float = 3.0
    replicas: int = 1
    max_workers: int | None = None

    def with_overrides(self, **overrides: Any) -> "SolverConfig":
        """Return a copy with the non-``None`` overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


@dataclass(frozen=True)
class RewardConfig:
    """Reward-shaping constants (tuned, kept as configuration)."""

    long_note_ticks: int = 15120
    finger_strength: tuple[float, ...] = (2, 4, 5, 3, 1)
    strength_scale: float = 0.01


@dataclass(frozen=True)
class FingeringConfig:
    solver: SolverConfig = field(default_factory=SolverConfig)
    reward: RewardConfig = field(default_factory=RewardConfig)


_REQUIRED_SOLVER_KEYS: list[str] = [
    "n_episodes",
    "max_episode_length",
    "learning_rate",
    "exploration_rate",
    "random_seed",
    "segment_size",
    "evaluation_interval",
    "priority_threshold",
]
_REQUIRED_REWARD_KEYS: list[str] = [
    "long_note_ticks",
    "finger_strength",
    "strength_scale",
]


def _require(section: dict[str, Any], keys: list[str], name: str, path: Path) -> None:
    for key in keys:
        if key not in section:
            raise ValueError(f"Missing required key '{name}.{key}' in config: {path}")


def _known(cls: type, section: dict[str, Any], name: str, path: Path) -> dict[str, Any]:
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(section) - allowed)
    if unknown:
        raise ValueError(f"Unknown key(s) {unknown} in '{name}' section of config: {path}")
    return dict(section)


def load_config(config_path: str | Path | None = None) -> FingeringConfig:
    """Load and validate the fingering configuration.

    Args:
        config_path: Path to the YAML file.
            Defaults to ``configs/fingering.yaml`` at the project root.

    Returns:
        A :class:`FingeringConfig`.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a section or required key is missing, a key is
            unknown, or a value is out of range.
    """
    path = DEFAULT_CONFIG_PATH if config_path is None else Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Fingering config not found: {path}")

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config must be a mapping, got {type(raw).__name__}: {path}")

    for section in ("solver", "reward"):
        if not isinstance(raw.get(section), dict):
            raise ValueError(f"Missing required section '{section}' in config: {path}")

    _require(raw["solver"], _REQUIRED_SOLVER_KEYS, "solver", path)
    _require(raw["reward"], _REQUIRED_REWARD_KEYS, "reward", path)

    solver_kwargs = _known(SolverConfig, raw["solver"], "solver", path)
    reward_kwargs = _known(RewardConfig, raw["reward"], "reward", path)

    strength = reward_kwargs["finger_strength"]
    if not isinstance(strength, list) or len(strength) != 5:
        raise ValueError(f"'reward.finger_strength' must list 5 weights: {path}")
    reward_kwargs["finger_strength"] = tuple(float(w) for w in strength)

    solver = SolverConfig(**solver_kwargs)
    if solver.n_episodes <= 0 or solver.segment_size <= 0 or solver.evaluation_interval <= 0:
        raise ValueError(
            f"'solver.n_episodes', 'segment_size' and 'evaluation_interval' "
            f"must be positive: {path}"
        )
    if solver.replicas < 1:
        raise ValueError(f"'solver.replicas' must be at least 1: {path}")

    return FingeringConfig(solver=solver, reward=RewardConfig(**reward_kwargs))
