"""Pytest configuration and fixtures."""

import pytest

from src.fingering_rl.config import SolverConfig


@pytest.fixture
def fast_config() -> SolverConfig:
    """Small training budget for tests that only check structure."""
    return SolverConfig(
        n_episodes=60,
        max_episode_length=100,
        evaluation_interval=30,
        eval_trajectories=2,
        random_seed=11,
    )
