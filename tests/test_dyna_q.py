"""Tests for the Dyna-Q and Q-learning solvers."""

import pytest

from src.fingering_rl.config import SolverConfig
from src.fingering_rl.dyna_q import DynaQSolver
from src.fingering_rl.errors import InvalidInputError
from src.fingering_rl.mdp import FingeringMDP
from src.fingering_rl.q_learning import QLearningSolver, SolverPhase
from src.fingering_rl.types import Hand, Part, make_groups


def _assert_matches_groups(policy, groups):
    assert len(policy) == len(groups)
    for fingering, group in zip(policy, groups):
        assert [e.pitch for e in fingering] == sorted(n.pitch for n in group)
        assert all(1 <= e.finger <= 5 for e in fingering)


def test_chord_between_single_notes(fast_config):
    groups = make_groups([[60], [64, 67], [60]])
    policy = DynaQSolver(fast_config).solve(Hand.RIGHT, groups)
    assert [len(f) for f in policy] == [1, 2, 1]
    _assert_matches_groups(policy, groups)


def test_same_seed_gives_identical_results(fast_config):
    groups = make_groups([[60], [62], [64], [65], [67], [65], [64], [62], [60]])
    first = DynaQSolver(fast_config)
    second = DynaQSolver(fast_config)
    policy_a = first.solve(Hand.RIGHT, groups)
    policy_b = second.solve(Hand.RIGHT, groups)
    assert policy_a == policy_b
    assert first.value_table == second.value_table
    assert first.history == second.history


def test_solver_instance_is_reusable(fast_config):
    groups = make_groups([[60], [64], [67], [72]])
    solver = DynaQSolver(fast_config)
    policy_a = solver.solve(Hand.RIGHT, groups)
    table_a = dict(solver.value_table)
    policy_b = solver.solve(Hand.RIGHT, groups)
    assert policy_a == policy_b
    assert solver.value_table == table_a


def test_short_melody_converges_early():
    config = SolverConfig(n_episodes=6000, evaluation_interval=300, random_seed=3)
    solver = DynaQSolver(config)
    groups = make_groups([[60], [62], [64], [65], [67]])
    policy = solver.solve(Hand.RIGHT, groups)

    assert solver.converged
    assert solver.episodes_completed < config.n_episodes
    assert solver.phase == SolverPhase.DONE
    _assert_matches_groups(policy, groups)


def test_progress_reported_at_checkpoints(fast_config):
    calls = []
    DynaQSolver(fast_config).solve(
        Hand.RIGHT,
        make_groups([[60], [62], [64]]),
        on_progress=lambda episode, total: calls.append((episode, total)),
    )
    assert calls
    assert all(total == fast_config.n_episodes for _, total in calls)
    assert all(episode % fast_config.evaluation_interval == 0 for episode, _ in calls)


def test_left_hand_chords(fast_config):
    groups = make_groups([[48, 52, 55], [43], [48, 55]])
    policy = DynaQSolver(fast_config).solve(Hand.LEFT, groups)
    _assert_matches_groups(policy, groups)


def test_segment_anchoring_shows_in_policy(fast_config):
    groups = make_groups([[60], [62], [64], [65]])
    policy = DynaQSolver(fast_config).solve(Hand.RIGHT, groups, part=Part.MIDDLE)
    assert policy[0][0].finger == 5
    assert policy[-1][0].finger == 5


def test_wide_chord_policy_is_truncated(fast_config):
    groups = make_groups([[60, 62, 64, 65, 67, 69], [72]])
    policy = DynaQSolver(fast_config).solve(Hand.RIGHT, groups)
    assert [e.pitch for e in policy[0]] == [62, 64, 65, 67, 69]


@pytest.mark.parametrize(
    "groups, category",
    [
        ([], "empty_sequence"),
        ([()], "empty_group"),
        (make_groups([[60], [20]]), "pitch_range"),
    ],
)
def test_invalid_input_rejected_before_training(fast_config, groups, category):
    solver = DynaQSolver(fast_config)
    with pytest.raises(InvalidInputError) as excinfo:
        solver.solve(Hand.RIGHT, groups)
    assert excinfo.value.category == category
    assert solver.episodes_completed == 0
    assert solver.phase == SolverPhase.IDLE


def test_q_learning_baseline(fast_config):
    groups = make_groups([[60], [64, 67], [62], [60]])
    solver = QLearningSolver(fast_config)
    policy = solver.solve(Hand.RIGHT, groups)
    _assert_matches_groups(policy, groups)
    assert solver.value_table
    assert solver.episodes_completed > 0


def test_dyna_q_builds_model(fast_config):
    solver = DynaQSolver(fast_config)
    solver.solve(Hand.RIGHT, make_groups([[60], [62], [64]]))
    assert solver.model
    assert (0, ()) in solver.initial_states
    assert not solver.queue
    for next_key, predecessors in solver.predecessors.items():
        for key in predecessors:
            assert solver.model[key][0].key == next_key


# ── Prioritized sweeping ──────────────────────────────────────

def _one_greedy_episode(solver_cls, **overrides):
    config = SolverConfig(exploration_rate=0.0, random_seed=0, **overrides)
    solver = solver_cls(config)
    mdp = FingeringMDP(Hand.RIGHT, make_groups([[60], [62], [64]]))
    solver._run_episode(mdp)
    start = mdp.initial_state()
    action = mdp.action_space(start)[0]
    return solver, mdp, (start.key, action)


def test_sweep_carries_later_rewards_back_to_the_start():
    q_solver, mdp, start_key = _one_greedy_episode(QLearningSolver)
    dyna_solver, _, _ = _one_greedy_episode(DynaQSolver)

    first_reward = mdp.reward(mdp.initial_state(), start_key[1])
    # One-step update only: lr * reward, successors are still unvalued
    assert q_solver.value_table[start_key] == pytest.approx(0.99 * first_reward)
    # Sweeping has propagated the second and third rewards as well
    assert dyna_solver.value_table[start_key] > 2 * q_solver.value_table[start_key]
    assert not dyna_solver.queue


def test_high_threshold_suppresses_predecessor_updates():
    """With no re-enqueued predecessors, Dyna-Q reduces to one-step Q-learning."""
    q_solver, _, start_key = _one_greedy_episode(QLearningSolver, priority_threshold=1e9)
    dyna_solver, _, _ = _one_greedy_episode(DynaQSolver, priority_threshold=1e9)

    assert dyna_solver.value_table == q_solver.value_table
    assert start_key in dyna_solver.value_table
