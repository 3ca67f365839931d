"""Q-Learning solver — tabular learning of a fingering policy.

State:  ``(index, previous fingering)`` (see :class:`FingeringMDP`)
Value:  ``value_table[(state_key, action)]``, missing entries read as 0.
Output: the greedy fingering path through the learned table.

Episode loop:
    1. ε-greedy action from the MDP action space
    2. reward and deterministic successor from the MDP
    3. one-step Q update (overridden by :class:`DynaQSolver`)

Every ``evaluation_interval`` episodes the greedy policy is rolled out;
training stops early once the rounded average return repeats.

Design choices:
    - The only randomness is a ``numpy.random.Generator`` seeded from
      ``SolverConfig.random_seed`` at the start of every ``solve``.
    - Ties between equally valued actions go to the first one listed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from enum import Enum

import numpy as np

from .config import DISCOUNT, RewardConfig, SolverConfig
from .errors import validate_groups
from .geometry import round_half_up
from .mdp import FingeringMDP
from .types import (
    Fingering,
    FingeringState,
    Hand,
    NoteGroup,
    Part,
    StateActionKey,
    StateKey,
    ValueTable,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class SolverPhase(str, Enum):
    IDLE = "idle"
    TRAINING = "training"
    EVALUATING = "evaluating"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"
    POLICY_EXTRACTION = "policy_extraction"
    DONE = "done"


# ── Table helpers (shared with the segmentation merge path) ───

def greedy_action(table: ValueTable, state_key: StateKey, actions: Sequence[Fingering]) -> Fingering:
    """Highest-valued action; the first one wins ties."""
    best_action = actions[0]
    best_value = table.get((state_key, best_action), 0.0)
    for action in actions[1:]:
        value = table.get((state_key, action), 0.0)
        if value > best_value:
            best_value = value
            best_action = action
    return best_action


def max_value(table: ValueTable, state_key: StateKey, actions: Sequence[Fingering]) -> float:
    if not actions:
        return 0.0
    return max(table.get((state_key, action), 0.0) for action in actions)


def extract_policy(mdp: FingeringMDP, table: ValueTable) -> list[Fingering]:
    """Walk *table* greedily from the initial state to the end of the segment.

    Groups without legal actions get the ascending default fingering.
    """
    policy: list[Fingering] = []
    state = mdp.initial_state()
    while not mdp.is_terminal(state):
        actions = mdp.action_space(state)
        if actions:
            action = greedy_action(table, state.key, actions)
        else:
            action = mdp.default_fingering(state.index)
        policy.append(action)
        state = mdp.next_state(state, action)
    return policy


def greedy_return(mdp: FingeringMDP, table: ValueTable) -> float:
    """Total reward of one greedy (no exploration) rollout."""
    total = 0.0
    state = mdp.initial_state()
    while not mdp.is_terminal(state):
        actions = mdp.action_space(state)
        if not actions:
            break
        action = greedy_action(table, state.key, actions)
        total += mdp.reward(state, action)
        state = mdp.next_state(state, action)
    return total


class QLearningSolver:
    """Tabular ε-greedy Q-learning over a :class:`FingeringMDP`.

    Args:
        config: Training settings; defaults to :class:`SolverConfig`.
        reward_config: Reward constants passed to the MDP.
    """

    def __init__(
        self,
        config: SolverConfig | None = None,
        reward_config: RewardConfig | None = None,
    ) -> None:
        self.config = config or SolverConfig()
        self.reward_config = reward_config or RewardConfig()
        self.phase = SolverPhase.IDLE
        self.value_table: ValueTable = {}
        self.history: list[tuple[int, float]] = []
        self.episodes_completed = 0
        self.converged = False
        self._rng = np.random.default_rng(self.config.random_seed)

    # ── Table access ──────────────────────────────────────────

    def _q(self, key: StateActionKey) -> float:
        return self.value_table.get(key, 0.0)

    def _max_value(self, mdp: FingeringMDP, state: FingeringState) -> float:
        return max_value(self.value_table, state.key, mdp.action_space(state))

    def _select_action(self, state: FingeringState, actions: list[Fingering]) -> Fingering:
        if self._rng.random() < self.config.exploration_rate:
            return actions[int(self._rng.integers(len(actions)))]
        return greedy_action(self.value_table, state.key, actions)

    # ── Training ──────────────────────────────────────────────

    def _reset(self) -> None:
        self.value_table = {}
        self.history = []
        self.episodes_completed = 0
        self.converged = False
        self._rng = np.random.default_rng(self.config.random_seed)

    def _run_episode(self, mdp: FingeringMDP) -> None:
        state = mdp.initial_state()
        lr = self.config.learning_rate
        for _ in range(self.config.max_episode_length):
            if mdp.is_terminal(state):
                break
            actions = mdp.action_space(state)
            if not actions:
                logger.debug("No actions at index %d, truncating episode", state.index)
                break

            action = self._select_action(state, actions)
            reward = mdp.reward(state, action)
            next_state = mdp.next_state(state, action)

            key = (state.key, action)
            current = self._q(key)
            target = reward + DISCOUNT * self._max_value(mdp, next_state)
            self.value_table[key] = current + lr * (target - current)

            state = next_state

    def evaluate(self, mdp: FingeringMDP) -> float:
        """Average return of greedy rollouts under the current table."""
        n_traj = max(1, min(self.config.eval_trajectories, len(mdp)))
        returns = [greedy_return(mdp, self.value_table) for _ in range(n_traj)]
        return float(np.mean(returns))

    def solve(
        self,
        hand: Hand,
        groups: Sequence[NoteGroup],
        part: Part = Part.WHOLE,
        lead_in_duration: int = 0,
        on_progress: ProgressCallback | None = None,
    ) -> list[Fingering]:
        """Learn a fingering policy for *groups* and return it.

        Args:
            hand: Hand being fingered.
            groups: Ordered NoteGroups (one segment or a whole piece).
            part: Segment tag, controls boundary anchoring.
            lead_in_duration: Duration of the group preceding *groups*.
            on_progress: Called as ``(episode, n_episodes)`` at every
                evaluation checkpoint.

        Returns:
            One Fingering per NoteGroup.

        Raises:
            InvalidInputError: If *groups* is empty or malformed.
        """
        validate_groups(groups)
        self._reset()
        mdp = FingeringMDP(hand, groups, part, self.reward_config, lead_in_duration)

        cfg = self.config
        old_avg = 0.0
        self.phase = SolverPhase.TRAINING

        for episode in range(1, cfg.n_episodes + 1):
            self._run_episode(mdp)
            self.episodes_completed = episode

            if episode % cfg.evaluation_interval != 0:
                continue

            self.phase = SolverPhase.EVALUATING
            new_avg = self.evaluate(mdp)
            self.history.append((episode, new_avg))
            if on_progress is not None:
                on_progress(episode, cfg.n_episodes)
            logger.info("On iteration %d, returns: %.3f", episode, new_avg)

            precision = cfg.convergence_precision
            if round_half_up(old_avg, precision) == round_half_up(new_avg, precision):
                self.converged = True
                logger.info("Converged at episode %d", episode)
                break
            old_avg = new_avg
            self.phase = SolverPhase.TRAINING

        self.phase = SolverPhase.CONVERGED if self.converged else SolverPhase.EXHAUSTED
        logger.debug("Training finished (%s) after %d episodes", self.phase.value, self.episodes_completed)

        self.phase = SolverPhase.POLICY_EXTRACTION
        policy = extract_policy(mdp, self.value_table)
        self.phase = SolverPhase.DONE
        return policy
