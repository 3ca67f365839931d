"""Dyna-Q solver — Q-learning plus prioritized-sweeping planning.

Every real step:
    1. pick an ε-greedy action and observe its reward / successor
    2. record ``(s, a) → (s', r)`` in the transition model and register
       ``(s, a)`` as a predecessor of ``s'``
    3. push ``(s, a)`` with priority ``|TD error|``
    4. drain the queue: replay the top pair from the model, update it,
       then re-enqueue each predecessor of its state whose ``|TD error|``
       exceeds ``priority_threshold``

The environment is deterministic, so the model stores one sample per
pair.  Updates ripple backward from wherever the table changed, which
is what makes the sweep converge much faster than plain Q-learning.
"""

from __future__ import annotations

import logging

from .config import DISCOUNT, RewardConfig, SolverConfig
from .mdp import FingeringMDP
from .priority import PriorityQueue
from .q_learning import QLearningSolver, max_value
from .types import FingeringState, StateActionKey, StateKey

logger = logging.getLogger(__name__)


class DynaQSolver(QLearningSolver):
    """Dyna-Q with prioritized sweeping.

    Each instance owns its value table, transition model, predecessor
    index and priority queue; nothing is shared between instances.

    Args:
        config: Training settings; defaults to :class:`SolverConfig`.
        reward_config: Reward constants passed to the MDP.
    """

    def __init__(
        self,
        config: SolverConfig | None = None,
        reward_config: RewardConfig | None = None,
    ) -> None:
        super().__init__(config, reward_config)
        self.model: dict[StateActionKey, tuple[FingeringState, float]] = {}
        # Ordered sets (dict keys) keep sweeps deterministic.
        self.predecessors: dict[StateKey, dict[StateActionKey, None]] = {}
        self.queue: PriorityQueue[StateActionKey] = PriorityQueue()
        self.initial_states: set[StateKey] = set()

    def _reset(self) -> None:
        super()._reset()
        self.model = {}
        self.predecessors = {}
        self.queue.clear()
        self.initial_states = set()

    def _sweep(self, mdp: FingeringMDP) -> None:
        lr = self.config.learning_rate
        theta = self.config.priority_threshold

        while self.queue:
            key, _ = self.queue.pop()
            entry = self.model.get(key)
            if entry is None:
                continue
            next_state, reward = entry

            current = self._q(key)
            target = reward + DISCOUNT * self._max_value(mdp, next_state)
            self.value_table[key] = current + lr * (target - current)

            state_key = key[0]
            if state_key in self.initial_states:
                continue
            predecessors = self.predecessors.get(state_key)
            if not predecessors:
                continue

            state = mdp.state_at(*state_key)
            best = max_value(self.value_table, state_key, mdp.action_space(state))
            for pre_key in predecessors:
                _, pre_reward = self.model[pre_key]
                priority = abs(pre_reward + DISCOUNT * best - self._q(pre_key))
                if priority > theta:
                    self.queue.push(pre_key, priority)

    def _run_episode(self, mdp: FingeringMDP) -> None:
        state = mdp.initial_state()
        self.initial_states.add(state.key)

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
            self.model[key] = (next_state, reward)
            self.predecessors.setdefault(next_state.key, {})[key] = None

            td_error = reward + DISCOUNT * self._max_value(mdp, next_state) - self._q(key)
            self.queue.push(key, abs(td_error))
            self._sweep(mdp)

            state = next_state
