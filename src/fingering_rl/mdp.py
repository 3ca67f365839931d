"""MDP façade — the fingering problem as seen by the solvers.

State:      :class:`FingeringState` — ``(index, previous fingering)`` plus
            the group about to be played and the segment tag.
Action:     a Fingering for the group at ``state.index``.
Transition: deterministic; the action becomes the next state's fingering.
Reward:     :class:`FingeringRewardModel`.

Action spaces are cached per state key: the candidate enumeration is the
hot spot of both real steps and planning sweeps.
"""

from __future__ import annotations

from collections.abc import Sequence

from .candidates import (
    MAX_CHORD_NOTES,
    assign_fingering,
    build_fingering,
    get_1to1_fingering,
)
from .config import RewardConfig
from .reward import FingeringRewardModel
from .types import (
    Fingering,
    FingeringState,
    Hand,
    NoteGroup,
    Part,
    StateKey,
    group_duration,
    group_pitches,
)

# Single notes at a segment boundary are pinned to this finger.
ANCHOR_FINGER: int = 5


class FingeringMDP:
    """Fingering MDP for one hand over one segment.

    Args:
        hand: Hand being fingered.
        groups: NoteGroups of the segment, in order.
        part: Position of the segment in the full piece.
        reward_config: Reward constants.
        lead_in_duration: Duration of the group just before the segment
            (0 at the start of the piece).
    """

    def __init__(
        self,
        hand: Hand,
        groups: Sequence[NoteGroup],
        part: Part = Part.WHOLE,
        reward_config: RewardConfig | None = None,
        lead_in_duration: int = 0,
    ) -> None:
        self.hand = hand
        self.groups: list[NoteGroup] = list(groups)
        self.part = part
        self.lead_in_duration = lead_in_duration
        self.reward_model = FingeringRewardModel(hand, reward_config)
        self._long_note = self.reward_model.config.long_note_ticks
        self._actions: dict[StateKey, list[Fingering]] = {}

    def __len__(self) -> int:
        return len(self.groups)

    # ── States ────────────────────────────────────────────────

    def state_at(self, index: int, fingering: Fingering) -> FingeringState:
        """Rebuild the full state for a canonical ``(index, fingering)`` key."""
        next_notes = self.groups[index] if index < len(self.groups) else ()
        if index == 0:
            previous_duration = self.lead_in_duration
        else:
            previous_duration = group_duration(self.groups[index - 1])
        return FingeringState(
            index=index,
            fingering=fingering,
            next_notes=next_notes,
            part=self.part,
            previous_duration=previous_duration,
        )

    def initial_state(self) -> FingeringState:
        return self.state_at(0, ())

    def next_state(self, state: FingeringState, action: Fingering) -> FingeringState:
        return self.state_at(state.index + 1, action)

    def is_terminal(self, state: FingeringState) -> bool:
        return state.index >= len(self.groups)

    # ── Actions & rewards ─────────────────────────────────────

    def _anchored(self, pitches: list[int]) -> list[Fingering]:
        if len(pitches) == 1:
            return [build_fingering(self.hand, pitches, [ANCHOR_FINGER])]
        return assign_fingering(self.hand, pitches)

    def _compute_actions(self, state: FingeringState) -> list[Fingering]:
        pitches = group_pitches(state.next_notes)
        previous = state.fingering

        if state.index == 0:
            if (
                self.part in (Part.FIRST, Part.WHOLE)
                or state.previous_duration >= self._long_note
            ):
                return assign_fingering(self.hand, pitches)
            return self._anchored(pitches)

        if state.index == len(self.groups) - 1 and self.part in (Part.FIRST, Part.MIDDLE):
            return self._anchored(pitches)

        if len(previous) == 1 and len(pitches) == 1:
            actions = get_1to1_fingering(self.hand, previous, pitches[0])
            if actions:
                return actions

        return assign_fingering(self.hand, pitches)

    def action_space(self, state: FingeringState) -> list[Fingering]:
        """Legal fingerings for the group at ``state.index``.

        Returns:
            A list of Fingerings; empty for terminal states.
        """
        if self.is_terminal(state):
            return []
        key = state.key
        actions = self._actions.get(key)
        if actions is None:
            actions = self._compute_actions(state)
            self._actions[key] = actions
        return actions

    def reward(self, state: FingeringState, action: Fingering) -> float:
        return self.reward_model.reward(state, action)

    def default_fingering(self, index: int) -> Fingering:
        """Ascending-finger fallback for a group with no legal actions."""
        pitches = group_pitches(self.groups[index])
        if len(pitches) > MAX_CHORD_NOTES:
            pitches = pitches[-MAX_CHORD_NOTES:] if self.hand == Hand.RIGHT else pitches[:MAX_CHORD_NOTES]
        return build_fingering(self.hand, pitches, list(range(1, len(pitches) + 1)))
