"""Reward Model — ergonomic scoring of fingering transitions.

Constants (long-note threshold, finger strengths) come from
:class:`~.config.RewardConfig`, loaded from ``configs/fingering.yaml``.

Methods:
    opening_reward     – first group of a segment, or after a long note
    one_to_one_reward  – single note followed by a single note
    chord_reward       – general N-notes to M-notes transition
    strength_bonus     – tie-break favouring strong fingers
    reward             – full prioritised evaluation of (state, action)

Module helpers count the anomalies that discount chord transitions:
    reverse_order_count, same_finger_count, same_pitch_count
"""

from __future__ import annotations

import math

from .candidates import cross_distance, get_1to1_fingering, is_1to1_cross
from .config import RewardConfig
from .geometry import (
    all_stretch_rate,
    chord_range,
    hand_move_distance,
    key_distance,
    stretch_rate,
)
from .types import Fingering, FingeringState, Hand


# Both chords at least this wide: the hand is expected to jump, no discount.
_WIDE_CHORD_RANGE: float = 6
# Combined span at least this wide for a chord-to-note move: no discount.
_WIDE_LEAP_RANGE: float = 7


def reverse_order_count(hand: Hand, previous: Fingering, current: Fingering) -> int:
    """Adjacent finger-order inversions once both fingerings are merged by pitch."""
    merged = sorted(previous + current, key=lambda entry: entry.pitch)
    count = 0
    for a, b in zip(merged, merged[1:]):
        if (hand == Hand.RIGHT and a.finger > b.finger) or (
            hand == Hand.LEFT and b.finger > a.finger
        ):
            count += 1
    return count


def same_finger_count(previous: Fingering, current: Fingering) -> int:
    """Fingers reused on a different pitch."""
    current_by_finger: dict[int, int] = {}
    for entry in current:
        current_by_finger.setdefault(entry.finger, entry.pitch)
    previous_by_finger: dict[int, int] = {}
    for entry in previous:
        previous_by_finger.setdefault(entry.finger, entry.pitch)

    count = 0
    for entry in previous:
        if entry.finger in current_by_finger and (
            previous_by_finger[entry.finger] != current_by_finger[entry.finger]
        ):
            count += 1
    return count


def same_pitch_count(previous: Fingering, current: Fingering) -> int:
    """Pitches held over but played with a different finger."""
    current_by_pitch: dict[int, int] = {}
    for entry in current:
        current_by_pitch.setdefault(entry.pitch, entry.finger)
    return sum(
        1
        for entry in previous
        if entry.pitch in current_by_pitch and current_by_pitch[entry.pitch] != entry.finger
    )


class FingeringRewardModel:
    """Rule-based reward for fingering transitions of one hand.

    Args:
        hand: Hand whose fingering is scored.
        config: Reward constants; defaults to :class:`RewardConfig`.
    """

    def __init__(self, hand: Hand, config: RewardConfig | None = None) -> None:
        self.hand = hand
        self.config = config or RewardConfig()

    # ── Individual components ─────────────────────────────────

    def strength_bonus(self, action: Fingering) -> float:
        """Sum of the finger strengths used by *action*, unscaled."""
        return float(sum(self.config.finger_strength[e.finger - 1] for e in action))

    def opening_reward(self, action: Fingering) -> float:
        """Reward when the hand is free to place itself anywhere."""
        if len(action) == 1:
            return 50.0
        return 50 * (1 - all_stretch_rate(self.hand, action))

    def one_to_one_reward(self, previous: Fingering, action: Fingering) -> tuple[float, bool]:
        """Score a single-note to single-note move.

        Returns:
            ``(reward, final)``; when *final* is true the reward is
            returned as-is, without the strength bonus.
        """
        start, end = previous[0], action[0]
        candidates = get_1to1_fingering(self.hand, previous, end.pitch)

        if action not in candidates:
            # Implausible jump: penalised by travel, never rejected.
            return 20 - hand_move_distance(self.hand, previous, action) / 2, False

        if is_1to1_cross(self.hand, start, end):
            return 20 + 2.5 * (4 - cross_distance(start, end)), False

        rate = stretch_rate(self.hand, start, end)
        unit_step = (
            math.ceil(key_distance(start.pitch, end.pitch)) == 1
            and abs(start.finger - end.finger) == 1
        )
        if rate == 0 or unit_step:
            return 50.0, True
        return 40 + 10 * (1 - rate ** 2), False

    def chord_reward(self, previous: Fingering, action: Fingering) -> tuple[float, bool]:
        """Score a transition where either side is a chord.

        Returns:
            ``(reward, final)`` as in :meth:`one_to_one_reward`.
        """
        n_prev, n_next = len(previous), len(action)
        range_prev = chord_range([e.pitch for e in previous])
        range_next = chord_range([e.pitch for e in action])
        both_wide = range_prev >= _WIDE_CHORD_RANGE and range_next >= _WIDE_CHORD_RANGE

        reversals = reverse_order_count(self.hand, previous, action)
        same_fingers = same_pitches = 0
        if reversals == 0:
            same_fingers = same_finger_count(previous, action)
            same_pitches = same_pitch_count(previous, action)

        discount = 1.0
        if not both_wide:
            discount = 1 - (same_fingers + same_pitches + reversals) / (n_prev + n_next)

        travel = hand_move_distance(self.hand, previous, action)

        if n_next > 1:
            stretch = all_stretch_rate(self.hand, action)
            if both_wide:
                return 49 * (1 - stretch) + 1, False
            if travel > 5:
                return (20 * (1 - stretch) + (45 - travel) / 4.5) * discount, False
            blended = 25 * (6 * (1 - stretch ** 2.2) + 4 * (5 - travel)) / 13
            return blended * discount, False

        combined = chord_range([e.pitch for e in previous + action])
        if combined >= _WIDE_LEAP_RANGE:
            discount = 1.0
        reward = (50 - 1.2 * travel) * discount
        if travel >= 20:
            return reward + self.config.strength_scale * self.strength_bonus(action) * 500, True
        return reward, False

    # ── Aggregate ─────────────────────────────────────────────

    def reward(self, state: FingeringState, action: Fingering) -> float:
        """Reward for playing *action* from *state*.

        Rules are checked in order: opening / long previous note, repeated
        fingering, single-to-single move, general chord transition.  A
        small finger-strength bonus is added last.

        Args:
            state: Current MDP state (holds the previous fingering).
            action: Fingering chosen for ``state.next_notes``.

        Returns:
            The scalar reward.
        """
        previous = state.fingering

        if state.index == 0 or state.previous_duration >= self.config.long_note_ticks:
            value, final = self.opening_reward(action), False
        elif previous == action:
            value, final = 50.0, False
        elif len(previous) == 1 and len(action) == 1:
            value, final = self.one_to_one_reward(previous, action)
        else:
            value, final = self.chord_reward(previous, action)

        if final:
            return value
        return value + self.config.strength_scale * self.strength_bonus(action)
