"""Candidate generator — anatomically admissible fingerings.

Two entry points feed the MDP action space:
    assign_fingering   – every admissible fingering for a whole chord
    get_1to1_fingering – next-finger candidates for a single-note step

plus the crossing classifiers used by the reward model:
    is_1to1_cross, cross_distance
"""

from __future__ import annotations

import logging
from itertools import combinations
from typing import Sequence

from .geometry import (
    is_white,
    key_distance,
    narrow_finger_check,
    within_span,
)
from .types import FINGERS, FingerAssignment, Fingering, Hand

logger = logging.getLogger(__name__)

MAX_CHORD_NOTES: int = 5


def build_fingering(hand: Hand, pitches: Sequence[int], fingers: Sequence[int]) -> Fingering:
    """Pair pitch-sorted notes with fingers in the hand's natural order.

    Right hand: lowest pitch gets the lowest finger.
    Left hand: lowest pitch gets the highest finger.

    Raises:
        ValueError: If the counts differ.
    """
    if len(pitches) != len(fingers):
        raise ValueError(
            f"Notes and fingers count mismatch: {len(pitches)} != {len(fingers)}"
        )
    ordered_fingers = sorted(fingers, reverse=(hand == Hand.LEFT))
    return tuple(
        FingerAssignment(pitch, finger)
        for pitch, finger in zip(sorted(pitches), ordered_fingers)
    )


def _is_playable(hand: Hand, fingering: Fingering) -> bool:
    # Every pair must fit the span table and must not be a narrow doubling.
    for low, high in combinations(fingering, 2):
        thumb_side, pinky_side = (low, high) if hand == Hand.RIGHT else (high, low)
        distance = key_distance(low.pitch, high.pitch)
        if not within_span(distance, thumb_side.finger, pinky_side.finger):
            return False
        if narrow_finger_check(low, high):
            return False
    return True


def assign_fingering(hand: Hand, pitches: Sequence[int]) -> list[Fingering]:
    """Enumerate every admissible fingering for a chord (or single note).

    Chords wider than five notes keep only the outer five notes (highest
    for the right hand, lowest for the left).  When nothing is playable
    the default ascending ``1..n`` fingering is returned, so the result
    is never empty.

    Args:
        hand: Hand playing the chord.
        pitches: Chord pitches, any order.

    Returns:
        Fingerings in lexicographic finger-combination order.

    Raises:
        ValueError: If *pitches* is empty.
    """
    n = len(pitches)
    if n == 0:
        raise ValueError("Wrong notes number: 0")

    ordered = sorted(pitches)
    if n > MAX_CHORD_NOTES:
        logger.warning("Chord has %d notes, truncating to %d", n, MAX_CHORD_NOTES)
        kept = ordered[-MAX_CHORD_NOTES:] if hand == Hand.RIGHT else ordered[:MAX_CHORD_NOTES]
        return assign_fingering(hand, kept)

    candidates = [build_fingering(hand, ordered, combo) for combo in combinations(FINGERS, n)]
    if n == 1:
        return candidates

    result = [f for f in candidates if _is_playable(hand, f)]
    if not result:
        logger.warning(
            "No playable fingering for chord %s, using default 1..%d", ordered, n
        )
        result.append(build_fingering(hand, ordered, list(range(1, n + 1))))
    return result


def _moving_outward(hand: Hand, start_pitch: int, next_pitch: int) -> bool:
    # Up for the right hand, down for the left: away from the thumb.
    if hand == Hand.RIGHT:
        return next_pitch > start_pitch
    return next_pitch < start_pitch


def get_1to1_fingering(hand: Hand, current: Fingering, next_pitch: int) -> list[Fingering]:
    """Candidate fingers for moving from one single note to the next.

    Args:
        hand: Hand playing both notes.
        current: Fingering of the current note; must hold one entry.
        next_pitch: Pitch of the following note.

    Returns:
        Single-entry fingerings; may be empty when nothing is reachable.

    Raises:
        ValueError: If *current* does not hold exactly one entry.
    """
    if len(current) != 1:
        raise ValueError("Start fingering must have exactly 1 note")

    start = current[0]
    start_finger = start.finger

    if next_pitch == start.pitch:
        return [(FingerAssignment(next_pitch, start_finger),)]

    distance = key_distance(start.pitch, next_pitch)
    outward = _moving_outward(hand, start.pitch, next_pitch)
    result: list[Fingering] = []

    # ── Non-crossing moves ────────────────────────────────────
    if outward:
        for finger in range(2, 6):
            if not within_span(distance, start_finger, finger):
                continue
            candidate = FingerAssignment(next_pitch, finger)
            if start_finger == 1 or not narrow_finger_check(start, candidate):
                result.append((candidate,))
    elif start_finger != 1:
        for finger in range(1, 6):
            if not within_span(distance, finger, start_finger):
                continue
            candidate = FingerAssignment(next_pitch, finger)
            if finger == 1 or not narrow_finger_check(start, candidate):
                result.append((candidate,))

    # ── Crossing moves ────────────────────────────────────────
    if start_finger in (2, 3, 4) and outward:
        # Thumb passes under; not onto the black key right next to a white one.
        onto_adjacent_black = (
            is_white(start.pitch) and not is_white(next_pitch) and distance == 0.5
        )
        if not onto_adjacent_black and within_span(distance, start_finger, 1):
            result.append((FingerAssignment(next_pitch, 1),))
    elif start_finger == 1 and not outward:
        for finger in range(2, 5):
            if within_span(distance, finger, 1):
                result.append((FingerAssignment(next_pitch, finger),))

    return result


def is_1to1_cross(hand: Hand, start: FingerAssignment, end: FingerAssignment) -> bool:
    """True when the move passes the thumb under or a finger over it."""
    outward = _moving_outward(hand, start.pitch, end.pitch)
    thumb_under = start.finger in (2, 3, 4) and end.finger == 1 and outward
    cross_over = start.finger == 1 and not outward
    return thumb_under or cross_over


def cross_distance(start: FingerAssignment, end: FingerAssignment) -> float:
    """Cost proxy of a crossing: key distance plus the pivot finger offset."""
    distance = key_distance(start.pitch, end.pitch)
    if start.finger == 1:
        return distance + end.finger - 1
    return distance + start.finger - 1
