"""Geometry — keyboard-distance arithmetic and hand-stretch measures.

Positions are measured on a linear keyboard coordinate:
    - white keys are unit-spaced, A0 = 0
    - a black key sits half a unit below its upper white neighbour

Functions:
    relative_position   – keyboard coordinate of a pitch
    key_distance        – absolute coordinate difference of two pitches
    finger_span_limit   – anatomical maximum span for a finger pair
    narrow_finger_check – detects impossible finger doublings
    chord_range         – width of a chord in white-key units
    hand_move_distance  – travel of the hand centre between fingerings
    stretch_rate        – signed stretch of one finger pair
    all_stretch_rate    – aggregate stretch of a whole fingering

All functions are pure and deterministic.
"""

from __future__ import annotations

import math
from itertools import combinations
from typing import Sequence

from .types import FingerAssignment, Hand


LOWEST_PITCH: int = 21   # A0
HIGHEST_PITCH: int = 108  # C8

_WHITE_PITCH_CLASSES: frozenset[int] = frozenset({0, 2, 4, 5, 7, 9, 11})

WHITE_KEYS: tuple[int, ...] = tuple(
    p for p in range(LOWEST_PITCH, HIGHEST_PITCH + 1) if p % 12 in _WHITE_PITCH_CLASSES
)
BLACK_KEYS: tuple[int, ...] = tuple(
    p for p in range(LOWEST_PITCH, HIGHEST_PITCH + 1) if p % 12 not in _WHITE_PITCH_CLASSES
)

_WHITE_INDEX: dict[int, int] = {p: i for i, p in enumerate(WHITE_KEYS)}

# ── Anatomical span table ─────────────────────────────────────
# MAX_FINGER_DISTANCE[a - 1][b - 1] is the largest comfortable key
# distance with finger ``a`` on the thumb-side note and finger ``b`` on
# the pinky-side note.  Entries below the diagonal are crossing spans.
SENTINEL: float = -1
MAX_FINGER_DISTANCE: tuple[tuple[float, ...], ...] = (
    (-1, 4, 5, 6, 7),
    (3, -1, 3, 4, 6),
    (2, -1, -1, 3, 4),
    (1.5, -1, -1, -1, 3),
    (-1, -1, -1, -1, -1),
)


def round_half_up(value: float, digits: int = 2) -> float:
    """Round half toward +inf (not banker's rounding)."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def is_white(pitch: int) -> bool:
    return pitch % 12 in _WHITE_PITCH_CLASSES


def relative_position(pitch: int) -> float:
    """Keyboard coordinate of *pitch*.

    Raises:
        ValueError: If *pitch* is outside the 88-key range.
    """
    if not LOWEST_PITCH <= pitch <= HIGHEST_PITCH:
        raise ValueError(f"Pitch {pitch} outside piano range")
    if pitch in _WHITE_INDEX:
        return float(_WHITE_INDEX[pitch])
    return _WHITE_INDEX[pitch + 1] - 0.5


def key_distance(pitch_a: int, pitch_b: int) -> float:
    return abs(relative_position(pitch_b) - relative_position(pitch_a))


def note_position(pitch: int) -> float:
    """Position counted from A0 = 1."""
    return key_distance(LOWEST_PITCH, pitch) + 1


def finger_span_limit(thumb_side_finger: int, pinky_side_finger: int) -> float | None:
    """Return the anatomical span limit, or ``None`` for a sentinel entry."""
    limit = MAX_FINGER_DISTANCE[thumb_side_finger - 1][pinky_side_finger - 1]
    if limit == SENTINEL:
        return None
    return limit


def within_span(distance: float, thumb_side_finger: int, pinky_side_finger: int) -> bool:
    limit = finger_span_limit(thumb_side_finger, pinky_side_finger)
    return limit is not None and distance <= limit


def narrow_finger_check(a: FingerAssignment, b: FingerAssignment) -> bool:
    """True when two fingers sit closer than their numbers allow."""
    return math.ceil(key_distance(a.pitch, b.pitch)) < abs(a.finger - b.finger)


def chord_range(pitches: Sequence[int]) -> float:
    if not pitches:
        return 0
    return key_distance(min(pitches), max(pitches)) + 1


def _hand_position(hand: Hand, fingering: Sequence[FingerAssignment]) -> float:
    first, last = fingering[0], fingering[-1]
    first_pos = note_position(first.pitch) + hand * (3 - first.finger)
    last_pos = note_position(last.pitch) + hand * (3 - last.finger)
    return (first_pos + last_pos) / 2


def hand_move_distance(
    hand: Hand,
    previous: Sequence[FingerAssignment],
    current: Sequence[FingerAssignment],
) -> float:
    """Distance travelled by the hand centre between two fingerings.

    The hand centre is the mean of the extreme entries' positions, each
    shifted by ``hand * (3 - finger)`` toward where the middle finger
    would be.

    Returns:
        Non-negative distance; 0 when either fingering is empty.
    """
    if not previous or not current:
        return 0.0
    return abs(_hand_position(hand, previous) - _hand_position(hand, current))


def _thumb_side_first(
    hand: Hand, a: FingerAssignment, b: FingerAssignment
) -> tuple[FingerAssignment, FingerAssignment]:
    # Right hand: thumb side is the lower pitch. Left hand: the higher one.
    if (hand == Hand.RIGHT and a.pitch > b.pitch) or (hand == Hand.LEFT and a.pitch < b.pitch):
        return b, a
    return a, b


def stretch_rate(hand: Hand, a: FingerAssignment, b: FingerAssignment) -> float:
    """Signed stretch of a finger pair, rounded to 2 decimals.

    Positive values mean the fingers are spread wider than their natural
    span ``|f1 - f2|`` (scaled by the headroom left to the anatomical
    limit); negative values mean they are squeezed (scaled by the natural
    span).

    Args:
        hand: Hand playing both notes.
        a: First (pitch, finger) pair.
        b: Second (pitch, finger) pair.

    Returns:
        The rate; 0 when note and finger coincide.
    """
    p1, p2 = _thumb_side_first(hand, a, b)
    nature = abs(p1.finger - p2.finger)
    distance = key_distance(p1.pitch, p2.pitch)

    if distance > nature:
        limit = finger_span_limit(p1.finger, p2.finger)
        headroom = limit - nature if limit is not None and limit > nature else 1.0
        rate = (distance - nature) / headroom
    elif nature == 0:
        return 0.0
    else:
        rate = -(nature - distance) / nature

    return round_half_up(rate, 2)


def all_stretch_rate(hand: Hand, fingering: Sequence[FingerAssignment]) -> float:
    """Mean of ``|stretch_rate| ** 1.5`` over every entry pair.

    The power favours several mild stretches over one severe one.
    """
    ordered = sorted(fingering)
    pairs = list(combinations(ordered, 2))
    if not pairs:
        return 0.0
    total = sum(abs(stretch_rate(hand, a, b)) ** 1.5 for a, b in pairs)
    return round_half_up(total / len(pairs), 2)
