"""Core value types shared by every stage of the fingering pipeline.

All types are immutable so that states and actions can be used directly
as dictionary keys.  Table keys are built only from ``int`` components
(see :attr:`FingeringState.key`), which keeps their hashes identical
across interpreter runs and worker processes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import NamedTuple


class Hand(IntEnum):
    """Hand laterality; the value is the sign used in hand-position maths."""

    LEFT = -1
    RIGHT = 1


class Part(str, Enum):
    """Position of a segment inside the full per-hand sequence."""

    FIRST = "first"
    MIDDLE = "middle"
    LAST = "last"
    WHOLE = "whole"


FINGERS: tuple[int, ...] = (1, 2, 3, 4, 5)


@dataclass(frozen=True)
class Note:
    """A single note event.

    Attributes:
        pitch: MIDI note number (21–108 on a piano keyboard).
        position: Onset position in ticks.
        duration: Length in ticks.
        channel: Hand channel / staff the note was read from.
    """

    pitch: int
    position: int = 0
    duration: int = 0
    channel: int = 0


class FingerAssignment(NamedTuple):
    pitch: int
    finger: int


# A Fingering is pitch-sorted; a NoteGroup holds notes sharing one onset.
Fingering = tuple[FingerAssignment, ...]
NoteGroup = tuple[Note, ...]

StateKey = tuple[int, Fingering]
StateActionKey = tuple[StateKey, Fingering]
ValueTable = dict[StateActionKey, float]


@dataclass(frozen=True)
class FingeringState:
    """MDP state: the fingering just played and the group about to be played.

    ``previous_duration`` is the duration of the group fingered by
    ``fingering`` (or of the group preceding the segment when ``index`` is 0).
    """

    index: int
    fingering: Fingering
    next_notes: NoteGroup
    part: Part
    previous_duration: int = 0

    @property
    def key(self) -> StateKey:
        return (self.index, self.fingering)


def group_pitches(group: NoteGroup) -> list[int]:
    """Return the pitches of *group* in ascending order."""
    return sorted(note.pitch for note in group)


def group_duration(group: NoteGroup) -> int:
    """Duration of a note group: the longest note it contains."""
    return max((note.duration for note in group), default=0)


def make_groups(
    pitch_groups: list[list[int]],
    duration: int = 480,
    channel: int = 0,
) -> list[NoteGroup]:
    """Build a NoteGroup sequence from nested pitch lists.

    Onsets are laid out back to back, each group lasting *duration* ticks.

    Args:
        pitch_groups: e.g. ``[[60], [64, 67], [60]]``.
        duration: Duration of every note in ticks.
        channel: Hand channel recorded on every note.

    Returns:
        One tuple of :class:`Note` per inner list.
    """
    groups: list[NoteGroup] = []
    for i, pitches in enumerate(pitch_groups):
        groups.append(
            tuple(
                Note(pitch=p, position=i * duration, duration=duration, channel=channel)
                for p in sorted(pitches)
            )
        )
    return groups
