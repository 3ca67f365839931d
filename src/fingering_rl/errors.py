"""Exceptions raised by the fingering engine, and input validation."""

from __future__ import annotations

from collections.abc import Sequence

from .geometry import HIGHEST_PITCH, LOWEST_PITCH
from .types import NoteGroup


class InvalidInputError(ValueError):
    """A note sequence that cannot be fingered.

    Attributes:
        category: One of ``empty_sequence``, ``empty_group``,
            ``pitch_range`` or ``infeasible_chord``.
        index: Offending NoteGroup index, if any.
    """

    def __init__(self, category: str, message: str, index: int | None = None) -> None:
        super().__init__(message)
        self.category = category
        self.index = index


class SolveCancelled(RuntimeError):
    """Raised when a host cancels orchestration between segments."""


def validate_groups(groups: Sequence[NoteGroup]) -> None:
    """Reject input the solver cannot handle, before any training starts.

    Raises:
        InvalidInputError: On an empty sequence, an empty group, a pitch
            outside the piano range, or duplicate pitches in one group.
    """
    if not groups:
        raise InvalidInputError("empty_sequence", "Note sequence is empty")

    for i, group in enumerate(groups):
        if not group:
            raise InvalidInputError("empty_group", f"NoteGroup {i} is empty", index=i)
        pitches = [note.pitch for note in group]
        for pitch in pitches:
            if not LOWEST_PITCH <= pitch <= HIGHEST_PITCH:
                raise InvalidInputError(
                    "pitch_range",
                    f"NoteGroup {i}: pitch {pitch} outside "
                    f"{LOWEST_PITCH}-{HIGHEST_PITCH}",
                    index=i,
                )
        if len(set(pitches)) != len(pitches):
            raise InvalidInputError(
                "infeasible_chord",
                f"NoteGroup {i} repeats a pitch: {sorted(pitches)}",
                index=i,
            )
