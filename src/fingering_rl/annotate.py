"""Annotator — finger both hands of a piece and export the results.

Responsibilities:
    1. Load per-hand NoteGroup sequences from a JSON note file.
    2. Solve each non-empty hand with a :class:`SegmentationOrchestrator`,
       reporting progress across the segments of both hands.
    3. Flatten each hand's Fingerings into ``{pitch, finger, position}``
       records.
    4. Save ``*_fingering.json`` or return it as bytes.

Note-file schema::

    {
      "right": [[{"pitch": 60, "duration": 480}], [{"pitch": 64}, {"pitch": 67}]],
      "left":  [[{"pitch": 48, "duration": 960}]]
    }
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .config import FingeringConfig
from .errors import validate_groups
from .segmentation import SegmentationOrchestrator, split_ranges
from .types import Fingering, Hand, Note, NoteGroup

logger = logging.getLogger(__name__)

HAND_KEYS: dict[str, Hand] = {"right": Hand.RIGHT, "left": Hand.LEFT}


def load_note_groups(json_path: str | Path) -> dict[str, list[NoteGroup]]:
    """Read per-hand NoteGroups from a JSON note file.

    Args:
        json_path: Path to the note file.

    Returns:
        ``{"right": [...], "left": [...]}``; a missing hand is empty.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the JSON does not follow the note-file schema.
    """
    path = Path(json_path)
    if not path.exists():
        raise FileNotFoundError(f"Note file not found: {path}")

    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)

    if not isinstance(data, dict):
        raise ValueError(f"Note file must contain a JSON object, got {type(data).__name__}: {path}")

    hands: dict[str, list[NoteGroup]] = {}
    for name, hand in HAND_KEYS.items():
        groups: list[NoteGroup] = []
        position = 0
        for i, raw_group in enumerate(data.get(name, [])):
            if not isinstance(raw_group, list):
                raise ValueError(f"{name}[{i}] must be a list of notes: {path}")
            try:
                group = tuple(
                    Note(
                        pitch=int(raw["pitch"]),
                        position=int(raw.get("position", position)),
                        duration=int(raw.get("duration", 0)),
                        channel=int(raw.get("channel", 0 if hand == Hand.RIGHT else 1)),
                    )
                    for raw in raw_group
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"Malformed note in {name}[{i}]: {exc}") from exc
            groups.append(group)
            position += max((n.duration for n in group), default=0)
        hands[name] = groups
    return hands


def generate_fingering(
    right: list[NoteGroup],
    left: list[NoteGroup],
    config: FingeringConfig | None = None,
    max_workers: int | None = None,
    on_progress: Callable[[float], None] | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> dict[str, list[Fingering]]:
    """Finger both hands independently.

    Progress is weighted by segment count so the percentage passed to
    *on_progress* rises steadily across both hands.

    Args:
        right: Right-hand NoteGroups (may be empty).
        left: Left-hand NoteGroups (may be empty).
        config: Solver and reward settings.
        max_workers: Worker processes per hand solve.
        on_progress: Receives a non-decreasing percentage in [0, 100].
        should_cancel: Polled between segments.

    Returns:
        ``{"right": [...], "left": [...]}`` with one Fingering per group.

    Raises:
        InvalidInputError: If either hand is malformed; raised before
            any training starts.
        SolveCancelled: If *should_cancel* returned ``True``.
    """
    config = config or FingeringConfig()
    orchestrator = SegmentationOrchestrator(config.solver, config.reward, max_workers)

    work = {"right": right, "left": left}
    seg_counts = {
        name: len(split_ranges(len(groups), config.solver.segment_size))
        for name, groups in work.items()
    }
    total_segments = sum(seg_counts.values())
    if total_segments == 0:
        logger.warning("Both hands are empty")
        return {"right": [], "left": []}

    # Both hands are checked before either one starts training.
    for groups in work.values():
        if groups:
            validate_groups(groups)

    result: dict[str, list[Fingering]] = {}
    completed = 0
    for name, groups in work.items():
        if not groups:
            logger.info("%s hand is empty, skipping", name.capitalize())
            result[name] = []
            continue

        def report(percent: float, _base=completed, _count=seg_counts[name]) -> None:
            if on_progress is not None:
                on_progress((_base + percent / 100 * _count) / total_segments * 100)

        logger.info("%s hand processing started", name.capitalize())
        result[name] = orchestrator.solve(HAND_KEYS[name], groups, report, should_cancel)
        completed += seg_counts[name]

    return result


def to_entries(fingerings: list[Fingering]) -> list[dict[str, int]]:
    """Flatten Fingerings to ``{pitch, finger, position}`` records.

    ``position`` counts notes across the whole hand, in pitch order
    within each group.
    """
    entries: list[dict[str, int]] = []
    for fingering in fingerings:
        for entry in sorted(fingering, key=lambda e: e.pitch):
            entries.append(
                {"pitch": entry.pitch, "finger": entry.finger, "position": len(entries)}
            )
    return entries


def annotations_to_json_bytes(result: dict[str, list[Fingering]]) -> bytes:
    """Serialise a two-hand result to UTF-8 JSON bytes."""
    payload: dict[str, Any] = {name: to_entries(fingerings) for name, fingerings in result.items()}
    return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")


def save_annotations(result: dict[str, list[Fingering]], output_path: str | Path) -> Path:
    """Write a two-hand result as JSON and return the path written."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(annotations_to_json_bytes(result))
    return output_path
