"""Segmentation — bounded segments, parallel replicas, merged value tables.

Long pieces are cut into contiguous segments of at most
``segment_size`` NoteGroups.  Each segment is solved by ``replicas``
independent :class:`DynaQSolver` instances with distinct seeds; their
value tables are averaged key by key and the segment policy is read off
the merged table.  Segment policies are concatenated in order.

Solves share nothing while training, so they run in a process pool when
more than one worker is allowed.  Pool workers send their evaluation
checkpoints back through a manager queue, so progress is as fine-grained
as in the inline path.  Segments are submitted in a sliding window of
about ``max_workers`` jobs.  Cancellation is cooperative: the host's
``should_cancel`` is polled between segments and unsubmitted work is
dropped; jobs already running always complete.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import queue
from collections import deque
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ProcessPoolExecutor
from dataclasses import dataclass, replace
from typing import Any

import numpy as np

from .config import RewardConfig, SolverConfig
from .dyna_q import DynaQSolver
from .errors import SolveCancelled, validate_groups
from .mdp import FingeringMDP
from .q_learning import extract_policy
from .types import Fingering, Hand, NoteGroup, Part, ValueTable, group_duration

logger = logging.getLogger(__name__)

_MP_CONTEXT = mp.get_context("spawn")

# Seed offset between replicas of the same segment.
REPLICA_SEED_STRIDE: int = 1000

# Seconds to wait for a checkpoint message before re-checking futures.
_POLL_SECONDS: float = 0.05


@dataclass(frozen=True)
class Segment:
    index: int
    start: int
    end: int
    part: Part
    lead_in_duration: int


def split_ranges(length: int, segment_size: int) -> list[tuple[int, int]]:
    """Contiguous ``[start, end)`` ranges of at most *segment_size* items."""
    if segment_size <= 0:
        raise ValueError(f"segment_size must be positive, got {segment_size}")
    return [(start, min(start + segment_size, length)) for start in range(0, length, segment_size)]


def segment_part(index: int, count: int) -> Part:
    if count == 1:
        return Part.WHOLE
    if index == 0:
        return Part.FIRST
    if index == count - 1:
        return Part.LAST
    return Part.MIDDLE


def merge_value_tables(tables: Sequence[ValueTable]) -> ValueTable:
    """Per-key arithmetic mean over the union of keys.

    A key missing from a table counts as 0 in that table.
    """
    keys: dict = {}
    for table in tables:
        keys.update(dict.fromkeys(table))
    return {
        key: float(np.mean([table.get(key, 0.0) for table in tables]))
        for key in keys
    }


def replica_configs(config: SolverConfig) -> list[SolverConfig]:
    """Split the episode budget across replicas, each with its own seed."""
    episodes = max(1, config.n_episodes // config.replicas)
    return [
        replace(
            config,
            n_episodes=episodes,
            random_seed=config.random_seed + r * REPLICA_SEED_STRIDE,
        )
        for r in range(config.replicas)
    ]


def train_replica(
    hand: Hand,
    groups: Sequence[NoteGroup],
    part: Part,
    lead_in_duration: int,
    config: SolverConfig,
    reward_config: RewardConfig,
    progress_queue: Any | None = None,
    job: tuple[int, int] = (0, 0),
) -> ValueTable:
    """Train one solver instance and return its value table.

    Module-level so it can be shipped to pool workers.

    Args:
        progress_queue: Optional manager queue; every evaluation
            checkpoint puts ``(segment, replica, episode, n_episodes)``
            on it.
        job: ``(segment, replica)`` tag for the checkpoint messages.
    """
    on_progress = None
    if progress_queue is not None:
        def on_progress(episode: int, total: int) -> None:
            progress_queue.put((job[0], job[1], episode, total))

    solver = DynaQSolver(config, reward_config)
    solver.solve(hand, groups, part, lead_in_duration, on_progress=on_progress)
    return solver.value_table


class _Progress:
    """Clamp reported percentages to a non-decreasing sequence in [0, 100]."""

    def __init__(self, callback: Callable[[float], None] | None) -> None:
        self._callback = callback
        self._last = 0.0

    def report(self, percent: float) -> None:
        percent = min(100.0, max(self._last, percent))
        self._last = percent
        if self._callback is not None:
            self._callback(percent)


class SegmentationOrchestrator:
    """Solve a whole per-hand sequence segment by segment.

    Args:
        config: Solver settings (segment size, replicas, seeds, ...).
        reward_config: Reward constants.
        max_workers: Worker processes; ``None`` falls back to
            ``config.max_workers`` and then to 1 (inline, no pool).
    """

    def __init__(
        self,
        config: SolverConfig | None = None,
        reward_config: RewardConfig | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.config = config or SolverConfig()
        self.reward_config = reward_config or RewardConfig()
        workers = max_workers if max_workers is not None else self.config.max_workers
        self.max_workers = max(1, workers or 1)

    def plan(self, groups: Sequence[NoteGroup]) -> list[Segment]:
        ranges = split_ranges(len(groups), self.config.segment_size)
        return [
            Segment(
                index=i,
                start=start,
                end=end,
                part=segment_part(i, len(ranges)),
                lead_in_duration=group_duration(groups[start - 1]) if start > 0 else 0,
            )
            for i, (start, end) in enumerate(ranges)
        ]

    def _segment_policy(
        self,
        hand: Hand,
        groups: Sequence[NoteGroup],
        segment: Segment,
        tables: list[ValueTable],
    ) -> list[Fingering]:
        table = tables[0] if len(tables) == 1 else merge_value_tables(tables)
        mdp = FingeringMDP(
            hand,
            groups[segment.start:segment.end],
            segment.part,
            self.reward_config,
            segment.lead_in_duration,
        )
        return extract_policy(mdp, table)

    def solve(
        self,
        hand: Hand,
        groups: Sequence[NoteGroup],
        on_progress: Callable[[float], None] | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> list[Fingering]:
        """Finger a whole per-hand sequence.

        Args:
            hand: Hand being fingered.
            groups: Every NoteGroup of the hand, in order.
            on_progress: Receives a non-decreasing percentage in [0, 100]
                at every evaluation checkpoint and segment completion.
            should_cancel: Polled before each segment is started (inline)
                or collected (pool); returning ``True`` stops
                orchestration.  With a pool, segments are submitted at
                most ``ceil(max_workers / replicas)`` ahead, and jobs
                already running finish before :class:`SolveCancelled`
                propagates.

        Returns:
            One Fingering per NoteGroup, in input order.

        Raises:
            InvalidInputError: On malformed input, before any training.
            SolveCancelled: If *should_cancel* returned ``True``.
        """
        validate_groups(groups)
        segments = self.plan(groups)
        progress = _Progress(on_progress)
        replicas = replica_configs(self.config)

        logger.info(
            "Solving %d groups for %s hand: %d segment(s) x %d replica(s), %d worker(s)",
            len(groups), hand.name.lower(), len(segments), len(replicas), self.max_workers,
        )

        if self.max_workers == 1:
            policies = self._solve_inline(hand, groups, segments, replicas, progress, should_cancel)
        else:
            policies = self._solve_pooled(hand, groups, segments, replicas, progress, should_cancel)

        result: list[Fingering] = []
        for policy in policies:
            result.extend(policy)
        progress.report(100.0)
        return result

    def _solve_inline(
        self,
        hand: Hand,
        groups: Sequence[NoteGroup],
        segments: list[Segment],
        replicas: list[SolverConfig],
        progress: _Progress,
        should_cancel: Callable[[], bool] | None,
    ) -> list[list[Fingering]]:
        n_seg, n_rep = len(segments), len(replicas)
        policies: list[list[Fingering]] = []

        for segment in segments:
            if should_cancel is not None and should_cancel():
                raise SolveCancelled(f"Cancelled before segment {segment.index + 1}/{n_seg}")

            tables: list[ValueTable] = []
            for r, replica in enumerate(replicas):
                def report(episode: int, total: int, _seg=segment.index, _r=r) -> None:
                    done = _seg + (_r + episode / total) / n_rep
                    progress.report(done / n_seg * 100)

                solver = DynaQSolver(replica, self.reward_config)
                solver.solve(
                    hand,
                    groups[segment.start:segment.end],
                    segment.part,
                    segment.lead_in_duration,
                    on_progress=report,
                )
                tables.append(solver.value_table)

            policies.append(self._segment_policy(hand, groups, segment, tables))
            progress.report((segment.index + 1) / n_seg * 100)
            logger.info(
                "Completed part %d/%d, length %d",
                segment.index + 1, n_seg, segment.end - segment.start,
            )
        return policies

    def _solve_pooled(
        self,
        hand: Hand,
        groups: Sequence[NoteGroup],
        segments: list[Segment],
        replicas: list[SolverConfig],
        progress: _Progress,
        should_cancel: Callable[[], bool] | None,
    ) -> list[list[Fingering]]:
        n_seg, n_rep = len(segments), len(replicas)
        # Segments in flight: enough replica jobs to keep every worker busy.
        window = max(1, -(-self.max_workers // n_rep))
        fractions: dict[tuple[int, int], float] = {}
        policies: list[list[Fingering]] = []

        def report_fractions() -> None:
            progress.report(sum(fractions.values()) / (n_seg * n_rep) * 100)

        def drain(messages: Any, timeout: float | None) -> None:
            while True:
                try:
                    if timeout is None:
                        seg, r, episode, total = messages.get_nowait()
                    else:
                        seg, r, episode, total = messages.get(timeout=timeout)
                except queue.Empty:
                    return
                fractions[(seg, r)] = episode / total
                report_fractions()
                timeout = None

        with _MP_CONTEXT.Manager() as manager, ProcessPoolExecutor(
            max_workers=self.max_workers, mp_context=_MP_CONTEXT
        ) as pool:
            messages = manager.Queue()
            upcoming = iter(segments)
            submitted: deque[tuple[Segment, list[Future]]] = deque()

            def submit_next() -> None:
                segment = next(upcoming, None)
                if segment is None:
                    return
                jobs = [
                    pool.submit(
                        train_replica,
                        hand,
                        list(groups[segment.start:segment.end]),
                        segment.part,
                        segment.lead_in_duration,
                        replica,
                        self.reward_config,
                        messages,
                        (segment.index, r),
                    )
                    for r, replica in enumerate(replicas)
                ]
                submitted.append((segment, jobs))

            for _ in range(window):
                submit_next()

            while submitted:
                segment, jobs = submitted.popleft()
                if should_cancel is not None and should_cancel():
                    for future in jobs:
                        future.cancel()
                    for _, pending in submitted:
                        for future in pending:
                            future.cancel()
                    raise SolveCancelled(f"Cancelled before segment {segment.index + 1}/{n_seg}")

                while not all(future.done() for future in jobs):
                    drain(messages, _POLL_SECONDS)
                tables = [future.result() for future in jobs]
                drain(messages, None)
                submit_next()

                policies.append(self._segment_policy(hand, groups, segment, tables))
                for r in range(n_rep):
                    fractions[(segment.index, r)] = 1.0
                report_fractions()
                logger.info(
                    "Completed part %d/%d, length %d",
                    segment.index + 1, n_seg, segment.end - segment.start,
                )
        return policies
