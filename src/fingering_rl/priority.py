"""Indexed max-priority queue with key coalescing.

Re-enqueuing a key already in the queue replaces its priority in
O(log n): the stale heap entry is invalidated and skipped on pop.  Among
equal priorities, keys pop in the order they were first enqueued.
"""

from __future__ import annotations

import heapq
from typing import Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)


class PriorityQueue(Generic[K]):
    def __init__(self) -> None:
        self._heap: list[list] = []
        self._entries: dict[K, list] = {}
        self._counter = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def push(self, key: K, priority: float) -> None:
        """Insert *key*, or replace its priority if already queued."""
        existing = self._entries.get(key)
        if existing is not None:
            order = existing[1]
            existing[-1] = False
        else:
            order = self._counter
            self._counter += 1
        # [negated priority, first-enqueue order, key, valid]
        entry = [-priority, order, key, True]
        self._entries[key] = entry
        heapq.heappush(self._heap, entry)

    def pop(self) -> tuple[K, float]:
        """Remove and return the highest-priority ``(key, priority)``.

        Raises:
            KeyError: If the queue is empty.
        """
        while self._heap:
            neg_priority, _, key, valid = heapq.heappop(self._heap)
            if valid:
                del self._entries[key]
                return key, -neg_priority
        raise KeyError("pop from an empty priority queue")

    def clear(self) -> None:
        self._heap.clear()
        self._entries.clear()
        self._counter = 0
