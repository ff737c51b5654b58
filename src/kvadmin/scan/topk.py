"""Thread-safe container keeping the largest rows seen by a count scan."""

from __future__ import annotations

import heapq
import itertools
import threading
from typing import List, NamedTuple, Tuple

__all__ = ["TopRow", "BoundedTopK"]


class TopRow(NamedTuple):
    hash_key: bytes
    sort_key: bytes
    row_size: int


class BoundedTopK:
    """
    Fixed-capacity min-heap keyed by row size.

    The smallest retained row sits at the root, so once the heap is full a new
    row only gets in by evicting it, and only when strictly larger. Ties keep
    the row already retained.

    Args:
        capacity: Number of rows to retain; 0 disables the container

    Example:
        >>> top = BoundedTopK(2)
        >>> for size in (5, 1, 9):
        ...     top.push(b"h", b"s%d" % size, size)
        >>> [r.row_size for r in top.sorted_desc()]
        [9, 5]
    """

    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self.capacity = capacity
        # (row_size, insertion seq, row); seq keeps bytes out of comparisons
        self._heap: List[Tuple[int, int, TopRow]] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def push(self, hash_key: bytes, sort_key: bytes, row_size: int) -> None:
        if self.capacity == 0:
            return
        with self._lock:
            if len(self._heap) < self.capacity:
                heapq.heappush(
                    self._heap, (row_size, next(self._seq), TopRow(hash_key, sort_key, row_size))
                )
            elif self._heap[0][0] < row_size:
                heapq.heapreplace(
                    self._heap, (row_size, next(self._seq), TopRow(hash_key, sort_key, row_size))
                )

    def snapshot(self) -> List[TopRow]:
        """Retained rows in unspecified order."""
        with self._lock:
            return [item[2] for item in self._heap]

    def sorted_desc(self) -> List[TopRow]:
        return sorted(self.snapshot(), key=lambda r: r.row_size, reverse=True)

    def min_size(self) -> int:
        """Size of the row that would be evicted next (0 when empty)."""
        with self._lock:
            return self._heap[0][0] if self._heap else 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._heap)
