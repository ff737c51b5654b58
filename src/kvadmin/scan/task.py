"""Per-split mutable state shared by every in-flight request of that split."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, TYPE_CHECKING

from ..config import ScanOperation
from .histogram import HistogramSummary, SizeHistogram
from .topk import BoundedTopK, TopRow

if TYPE_CHECKING:
    from ..protocols import GeoClient, KVClient, PartitionScanner

__all__ = ["SplitState", "ScanTask", "SplitResult", "HISTOGRAM_NAMES"]

HISTOGRAM_NAMES = ("hash_key_size", "sort_key_size", "value_size", "row_size")


class SplitState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SplitResult:
    """Outcome of one split after all of its requests drained."""

    split_id: int
    state: SplitState
    rows: int
    error: Optional[str] = None
    histograms: Dict[str, HistogramSummary] = field(default_factory=dict)
    top_rows: List[TopRow] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is SplitState.COMPLETED


class ScanTask:
    """
    Context for draining one partition split.

    Counters and the state are guarded by one lock. Exhaustion moves RUNNING to
    COMPLETED, but writes issued before it may still be outstanding, so a
    failure can still move COMPLETED to FAILED. FAILED is final: the caller
    that wins the move into it with :meth:`claim_failure` is the only one that
    reports the error.

    Args:
        operation: Side effect applied to every record
        split_id: Index of the split this task drains
        scanner: Exclusively owned scanner for the split
        error_occurred: Event shared by all tasks of the run; set by the first
            task that fails so its siblings stop issuing fetches
        max_in_flight: Maximum number of outstanding requests
        timeout_ms: Deadline passed to every request
        client: Target client for COPY/CLEAR
        geo_client: Geo client for GEN_GEO
        stat_size: Collect size histograms during COUNT
        top_count: Number of largest rows to keep during COUNT (needs stat_size)
    """

    def __init__(
        self,
        operation: ScanOperation,
        split_id: int,
        scanner: "PartitionScanner",
        error_occurred: threading.Event,
        *,
        max_in_flight: int,
        timeout_ms: int,
        client: Optional["KVClient"] = None,
        geo_client: Optional["GeoClient"] = None,
        stat_size: bool = False,
        top_count: int = 0,
    ):
        self.operation = operation
        self.split_id = split_id
        self.scanner = scanner
        self.error_occurred = error_occurred
        self.max_in_flight = max_in_flight
        self.timeout_ms = timeout_ms
        self.client = client
        self.geo_client = geo_client
        self.stat_size = stat_size
        self.top_count = top_count

        self._cond = threading.Condition(threading.Lock())
        self._state = SplitState.RUNNING
        self._error: Optional[str] = None
        self._rows = 0
        self._in_flight = 0

        self.histograms: Dict[str, SizeHistogram] = (
            {name: SizeHistogram() for name in HISTOGRAM_NAMES} if stat_size else {}
        )
        self.top_rows: Optional[BoundedTopK] = (
            BoundedTopK(top_count) if stat_size and top_count > 0 else None
        )

    # --- state ---------------------------------------------------------------

    @property
    def state(self) -> SplitState:
        return self._state

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def error(self) -> Optional[str]:
        return self._error

    def is_running(self) -> bool:
        return self._state is SplitState.RUNNING and not self.error_occurred.is_set()

    def mark_completed(self) -> bool:
        """Benign end of the split. Returns False if it had already ended."""
        with self._cond:
            if self._state is not SplitState.RUNNING:
                return False
            self._state = SplitState.COMPLETED
            self._cond.notify_all()
            return True

    def claim_failure(self, message: str) -> bool:
        """
        Move the split to FAILED and raise the run-wide error flag.

        A split that already reached COMPLETED can still fail: a write issued
        before exhaustion may report its error afterwards.

        Returns:
            True for the single caller that performed the transition
        """
        with self._cond:
            if self._state is SplitState.FAILED:
                return False
            self._state = SplitState.FAILED
            self._error = message
            self._cond.notify_all()
        self.error_occurred.set()
        return True

    # --- budget --------------------------------------------------------------

    def try_acquire_slot(self, handover: int = 0) -> bool:
        """
        Take one budget slot if the split is still issuing work.

        Args:
            handover: Slots held by the caller that it is about to release and
                that may be counted as free
        """
        with self._cond:
            if (
                self._state is not SplitState.RUNNING
                or self.error_occurred.is_set()
                or self._in_flight - handover >= self.max_in_flight
            ):
                return False
            self._in_flight += 1
            return True

    def hold_slot(self) -> None:
        """Count a write/delete sub-request issued on behalf of a held fetch slot."""
        with self._cond:
            self._in_flight += 1

    def release_slot(self) -> None:
        with self._cond:
            self._in_flight -= 1
            if self._in_flight < 0:
                raise AssertionError(f"split[{self.split_id}] released more slots than it acquired")
            if self._in_flight == 0:
                self._cond.notify_all()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until no request is outstanding and the split will issue no more.

        Returns:
            True if the split is idle, False on timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._is_idle_locked():
                if deadline is None:
                    self._cond.wait(0.1)
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                # Wake periodically: the shared error flag is not tied to this condition
                self._cond.wait(min(remaining, 0.1))
            return True

    def _is_idle_locked(self) -> bool:
        if self._in_flight != 0:
            return False
        return self._state is not SplitState.RUNNING or self.error_occurred.is_set()

    # --- per-record effects --------------------------------------------------

    def add_row(self) -> None:
        with self._cond:
            self._rows += 1

    def record_row(self, hash_key: bytes, sort_key: bytes, value: bytes) -> None:
        """Count one scanned row and, if enabled, its size statistics."""
        self.add_row()
        if not self.stat_size:
            return
        hash_key_size = len(hash_key)
        sort_key_size = len(sort_key)
        value_size = len(value)
        row_size = hash_key_size + sort_key_size + value_size
        self.histograms["hash_key_size"].add(hash_key_size)
        self.histograms["sort_key_size"].add(sort_key_size)
        self.histograms["value_size"].add(value_size)
        self.histograms["row_size"].add(row_size)
        if self.top_rows is not None:
            self.top_rows.push(hash_key, sort_key, row_size)

    def result(self) -> SplitResult:
        return SplitResult(
            split_id=self.split_id,
            state=self._state,
            rows=self._rows,
            error=self._error,
            histograms={name: h.summary() for name, h in self.histograms.items()},
            top_rows=self.top_rows.sorted_desc() if self.top_rows is not None else [],
        )
