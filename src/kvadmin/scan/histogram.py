"""Bucketed size histograms for count scans."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass

import numpy as np

__all__ = ["BUCKET_LIMITS", "HistogramSummary", "SizeHistogram"]


def _make_bucket_limits() -> np.ndarray:
    """Upper bounds of each bucket: 1, 2, then x1.5 kept to two significant digits."""
    limits = [1, 2]
    bucket_val = 2.0
    max_val = float(np.iinfo(np.int64).max)
    while True:
        bucket_val *= 1.5
        if bucket_val > max_val:
            break
        v = int(bucket_val)
        pow_of_ten = 1
        while v // 10 > 10:
            v //= 10
            pow_of_ten *= 10
        limits.append(v * pow_of_ten)
    return np.array(limits, dtype=np.int64)


BUCKET_LIMITS = _make_bucket_limits()


@dataclass(frozen=True)
class HistogramSummary:
    """Point-in-time statistics of a SizeHistogram."""

    count: int
    min: int
    max: int
    average: float
    std_dev: float
    median: float
    p95: float
    p99: float

    def format(self) -> str:
        return (
            f"count = {self.count:,}, min = {self.min}, max = {self.max}, "
            f"average = {self.average:.2f}, stddev = {self.std_dev:.2f}, "
            f"median = {self.median:.2f}, p95 = {self.p95:.2f}, p99 = {self.p99:.2f}"
        )


class SizeHistogram:
    """
    Thread-safe histogram of non-negative sizes.

    Samples land in the first bucket whose upper bound is >= the sample.
    Percentiles interpolate linearly inside the bucket and are clamped to the
    observed min/max, so the same multiset of samples always produces the same
    buckets and the same statistics regardless of arrival order.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buckets = np.zeros(len(BUCKET_LIMITS), dtype=np.int64)
        self._count = 0
        self._sum = 0
        self._sum_squares = 0
        self._min = 0
        self._max = 0

    def add(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"histogram samples must be >= 0, got {value}")
        idx = min(int(np.searchsorted(BUCKET_LIMITS, value, side="left")), len(BUCKET_LIMITS) - 1)
        with self._lock:
            if self._count == 0:
                self._min = self._max = value
            else:
                self._min = min(self._min, value)
                self._max = max(self._max, value)
            self._count += 1
            self._sum += value
            self._sum_squares += value * value
            self._buckets[idx] += 1

    def merge(self, other: "SizeHistogram") -> None:
        """Fold another histogram's samples into this one."""
        with other._lock:
            buckets = other._buckets.copy()
            count, total, squares = other._count, other._sum, other._sum_squares
            lo, hi = other._min, other._max
        if count == 0:
            return
        with self._lock:
            if self._count == 0:
                self._min, self._max = lo, hi
            else:
                self._min = min(self._min, lo)
                self._max = max(self._max, hi)
            self._count += count
            self._sum += total
            self._sum_squares += squares
            self._buckets += buckets

    @property
    def count(self) -> int:
        return self._count

    @property
    def sum(self) -> int:
        return self._sum

    @property
    def min(self) -> int:
        return self._min

    @property
    def max(self) -> int:
        return self._max

    @property
    def average(self) -> float:
        with self._lock:
            return self._sum / self._count if self._count else 0.0

    @property
    def std_dev(self) -> float:
        with self._lock:
            if self._count == 0:
                return 0.0
            n = self._count
            variance = (self._sum_squares * n - self._sum * self._sum) / (n * n)
        return math.sqrt(max(variance, 0.0))

    def bucket_counts(self) -> np.ndarray:
        with self._lock:
            return self._buckets.copy()

    def percentile(self, p: float) -> float:
        """
        Estimate the p-th percentile (0 <= p <= 100).

        Returns:
            0.0 for an empty histogram
        """
        if not 0.0 <= p <= 100.0:
            raise ValueError(f"percentile must be within [0, 100], got {p}")
        with self._lock:
            if self._count == 0:
                return 0.0
            buckets = self._buckets.copy()
            count, lo, hi = self._count, self._min, self._max

        threshold = count * (p / 100.0)
        cumulative = np.cumsum(buckets)
        b = int(np.searchsorted(cumulative, threshold, side="left"))
        if b >= len(buckets):
            return float(hi)

        left_point = 0 if b == 0 else int(BUCKET_LIMITS[b - 1])
        right_point = int(BUCKET_LIMITS[b])
        bucket_value = int(buckets[b])
        left_sum = int(cumulative[b]) - bucket_value
        pos = (threshold - left_sum) / bucket_value if bucket_value else 0.0
        r = left_point + (right_point - left_point) * pos
        return float(min(max(r, lo), hi))

    @property
    def median(self) -> float:
        return self.percentile(50.0)

    def summary(self) -> HistogramSummary:
        return HistogramSummary(
            count=self.count,
            min=self.min,
            max=self.max,
            average=self.average,
            std_dev=self.std_dev,
            median=self.median,
            p95=self.percentile(95.0),
            p99=self.percentile(99.0),
        )
