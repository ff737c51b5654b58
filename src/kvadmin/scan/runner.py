from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, TYPE_CHECKING

from tqdm import tqdm

from ..config import ScanConfig, ScanOperation
from ..errors import ScanError
from .histogram import HistogramSummary, SizeHistogram
from .pipeline import ScanPipeline
from .task import HISTOGRAM_NAMES, ScanTask, SplitResult
from .topk import BoundedTopK, TopRow

if TYPE_CHECKING:
    from ..protocols import GeoClient, KVClient, PartitionScanner

__all__ = ["ScanRunResult", "run_scan"]

logger = logging.getLogger(__name__)


@dataclass
class ScanRunResult:
    """Per-split results of a scan/apply run plus run-wide aggregates."""

    operation: ScanOperation
    splits: List[SplitResult]
    elapsed_s: float
    histograms: Dict[str, HistogramSummary] = field(default_factory=dict)
    top_rows: List[TopRow] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(s.ok for s in self.splits)

    @property
    def total_rows(self) -> int:
        return sum(s.rows for s in self.splits)

    @property
    def errors(self) -> List[str]:
        return [s.error for s in self.splits if s.error]


def _validate(
    scanners: Sequence["PartitionScanner"],
    config: ScanConfig,
    client: Optional["KVClient"],
    geo_client: Optional["GeoClient"],
) -> None:
    if not scanners:
        raise ScanError("no partition scanners given")
    if config.max_in_flight <= 0:
        raise ScanError(f"max_in_flight must be > 0, got {config.max_in_flight}")
    if config.timeout_ms <= 0:
        raise ScanError(f"timeout_ms must be > 0, got {config.timeout_ms}")
    if config.top_count < 0:
        raise ScanError(f"top_count must be >= 0, got {config.top_count}")
    if config.operation in (ScanOperation.COPY, ScanOperation.CLEAR) and client is None:
        raise ScanError(f"{config.operation.value} needs a target client")
    if config.operation is ScanOperation.GEN_GEO and geo_client is None:
        raise ScanError("gen_geo needs a geo client")


def run_scan(
    scanners: Sequence["PartitionScanner"],
    config: ScanConfig,
    *,
    client: Optional["KVClient"] = None,
    geo_client: Optional["GeoClient"] = None,
) -> ScanRunResult:
    """
    Apply ``config.operation`` to every record of every split and wait for all
    requests to drain.

    The first split that fails sets a flag shared by the whole run; every other
    split stops issuing new fetches, and requests already in flight are left to
    finish. The run never raises for per-record failures: check
    ``ScanRunResult.ok`` and ``ScanRunResult.errors``.

    Progress and errors go to the ``kvadmin.scan`` loggers; call
    :func:`kvadmin.logger.setup_scan_logging` first for a per-run log file.

    Raises:
        ScanError: If the configuration or collaborators are unusable
    """
    _validate(scanners, config, client, geo_client)

    op = config.operation
    error_occurred = threading.Event()
    tasks = [
        ScanTask(
            op,
            split_id,
            scanner,
            error_occurred,
            max_in_flight=config.max_in_flight,
            timeout_ms=config.timeout_ms,
            client=client,
            geo_client=geo_client,
            stat_size=config.stat_size and op is ScanOperation.COUNT,
            top_count=config.top_count,
        )
        for split_id, scanner in enumerate(scanners)
    ]

    logger.info(
        "Starting %s over %d splits (max_in_flight=%d, timeout_ms=%d)",
        op.value, len(tasks), config.max_in_flight, config.timeout_ms,
    )

    start = time.perf_counter()
    pipeline = ScanPipeline()
    for task in tasks:
        pipeline.drive(task)

    _wait_for_splits(tasks, config)
    elapsed = time.perf_counter() - start

    result = ScanRunResult(
        operation=op,
        splits=[task.result() for task in tasks],
        elapsed_s=elapsed,
    )
    if config.stat_size and op is ScanOperation.COUNT:
        result.histograms = _merge_histograms(tasks)
        if config.top_count > 0:
            result.top_rows = _merge_top_rows(tasks, config.top_count)

    if result.ok:
        logger.info(
            "%s finished: %d splits, %s rows in %.1fs",
            op.value, len(tasks), f"{result.total_rows:,}", elapsed,
        )
    else:
        logger.error(
            "%s stopped on error after %s rows: %s",
            op.value, f"{result.total_rows:,}", "; ".join(result.errors),
        )
    return result


def _wait_for_splits(tasks: Sequence[ScanTask], config: ScanConfig) -> None:
    pending = list(tasks)
    start = time.perf_counter()
    with tqdm(
        total=len(tasks),
        desc=f"{config.operation.value} splits",
        unit="splits",
        disable=not config.show_progress,
    ) as pbar:
        while pending:
            still_running = []
            for task in pending:
                if task.wait_idle(timeout=0):
                    pbar.update(1)
                else:
                    still_running.append(task)
            pending = still_running

            total_rows = sum(task.rows for task in tasks)
            pbar.set_postfix(rows=f"{total_rows:,}")
            logger.debug(
                "processed for %.0fs, (%d/%d) splits, total %d rows",
                time.perf_counter() - start,
                len(tasks) - len(pending),
                len(tasks),
                total_rows,
            )

            if pending:
                pending[0].wait_idle(timeout=config.progress_interval_s)


def _merge_histograms(tasks: Sequence[ScanTask]) -> Dict[str, HistogramSummary]:
    merged = {name: SizeHistogram() for name in HISTOGRAM_NAMES}
    for task in tasks:
        for name, hist in task.histograms.items():
            merged[name].merge(hist)
    return {name: hist.summary() for name, hist in merged.items()}


def _merge_top_rows(tasks: Sequence[ScanTask], top_count: int) -> List[TopRow]:
    top = BoundedTopK(top_count)
    for task in tasks:
        if task.top_rows is None:
            continue
        for row in task.top_rows.snapshot():
            top.push(row.hash_key, row.sort_key, row.row_size)
    return top.sorted_desc()
