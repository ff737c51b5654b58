"""Bulk scan/apply over partition splits."""

from .histogram import HistogramSummary, SizeHistogram
from .pipeline import ScanPipeline
from .report import format_scan_summary, log_scan_summary
from .runner import ScanRunResult, run_scan
from .task import ScanTask, SplitResult, SplitState
from .topk import BoundedTopK, TopRow

__all__ = [
    "BoundedTopK",
    "TopRow",
    "SizeHistogram",
    "HistogramSummary",
    "ScanTask",
    "SplitState",
    "SplitResult",
    "ScanPipeline",
    "ScanRunResult",
    "run_scan",
    "format_scan_summary",
    "log_scan_summary",
]
