from __future__ import annotations

import logging
from typing import List

from .runner import ScanRunResult
from .task import SplitState

logger = logging.getLogger(__name__)

_HISTOGRAM_LABELS = {
    "hash_key_size": "[hash_key]",
    "sort_key_size": "[sort_key]",
    "value_size": "[value]",
    "row_size": "[row]",
}


def _abbrev(key: bytes, width: int = 48) -> str:
    """Printable form of a binary key, truncated with an ellipsis past width."""
    s = key.decode("utf-8", errors="backslashreplace")
    return s if len(s) <= width else (s[: max(0, width - 1)] + "…")


def format_scan_summary(result: ScanRunResult, *, per_split: bool = False) -> List[str]:
    """
    Build the human-readable summary of a finished scan/apply run.
    """
    status = "OK" if result.ok else "FAILED"
    lines = [
        f"Operation:       {result.operation.value}",
        f"Splits:          {len(result.splits)}",
        f"Total rows:      {result.total_rows:,}",
        f"Elapsed:         {result.elapsed_s:.1f}s",
        f"Status:          {status}",
    ]

    if per_split:
        for split in result.splits:
            state = split.state.value if split.state is not SplitState.RUNNING else "cancelled"
            lines.append(f"  split[{split.split_id}]: {split.rows:,} rows ({state})")

    for error in result.errors:
        lines.append(f"ERROR: {error}")

    for name, summary in result.histograms.items():
        lines.append(f"{_HISTOGRAM_LABELS.get(name, name)} {summary.format()}")

    if result.top_rows:
        lines.append(f"Top {len(result.top_rows)} rows by size:")
        for rank, row in enumerate(result.top_rows, start=1):
            lines.append(
                f"  [{rank}] hash_key = \"{_abbrev(row.hash_key)}\", "
                f"sort_key = \"{_abbrev(row.sort_key)}\", row_size = {row.row_size:,}"
            )
    return lines


def log_scan_summary(result: ScanRunResult, **kwargs) -> None:
    """Log the run summary at INFO level (ERROR for failed runs)."""
    level = logging.INFO if result.ok else logging.ERROR
    for line in format_scan_summary(result, **kwargs):
        logger.log(level, line)
