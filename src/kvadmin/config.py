# kvadmin/config.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class ScanOperation(str, Enum):
    """Per-record side effect applied by a scan/apply run."""

    COPY = "copy"
    CLEAR = "clear"
    COUNT = "count"
    GEN_GEO = "gen_geo"


# Scan/apply run options
@dataclass(frozen=True)
class ScanConfig:
    """Options for one scan/apply run over a set of partition splits.

    ``max_in_flight`` is the backpressure budget of each split: the number of
    fetch and write requests that may be outstanding at the same time. Any
    budget of at least 1 is valid.
    """

    operation: ScanOperation

    # Backpressure
    max_in_flight: int = 500
    timeout_ms: int = 10_000  # Passed through to every fetch/write/delete

    # Count statistics (ignored by the other operations)
    stat_size: bool = False
    top_count: int = 0  # Largest rows kept per split when stat_size is set

    # Progress reporting
    progress_interval_s: float = 1.0
    show_progress: bool = True


# Cluster query options
@dataclass(frozen=True)
class ClusterConfig:
    meta_servers: Tuple[str, ...] = ()
    command_timeout_ms: int = 5_000
    dispatch_workers: Optional[int] = None  # If None, one thread per node (capped at 64)
    join_grace_s: float = 1.0  # Extra wait on top of the command timeout before a node is marked timed out
