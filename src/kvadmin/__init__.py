"""Data-plane core of a key-value cluster admin shell.

Two independent pieces:

* :mod:`kvadmin.scan` - bulk copy/clear/count/gen-geo over partition splits
* :mod:`kvadmin.cluster` - remote commands and perf-counter aggregation
"""

from .config import ClusterConfig, ScanConfig, ScanOperation
from .logger import setup_logger, setup_scan_logging
from .errors import (
    ClusterQueryError,
    ErrorCode,
    KVAdminError,
    KVError,
    MetricContractError,
    MetricNameError,
    ScanError,
    UnknownMetricError,
)
from .types import Record

__all__ = [
    "ScanOperation",
    "ScanConfig",
    "ClusterConfig",
    "Record",
    "ErrorCode",
    "KVAdminError",
    "KVError",
    "ScanError",
    "ClusterQueryError",
    "MetricContractError",
    "MetricNameError",
    "UnknownMetricError",
    "setup_logger",
    "setup_scan_logging",
]
