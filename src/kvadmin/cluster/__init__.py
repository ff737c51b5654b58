"""Cluster-wide remote commands and perf-counter aggregation."""

from .dispatch import call_remote_command, run_remote_command
from .metric_name import MetricName, app_counter_filter, build_metric_name, parse_metric_name
from .nodes import fill_nodes
from .rows import COUNTER_FIELDS, Row
from .stat import StatAggregator
from .types import (
    Command,
    NodeDesc,
    NodeResult,
    PartitionConfig,
    PerfCounterInfo,
    PerfCounterMetric,
    TableInfo,
)

__all__ = [
    "Command",
    "NodeDesc",
    "NodeResult",
    "TableInfo",
    "PartitionConfig",
    "PerfCounterMetric",
    "PerfCounterInfo",
    "fill_nodes",
    "call_remote_command",
    "run_remote_command",
    "MetricName",
    "parse_metric_name",
    "build_metric_name",
    "app_counter_filter",
    "COUNTER_FIELDS",
    "Row",
    "StatAggregator",
]
