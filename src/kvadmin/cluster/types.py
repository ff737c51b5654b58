"""Shared types for cluster queries."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple

__all__ = [
    "NodeDesc",
    "NodeResult",
    "Command",
    "TableInfo",
    "PartitionConfig",
    "PerfCounterMetric",
    "PerfCounterInfo",
]


class NodeDesc(NamedTuple):
    desc: str
    """Node role: "meta-server" or "replica-server" """

    address: str
    """host:port"""


class NodeResult(NamedTuple):
    ok: bool
    payload: str
    """Raw reply on success, error text otherwise"""


@dataclass(frozen=True)
class Command:
    name: str
    arguments: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TableInfo:
    """One table (app) as listed by the meta server."""

    app_id: int
    app_name: str
    partition_count: int
    status: str = "available"


@dataclass(frozen=True)
class PartitionConfig:
    """Replica assignment of one partition."""

    partition_index: int
    primary: Optional[str]
    """Address of the primary replica, None while unassigned"""

    secondaries: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PerfCounterMetric:
    name: str
    value: float


@dataclass
class PerfCounterInfo:
    """Decoded reply of the ``perf-counters`` remote command."""

    result: str
    counters: List[PerfCounterMetric] = field(default_factory=list)
    timestamp: int = 0
    timestamp_str: str = ""

    @classmethod
    def decode(cls, payload: str) -> "PerfCounterInfo":
        """
        Parse the JSON reply of a node.

        Raises:
            ValueError: If the payload is not a well-formed reply
        """
        try:
            doc = json.loads(payload)
        except (TypeError, json.JSONDecodeError) as exc:
            raise ValueError(f"invalid perf counter reply: {exc}") from exc

        if not isinstance(doc, dict) or not isinstance(doc.get("result"), str):
            raise ValueError("perf counter reply has no 'result' string")

        raw_counters = doc.get("counters", [])
        if not isinstance(raw_counters, list):
            raise ValueError("perf counter reply 'counters' is not a list")

        counters = []
        for item in raw_counters:
            if not isinstance(item, dict) or not isinstance(item.get("name"), str):
                raise ValueError(f"malformed counter entry: {item!r}")
            value = item.get("value")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"counter {item['name']} has non-numeric value {value!r}")
            counters.append(PerfCounterMetric(item["name"], float(value)))

        return cls(
            result=doc["result"],
            counters=counters,
            timestamp=int(doc.get("timestamp", 0) or 0),
            timestamp_str=str(doc.get("timestamp_str", "")),
        )
