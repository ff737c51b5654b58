"""Wire names of per-partition perf counters.

A per-partition counter is exposed as::

    <section>*<app.pegasus>*<counter_name>@<app_id>.<partition_index>

The counter name is whatever sits between the last ``*`` before the last
``@`` and that ``@``; ``@`` or ``*`` characters earlier in the name belong to
the prefix.
"""

from __future__ import annotations

import re
from typing import Iterable, NamedTuple, Optional

from ..errors import MetricNameError

__all__ = [
    "APP_COUNTER_PREFIX",
    "MetricName",
    "parse_metric_name",
    "build_metric_name",
    "app_counter_filter",
]

APP_COUNTER_PREFIX = "replica*app.pegasus"

# Leading "<int>.<int>"; trailing text after the partition index is ignored
_APP_PARTITION = re.compile(r"([+-]?\d+)\.([+-]?\d+)")


class MetricName(NamedTuple):
    app_id: int
    partition_index: int
    counter_name: str


def parse_metric_name(name: str) -> MetricName:
    """
    Split a counter wire name into (app_id, partition_index, counter_name).

    Raises:
        MetricNameError: If the name has no ``@<app>.<partition>`` suffix or no
            ``*`` before it

    Examples:
        >>> parse_metric_name("replica*app.pegasus*get_qps@2.5")
        MetricName(app_id=2, partition_index=5, counter_name='get_qps')
        >>> parse_metric_name("pre*fix*real_metric@12.3")
        MetricName(app_id=12, partition_index=3, counter_name='real_metric')
    """
    at = name.rfind("@")
    if at < 0:
        raise MetricNameError(f"no '@' in counter name {name!r}")

    m = _APP_PARTITION.match(name, at + 1)
    if m is None:
        raise MetricNameError(f"no '<app_id>.<partition_index>' after '@' in {name!r}")

    star = name.rfind("*", 0, at)
    if star < 0:
        raise MetricNameError(f"no '*' before '@' in counter name {name!r}")

    return MetricName(int(m.group(1)), int(m.group(2)), name[star + 1:at])


def build_metric_name(
    app_id: int,
    partition_index: int,
    counter_name: str,
    prefix: str = APP_COUNTER_PREFIX,
) -> str:
    return f"{prefix}*{counter_name}@{app_id}.{partition_index}"


def app_counter_filter(
    app_id: Optional[int] = None,
    counter_names: Optional[Iterable[str]] = None,
) -> str:
    """
    Build the regex argument of the ``perf-counters`` command.

    The aggregator passes ``COUNTER_FIELDS`` as ``counter_names``, so nodes only
    return counters a stat row can hold. ``UnknownMetricError`` is then only
    raised by a node that ignores the filter.

    Args:
        app_id: Restrict to one table; None matches every table
        counter_names: Restrict to these counters; None matches any counter

    Examples:
        >>> app_counter_filter()
        '.*\\\\*app\\\\.pegasus\\\\*.*@.*'
        >>> app_counter_filter(3, ["get_qps"])
        '.*\\\\*app\\\\.pegasus\\\\*(?:get_qps)@3\\\\..*'
    """
    if counter_names is None:
        counters = ".*"
    else:
        counters = "(?:" + "|".join(re.escape(c) for c in counter_names) + ")"
    suffix = ".*" if app_id is None else f"{app_id}\\..*"
    return f".*\\*app\\.pegasus\\*{counters}@{suffix}"
