# tests/cluster/test_stat.py
from __future__ import annotations

import json
import re

import pytest

from kvadmin.cluster.metric_name import build_metric_name
from kvadmin.cluster.rows import COUNTER_FIELDS
from kvadmin.cluster.stat import PERF_COUNTERS_COMMAND, StatAggregator
from kvadmin.cluster.types import PartitionConfig, TableInfo
from kvadmin.config import ClusterConfig
from kvadmin.errors import ClusterQueryError, MetricContractError, MetricNameError, UnknownMetricError

R1, R2, R3 = "10.0.1.1:34801", "10.0.1.2:34801", "10.0.1.3:34801"


# ---- fakes ----

class FakeDDL:
    def __init__(self, apps, partitions, replicas=(R1, R2, R3)):
        self.apps = list(apps)
        self.partitions = partitions
        self.replicas = list(replicas)
        self.fail_list_apps = False

    def list_nodes(self, node_type):
        return self.replicas

    def list_apps(self, status="available"):
        if self.fail_list_apps:
            raise ConnectionError("meta down")
        return self.apps

    def list_app(self, app_name):
        app = next(a for a in self.apps if a.app_name == app_name)
        parts = self.partitions[app.app_id]
        return app.app_id, len(parts), parts


class FakeChannel:
    """
    Serves perf-counters from a per-node list of (wire name, value).

    The filter argument is applied the way a server would, so tests also
    check which counters the aggregator asks for.
    """

    def __init__(self, counters, overrides=None):
        self.counters = counters
        self.overrides = overrides or {}
        self.commands = []

    def call(self, address, command, arguments, timeout_ms):
        self.commands.append((command, list(arguments)))
        if address in self.overrides:
            reply = self.overrides[address]
            if isinstance(reply, BaseException):
                raise reply
            return reply
        pattern = re.compile(arguments[0])
        return json.dumps(
            {
                "result": "OK",
                "timestamp": 1,
                "timestamp_str": "1970-01-01 00:00:01",
                "counters": [
                    {"name": name, "value": value}
                    for name, value in self.counters.get(address, [])
                    if pattern.fullmatch(name)
                ],
            }
        )


def _three_partitions():
    """Table 1 with 3 partitions; each node is primary of one and secondary of the others."""
    apps = [TableInfo(1, "usertable", 3)]
    partitions = {
        1: [
            PartitionConfig(0, R1, (R2, R3)),
            PartitionConfig(1, R2, (R1, R3)),
            PartitionConfig(2, R3, (R1, R2)),
        ]
    }
    counters = {
        node: [(build_metric_name(1, pidx, "get_qps"), 5) for pidx in range(3)]
        for node in (R1, R2, R3)
    }
    return FakeDDL(apps, partitions), counters


def _two_tables():
    apps = [TableInfo(1, "t1", 2), TableInfo(2, "t2", 1)]
    partitions = {
        1: [PartitionConfig(0, R1, (R2,)), PartitionConfig(1, R2, (R1,))],
        2: [PartitionConfig(0, R3, (R1,))],
    }
    counters = {
        R1: [
            (build_metric_name(1, 0, "get_qps"), 10),
            (build_metric_name(1, 1, "get_qps"), 999),  # secondary
            (build_metric_name(2, 0, "put_qps"), 999),  # secondary
            (build_metric_name(1, 0, "disk.storage.sst(MB)"), 64),
            (build_metric_name(1, 0, "get_p99_latency"), 3),  # not requested
        ],
        R2: [
            (build_metric_name(1, 1, "get_qps"), 20),
            (build_metric_name(1, 1, "disk.storage.sst(MB)"), 36),
        ],
        R3: [
            (build_metric_name(2, 0, "put_qps"), 7),
            (build_metric_name(99, 0, "put_qps"), 1),  # table created after listing
        ],
    }
    return FakeDDL(apps, partitions), counters


def _agg(ddl, channel):
    return StatAggregator(ddl, channel, ClusterConfig(command_timeout_ms=1000, join_grace_s=0.5))


# ---- all tables ----

def test_single_table_sums_primaries_only():
    ddl, counters = _three_partitions()
    rows = _agg(ddl, FakeChannel(counters)).get_app_stat()

    assert [r.row_name for r in rows] == ["usertable"]
    assert rows[0].get_qps == 15


def test_all_tables_rows_in_listing_order():
    ddl, counters = _two_tables()
    channel = FakeChannel(counters)
    rows = _agg(ddl, channel).get_app_stat()

    assert [r.row_name for r in rows] == ["t1", "t2"]
    assert rows[0].get_qps == 30
    assert rows[0].storage_mb == 100
    assert rows[1].put_qps == 7
    assert all(cmd == PERF_COUNTERS_COMMAND for cmd, _ in channel.commands)
    assert len(channel.commands) == 3


def test_per_partition_rows():
    ddl, counters = _two_tables()
    rows = _agg(ddl, FakeChannel(counters)).get_app_stat("t1")

    assert [r.row_name for r in rows] == ["0", "1"]
    assert rows[0].get_qps == 10
    assert rows[0].storage_mb == 64
    assert rows[1].get_qps == 20
    assert rows[1].storage_mb == 36


def test_per_partition_filter_limits_to_table():
    ddl, counters = _two_tables()
    channel = FakeChannel(counters)
    rows = _agg(ddl, channel).get_app_stat("t2")

    assert [r.row_name for r in rows] == ["0"]
    assert rows[0].put_qps == 7
    assert all("2\\." in args[0] for _, args in channel.commands)


# ---- failures ----

def test_unknown_table():
    ddl, counters = _two_tables()
    with pytest.raises(ClusterQueryError, match="app nope not found"):
        _agg(ddl, FakeChannel(counters)).get_app_stat("nope")


def test_list_apps_failure():
    ddl, counters = _two_tables()
    ddl.fail_list_apps = True
    with pytest.raises(ClusterQueryError, match="list apps failed"):
        _agg(ddl, FakeChannel(counters)).get_app_stat()


@pytest.mark.parametrize(
    "reply,match",
    [
        ('{"result": "ERR_INVALID_PARAMETERS", "counters": []}', "returns error"),
        ("<html>", "decode perf counter info"),
        (ConnectionResetError("reset by peer"), "reset by peer"),
    ],
)
def test_bad_node_reply_fails_whole_query(reply, match):
    ddl, counters = _three_partitions()
    channel = FakeChannel(counters, overrides={R2: reply})
    with pytest.raises(ClusterQueryError, match=match):
        _agg(ddl, channel).get_app_stat()


def test_malformed_counter_name():
    ddl, counters = _three_partitions()
    reply = json.dumps({"result": "OK", "counters": [{"name": "broken@1.0", "value": 1}]})
    with pytest.raises(MetricNameError):
        _agg(ddl, FakeChannel(counters, overrides={R1: reply})).get_app_stat()


def test_partition_index_out_of_range():
    ddl, counters = _three_partitions()
    reply = json.dumps(
        {"result": "OK", "counters": [{"name": build_metric_name(1, 3, "get_qps"), "value": 1}]}
    )
    with pytest.raises(MetricContractError, match="out of range"):
        _agg(ddl, FakeChannel(counters, overrides={R1: reply})).get_app_stat()


def test_unknown_counter_from_primary():
    ddl, counters = _three_partitions()
    reply = json.dumps(
        {"result": "OK", "counters": [{"name": build_metric_name(1, 0, "mystery"), "value": 1}]}
    )
    with pytest.raises(UnknownMetricError):
        _agg(ddl, FakeChannel(counters, overrides={R1: reply})).get_app_stat()


def test_foreign_table_counter_in_per_partition_mode():
    ddl, counters = _two_tables()
    reply = json.dumps(
        {"result": "OK", "counters": [{"name": build_metric_name(2, 0, "get_qps"), "value": 1}]}
    )
    with pytest.raises(MetricContractError, match="not the queried app"):
        _agg(ddl, FakeChannel(counters, overrides={R1: reply})).get_app_stat("t1")


def test_partition_listing_mismatch():
    ddl, counters = _three_partitions()
    ddl.partitions[1] = ddl.partitions[1][:2]
    with pytest.raises(MetricContractError, match="partition count"):
        _agg(ddl, FakeChannel(counters)).get_app_stat()


@pytest.mark.parametrize("app_name,app_id", [(None, 1), ("t2", 2)])
def test_filter_requests_only_row_counters(app_name, app_id):
    ddl, counters = _two_tables()
    channel = FakeChannel(counters)
    _agg(ddl, channel).get_app_stat(app_name)

    pattern = re.compile(channel.commands[0][1][0])
    for counter in COUNTER_FIELDS:
        assert pattern.fullmatch(build_metric_name(app_id, 0, counter))
    assert not pattern.fullmatch(build_metric_name(app_id, 0, "get_p99_latency"))
    assert not pattern.fullmatch(build_metric_name(app_id, 0, "rdb.block_cache"))
