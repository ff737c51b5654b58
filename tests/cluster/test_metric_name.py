# tests/cluster/test_metric_name.py
from __future__ import annotations

import re

import pytest

from kvadmin.cluster.metric_name import (
    MetricName,
    app_counter_filter,
    build_metric_name,
    parse_metric_name,
)
from kvadmin.cluster.rows import COUNTER_FIELDS
from kvadmin.errors import MetricContractError, MetricNameError


@pytest.mark.parametrize(
    "name,expected",
    [
        ("replica*app.pegasus*get_qps@2.5", MetricName(2, 5, "get_qps")),
        ("pre*fix*real_metric@12.3", MetricName(12, 3, "real_metric")),
        ("replica*app.pegasus*disk.storage.sst(MB)@1.0", MetricName(1, 0, "disk.storage.sst(MB)")),
        ("we@ird*pre@fix*scan_qps@7.11", MetricName(7, 11, "scan_qps")),
        ("replica*app.pegasus*put_qps@3.4.extra", MetricName(3, 4, "put_qps")),
    ],
)
def test_parse_metric_name(name, expected):
    assert parse_metric_name(name) == expected


@pytest.mark.parametrize(
    "name",
    [
        "replica*app.pegasus*get_qps",
        "replica*app.pegasus*get_qps@x.1",
        "replica*app.pegasus*get_qps@1",
        "get_qps@1.2",
        "",
    ],
)
def test_parse_metric_name_rejects_malformed(name):
    with pytest.raises(MetricNameError):
        parse_metric_name(name)


def test_metric_name_error_hierarchy():
    with pytest.raises(MetricContractError):
        parse_metric_name("bad")
    with pytest.raises(ValueError):
        parse_metric_name("bad")


def test_build_and_parse_agree():
    name = build_metric_name(9, 31, "rdb.memtable.memory_usage")
    assert name == "replica*app.pegasus*rdb.memtable.memory_usage@9.31"
    assert parse_metric_name(name) == MetricName(9, 31, "rdb.memtable.memory_usage")


def test_filter_matches_every_table():
    pattern = re.compile(app_counter_filter())
    assert pattern.fullmatch(build_metric_name(1, 0, "get_qps"))
    assert pattern.fullmatch(build_metric_name(42, 7, "anything.else"))
    assert not pattern.fullmatch("replica*server*get_qps@1.0")


def test_filter_restricted_to_table_and_counters():
    pattern = re.compile(app_counter_filter(3, COUNTER_FIELDS))
    assert pattern.fullmatch(build_metric_name(3, 0, "get_qps"))
    assert pattern.fullmatch(build_metric_name(3, 5, "disk.storage.sst(MB)"))
    assert not pattern.fullmatch(build_metric_name(30, 0, "get_qps"))
    assert not pattern.fullmatch(build_metric_name(4, 0, "get_qps"))
    assert not pattern.fullmatch(build_metric_name(3, 0, "get_latency"))
    # '.' in counter names is literal
    assert not pattern.fullmatch(build_metric_name(3, 0, "recentXexpireXcount"))
