# tests/store/test_local_store.py
from __future__ import annotations

from pathlib import Path

import pytest

from kvadmin.config import ScanConfig, ScanOperation
from kvadmin.errors import ErrorCode, KVError
from kvadmin.scan.runner import run_scan
from kvadmin.store.local import LocalStore
from kvadmin.types import Record


@pytest.fixture()
def source(tmp_path: Path):
    with LocalStore(tmp_path / "source") as store:
        for i in range(200):
            store.put(b"user%03d" % (i % 40), b"field%d" % i, b"v" * (i % 13))
        yield store


def _config(op, **kw):
    return ScanConfig(operation=op, max_in_flight=8, show_progress=False, progress_interval_s=0.01, **kw)


def test_put_get_delete(tmp_path: Path):
    with LocalStore(tmp_path / "db") as store:
        store.put(b"hk", b"sk", b"value")
        assert store.get(b"hk", b"sk") == b"value"
        assert store.get(b"hk", b"other") is None
        assert store.count() == 1

        store.delete(b"hk", b"sk")
        assert store.count() == 0


def test_records_in_key_order(tmp_path: Path):
    with LocalStore(tmp_path / "db") as store:
        store.put(b"b", b"1", b"x")
        store.put(b"a", b"2", b"y")
        assert store.records() == [Record(b"a", b"2", b"y"), Record(b"b", b"1", b"x")]


def test_closed_store_raises(tmp_path: Path):
    store = LocalStore(tmp_path / "db")
    store.close()
    store.close()
    with pytest.raises(KVError) as excinfo:
        store.db
    assert excinfo.value.code == ErrorCode.APP_NOT_EXIST


def test_reopen_keeps_data(tmp_path: Path):
    with LocalStore(tmp_path / "db") as store:
        store.put(b"k", b"s", b"v")
    with LocalStore(tmp_path / "db") as store:
        assert store.get(b"k", b"s") == b"v"


def test_scanners_partition_rows(source):
    scanners = source.scanners(3)
    seen = []
    for scanner in scanners:
        while True:
            record = scanner.async_next().result()
            if record is None:
                break
            seen.append((scanner.split_id, record))

    assert len(seen) == 200
    assert {r for _, r in seen} == set(source.records())
    owner = {}
    for split_id, record in seen:
        assert owner.setdefault(record.hash_key, split_id) == split_id
    # Exhausted scanners keep answering None
    assert scanners[0].async_next().result() is None

    with pytest.raises(ValueError):
        source.scanners(0)


def test_client_rejects_oversized_hash_key(source):
    future = source.client().async_set(b"x" * 70000, b"", b"v", 1000)
    with pytest.raises(KVError) as excinfo:
        future.result()
    assert excinfo.value.code == ErrorCode.INVALID_ARGUMENT


def test_count_scan(source):
    result = run_scan(source.scanners(4), _config(ScanOperation.COUNT, stat_size=True, top_count=3))

    assert result.ok
    assert result.total_rows == 200
    assert result.histograms["row_size"].count == 200
    assert len(result.top_rows) == 3
    assert result.top_rows[0].row_size >= result.top_rows[-1].row_size


def test_copy_then_clear(source, tmp_path: Path):
    with LocalStore(tmp_path / "target") as target:
        copied = run_scan(source.scanners(4), _config(ScanOperation.COPY), client=target.client())
        assert copied.ok
        assert copied.total_rows == 200
        assert target.records() == source.records()

        cleared = run_scan(target.scanners(2), _config(ScanOperation.CLEAR), client=target.client())
        assert cleared.ok
        assert cleared.total_rows == 200
        assert target.count() == 0


def test_copy_into_closed_target_fails(source, tmp_path: Path):
    target = LocalStore(tmp_path / "target")
    client = target.client()
    target.close()

    with pytest.raises(RuntimeError):
        client.async_set(b"k", b"s", b"v", 1000)
