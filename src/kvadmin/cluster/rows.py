"""Per-table / per-partition stat rows."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict

from ..errors import UnknownMetricError

__all__ = ["COUNTER_FIELDS", "Row"]

# wire counter name -> Row field
COUNTER_FIELDS: Dict[str, str] = {
    "get_qps": "get_qps",
    "multi_get_qps": "multi_get_qps",
    "put_qps": "put_qps",
    "multi_put_qps": "multi_put_qps",
    "remove_qps": "remove_qps",
    "multi_remove_qps": "multi_remove_qps",
    "incr_qps": "incr_qps",
    "check_and_set_qps": "check_and_set_qps",
    "check_and_mutate_qps": "check_and_mutate_qps",
    "scan_qps": "scan_qps",
    "recent.expire.count": "recent_expire_count",
    "recent.filter.count": "recent_filter_count",
    "recent.abnormal.count": "recent_abnormal_count",
    "disk.storage.sst(MB)": "storage_mb",
    "disk.storage.sst.count": "storage_count",
    "rdb.block_cache.hit_count": "rdb_block_cache_hit_count",
    "rdb.block_cache.total_count": "rdb_block_cache_total_count",
    "rdb.block_cache.memory_usage": "rdb_block_cache_mem_usage",
    "rdb.index_and_filter_blocks.memory_usage": "rdb_index_and_filter_blocks_mem_usage",
    "rdb.memtable.memory_usage": "rdb_memtable_mem_usage",
}


@dataclass
class Row:
    """Summed counters of one table or one partition."""

    row_name: str
    get_qps: float = 0.0
    multi_get_qps: float = 0.0
    put_qps: float = 0.0
    multi_put_qps: float = 0.0
    remove_qps: float = 0.0
    multi_remove_qps: float = 0.0
    incr_qps: float = 0.0
    check_and_set_qps: float = 0.0
    check_and_mutate_qps: float = 0.0
    scan_qps: float = 0.0
    recent_expire_count: float = 0.0
    recent_filter_count: float = 0.0
    recent_abnormal_count: float = 0.0
    storage_mb: float = 0.0
    storage_count: float = 0.0
    rdb_block_cache_hit_count: float = 0.0
    rdb_block_cache_total_count: float = 0.0
    rdb_block_cache_mem_usage: float = 0.0
    rdb_index_and_filter_blocks_mem_usage: float = 0.0
    rdb_memtable_mem_usage: float = 0.0

    def update(self, counter_name: str, value: float) -> None:
        """
        Add ``value`` to the accumulator of ``counter_name``.

        Raises:
            UnknownMetricError: If the counter has no accumulator
        """
        field_name = COUNTER_FIELDS.get(counter_name)
        if field_name is None:
            raise UnknownMetricError(f"unknown counter {counter_name!r} for row {self.row_name!r}")
        setattr(self, field_name, getattr(self, field_name) + value)

    @property
    def block_cache_hit_rate(self) -> float:
        if self.rdb_block_cache_total_count <= 0:
            return 0.0
        return self.rdb_block_cache_hit_count / self.rdb_block_cache_total_count

    def as_dict(self) -> Dict[str, object]:
        return asdict(self)
