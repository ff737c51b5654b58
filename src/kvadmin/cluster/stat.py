"""Cluster-wide aggregation of per-partition perf counters."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence, TYPE_CHECKING

from ..config import ClusterConfig
from ..errors import ClusterQueryError, MetricContractError
from .dispatch import call_remote_command
from .metric_name import MetricName, app_counter_filter, parse_metric_name
from .nodes import REPLICA_SERVER, fill_nodes
from .rows import COUNTER_FIELDS, Row
from .types import Command, NodeDesc, NodeResult, PartitionConfig, PerfCounterInfo, TableInfo

if TYPE_CHECKING:
    from ..protocols import CommandChannel, DDLClient

__all__ = ["PERF_COUNTERS_COMMAND", "StatAggregator"]

logger = logging.getLogger(__name__)

PERF_COUNTERS_COMMAND = "perf-counters"


class StatAggregator:
    """
    Folds per-partition perf counters of all replica servers into stat rows.

    Only the value reported by a partition's current primary is counted;
    secondaries may expose the same counters and would double count.

    Args:
        ddl_client: Control-plane client (tables, partitions, nodes)
        channel: Remote-command transport
        config: Meta servers and command timeouts
    """

    def __init__(
        self,
        ddl_client: "DDLClient",
        channel: "CommandChannel",
        config: Optional[ClusterConfig] = None,
    ):
        self.ddl_client = ddl_client
        self.channel = channel
        self.config = config or ClusterConfig()

    def get_app_stat(self, app_name: Optional[str] = None) -> List[Row]:
        """
        Aggregate counters per table, or per partition of ``app_name``.

        Returns:
            One row per available table in listing order, or one row per
            partition (named by its index) when ``app_name`` is given

        Raises:
            ClusterQueryError: A listing failed, the table does not exist, or a
                node reply failed, did not decode, or was not "OK"
            MetricContractError: A reply violated the counter naming or
                partition assignment contract
        """
        apps = self._list_apps()

        app_info: Optional[TableInfo] = None
        if app_name:
            app_info = next((app for app in apps if app.app_name == app_name), None)
            if app_info is None:
                logger.error("app %s not found", app_name)
                raise ClusterQueryError(f"app {app_name} not found")

        nodes = fill_nodes(self.ddl_client, REPLICA_SERVER, self.config.meta_servers)

        if app_info is None:
            app_partitions = {app.app_id: self._list_partitions(app) for app in apps}
            rows = [Row(app.app_name) for app in apps]
            row_index = {app.app_id: idx for idx, app in enumerate(apps)}
            # Only counters Row knows; anything else would raise UnknownMetricError
            counter_filter = app_counter_filter(None, COUNTER_FIELDS)

            def row_for(name: MetricName) -> Row:
                return rows[row_index[name.app_id]]
        else:
            app_partitions = {app_info.app_id: self._list_partitions(app_info)}
            rows = [Row(str(i)) for i in range(app_info.partition_count)]
            counter_filter = app_counter_filter(app_info.app_id, COUNTER_FIELDS)

            def row_for(name: MetricName) -> Row:
                return rows[name.partition_index]

        logger.info(
            "Querying perf counters of %d tables from %d replica servers",
            len(app_partitions), len(nodes),
        )
        results = call_remote_command(
            self.channel,
            nodes,
            Command(PERF_COUNTERS_COMMAND, (counter_filter,)),
            timeout_ms=self.config.command_timeout_ms,
            max_workers=self.config.dispatch_workers,
            join_grace_s=self.config.join_grace_s,
        )

        # Every reply must be usable before any of them is folded in
        infos = [self._decode(node, result) for node, result in zip(nodes, results)]

        for node, info in zip(nodes, infos):
            self._accumulate(
                node, info, app_partitions, row_for, single_app=app_info is not None
            )
        return rows

    # --- listing -------------------------------------------------------------

    def _list_apps(self) -> List[TableInfo]:
        try:
            return list(self.ddl_client.list_apps("available"))
        except Exception as exc:
            logger.error("list apps failed, error = %s", exc)
            raise ClusterQueryError(f"list apps failed: {exc}") from exc

    def _list_partitions(self, app: TableInfo) -> List[PartitionConfig]:
        try:
            app_id, partition_count, partitions = self.ddl_client.list_app(app.app_name)
        except Exception as exc:
            logger.error("list app %s failed, error = %s", app.app_name, exc)
            raise ClusterQueryError(f"list app {app.app_name} failed: {exc}") from exc

        if app_id != app.app_id:
            raise MetricContractError(f"app {app.app_name}: id {app_id} VS {app.app_id}")
        if partition_count != app.partition_count:
            raise MetricContractError(
                f"app {app.app_name}: partition count {partition_count} VS {app.partition_count}"
            )

        ordered = sorted(partitions, key=lambda pc: pc.partition_index)
        if [pc.partition_index for pc in ordered] != list(range(partition_count)):
            raise MetricContractError(
                f"app {app.app_name}: partition list does not cover 0..{partition_count - 1}"
            )
        return ordered

    # --- replies -------------------------------------------------------------

    @staticmethod
    def _decode(node: NodeDesc, result: NodeResult) -> PerfCounterInfo:
        if not result.ok:
            logger.error("query perf counter info from node %s failed: %s", node.address, result.payload)
            raise ClusterQueryError(
                f"query perf counter info from node {node.address} failed: {result.payload}"
            )
        try:
            info = PerfCounterInfo.decode(result.payload)
        except ValueError as exc:
            logger.error(
                "decode perf counter info from node %s failed, result = %s",
                node.address, result.payload,
            )
            raise ClusterQueryError(
                f"decode perf counter info from node {node.address} failed: {exc}"
            ) from exc
        if info.result != "OK":
            logger.error(
                "query perf counter info from node %s returns error, error = %s",
                node.address, info.result,
            )
            raise ClusterQueryError(
                f"query perf counter info from node {node.address} returns error: {info.result}"
            )
        return info

    @staticmethod
    def _accumulate(
        node: NodeDesc,
        info: PerfCounterInfo,
        app_partitions: Dict[int, Sequence[PartitionConfig]],
        row_for: Callable[[MetricName], Row],
        *,
        single_app: bool,
    ) -> None:
        for metric in info.counters:
            name = parse_metric_name(metric.name)

            partitions = app_partitions.get(name.app_id)
            if partitions is None:
                if single_app:
                    raise MetricContractError(
                        f"counter {metric.name!r} from node {node.address} "
                        f"belongs to app {name.app_id}, not the queried app"
                    )
                # Table created after the listing
                continue

            if not 0 <= name.partition_index < len(partitions):
                raise MetricContractError(
                    f"partition index out of range in {metric.name!r} "
                    f"(partition count {len(partitions)})"
                )
            if partitions[name.partition_index].primary != node.address:
                continue
            row_for(name).update(name.counter_name, metric.value)
