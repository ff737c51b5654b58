"""Scatter-gather of remote commands across cluster nodes."""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional, Sequence, Tuple, TYPE_CHECKING

from .nodes import fill_nodes
from .types import Command, NodeDesc, NodeResult

if TYPE_CHECKING:
    from ..protocols import CommandChannel, DDLClient

__all__ = ["ERR_TIMEOUT", "call_remote_command", "run_remote_command"]

logger = logging.getLogger(__name__)

ERR_TIMEOUT = "ERR_TIMEOUT"
MAX_DISPATCH_WORKERS = 64


def call_remote_command(
    channel: "CommandChannel",
    nodes: Sequence[NodeDesc],
    command: Command,
    *,
    timeout_ms: int = 5_000,
    max_workers: Optional[int] = None,
    join_grace_s: float = 1.0,
) -> List[NodeResult]:
    """
    Send ``command`` to every node and wait until each one has answered or
    timed out.

    Returns:
        One NodeResult per node, in the order of ``nodes``. Failures never cut
        the join short; a node that has not answered by the deadline is marked
        ``NodeResult(False, "ERR_TIMEOUT")``.
    """
    if not nodes:
        return []

    workers = max_workers or min(MAX_DISPATCH_WORKERS, len(nodes))
    waves = math.ceil(len(nodes) / workers)
    deadline_s = waves * (timeout_ms / 1000.0) + join_grace_s

    logger.debug(
        "Calling %r on %d nodes (timeout %d ms, %d workers)",
        command.name, len(nodes), timeout_ms, workers,
    )

    results: List[NodeResult] = []
    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="remote-command")
    try:
        futures = [
            executor.submit(
                channel.call, node.address, command.name, list(command.arguments), timeout_ms
            )
            for node in nodes
        ]
        _, not_done = wait(futures, timeout=deadline_s)

        for node, fut in zip(nodes, futures):
            if fut in not_done:
                fut.cancel()
                results.append(NodeResult(False, ERR_TIMEOUT))
                continue
            try:
                results.append(NodeResult(True, fut.result()))
            except TimeoutError:
                results.append(NodeResult(False, ERR_TIMEOUT))
            except Exception as exc:
                results.append(NodeResult(False, str(exc) or type(exc).__name__))
    finally:
        # Do not wait on calls that overran the deadline
        executor.shutdown(wait=False, cancel_futures=True)

    failed = sum(1 for r in results if not r.ok)
    if failed:
        logger.warning("%r failed on %d of %d nodes", command.name, failed, len(nodes))
    return results


def run_remote_command(
    ddl_client: "DDLClient",
    channel: "CommandChannel",
    node_type: str,
    command: Command,
    *,
    meta_servers: Sequence[str] = (),
    timeout_ms: int = 5_000,
    max_workers: Optional[int] = None,
    join_grace_s: float = 1.0,
) -> List[Tuple[NodeDesc, NodeResult]]:
    """
    Resolve ``node_type`` and broadcast ``command`` to the selected nodes.

    Raises:
        ClusterQueryError: If the node listing fails; no node is contacted
    """
    nodes = fill_nodes(ddl_client, node_type, meta_servers)
    results = call_remote_command(
        channel,
        nodes,
        command,
        timeout_ms=timeout_ms,
        max_workers=max_workers,
        join_grace_s=join_grace_s,
    )
    return list(zip(nodes, results))
