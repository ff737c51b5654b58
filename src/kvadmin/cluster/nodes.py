from __future__ import annotations

import logging
from typing import List, Sequence, TYPE_CHECKING

from ..errors import ClusterQueryError
from .types import NodeDesc

if TYPE_CHECKING:
    from ..protocols import DDLClient

__all__ = ["NODE_TYPES", "META_SERVER", "REPLICA_SERVER", "fill_nodes"]

logger = logging.getLogger(__name__)

META_SERVER = "meta-server"
REPLICA_SERVER = "replica-server"
NODE_TYPES = ("all", META_SERVER, REPLICA_SERVER)


def fill_nodes(
    ddl_client: "DDLClient",
    node_type: str,
    meta_servers: Sequence[str] = (),
) -> List[NodeDesc]:
    """
    Resolve a node type to the list of nodes to contact.

    Args:
        ddl_client: Control-plane client used to list live replica servers
        node_type: "all", "meta-server" or "replica-server"
        meta_servers: Configured meta server addresses

    Raises:
        ValueError: Unknown node type
        ClusterQueryError: Replica server listing failed
    """
    if node_type not in NODE_TYPES:
        raise ValueError(f"node type must be one of {NODE_TYPES}, got {node_type!r}")

    nodes: List[NodeDesc] = []
    if node_type in ("all", META_SERVER):
        nodes.extend(NodeDesc(META_SERVER, addr) for addr in meta_servers)

    if node_type in ("all", REPLICA_SERVER):
        try:
            addresses = ddl_client.list_nodes(REPLICA_SERVER)
        except Exception as exc:
            logger.error("list node failed: %s", exc)
            raise ClusterQueryError(f"list node failed: {exc}") from exc
        nodes.extend(NodeDesc(REPLICA_SERVER, addr) for addr in addresses)

    return nodes
