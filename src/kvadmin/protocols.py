"""Capabilities consumed from the client library and the cluster control plane."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Optional, Protocol, Sequence

from .cluster.types import PartitionConfig, TableInfo
from .types import Record


class PartitionScanner(Protocol):
    """Scanner over one partition split.

    The returned future resolves to the next record, to ``None`` once the
    split is exhausted, or raises :class:`kvadmin.errors.KVError`.
    """

    def async_next(self) -> "Future[Optional[Record]]": ...


class KVClient(Protocol):
    def async_set(
        self, hash_key: bytes, sort_key: bytes, value: bytes, timeout_ms: int
    ) -> "Future[None]": ...

    def async_del(self, hash_key: bytes, sort_key: bytes, timeout_ms: int) -> "Future[None]": ...

    def error_message(self, code: int) -> str: ...


class GeoClient(Protocol):
    """Writes the record and its derived spatial index entry."""

    def async_set(
        self, hash_key: bytes, sort_key: bytes, value: bytes, timeout_ms: int
    ) -> "Future[None]": ...


class DDLClient(Protocol):
    def list_nodes(self, node_type: str) -> Sequence[str]: ...

    def list_apps(self, status: str = "available") -> Sequence[TableInfo]: ...

    def list_app(self, app_name: str) -> tuple[int, int, Sequence[PartitionConfig]]: ...


class CommandChannel(Protocol):
    """Blocking remote-command call; returns the raw reply or raises."""

    def call(self, address: str, command: str, arguments: Sequence[str], timeout_ms: int) -> str: ...
