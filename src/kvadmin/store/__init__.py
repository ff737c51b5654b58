"""Embedded RocksDB store exposing the scanner and client capabilities."""

from .key_schema import generate_key, partition_index, restore_key
from .local import LocalKVClient, LocalScanner, LocalStore

__all__ = [
    "generate_key",
    "restore_key",
    "partition_index",
    "LocalStore",
    "LocalKVClient",
    "LocalScanner",
]
