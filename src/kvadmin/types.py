"""Shared record types."""

from __future__ import annotations

from typing import NamedTuple

__all__ = ["Record"]


class Record(NamedTuple):
    """One row returned by a partition scanner."""

    hash_key: bytes
    sort_key: bytes
    value: bytes

    @property
    def row_size(self) -> int:
        return len(self.hash_key) + len(self.sort_key) + len(self.value)
