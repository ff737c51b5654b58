"""Storage key layout for (hash_key, sort_key) pairs.

A storage key is the 2-byte big-endian length of the hash key, the hash key,
then the sort key. Keys of one hash key are therefore contiguous and ordered
by sort key.
"""
from __future__ import annotations

import struct
import zlib
from typing import Tuple

__all__ = ["MAX_HASH_KEY_LENGTH", "generate_key", "restore_key", "partition_index"]

MAX_HASH_KEY_LENGTH = 0xFFFF - 1
_LEN = struct.Struct(">H")


def generate_key(hash_key: bytes, sort_key: bytes) -> bytes:
    """
    Encode a (hash_key, sort_key) pair as one storage key.

    Raises:
        ValueError: If the hash key is too long to encode
    """
    if len(hash_key) > MAX_HASH_KEY_LENGTH:
        raise ValueError(f"hash key too long: {len(hash_key)} > {MAX_HASH_KEY_LENGTH}")
    return _LEN.pack(len(hash_key)) + hash_key + sort_key


def restore_key(key: bytes) -> Tuple[bytes, bytes]:
    """
    Decode a storage key back into (hash_key, sort_key).

    Raises:
        ValueError: If the key is shorter than its encoded hash key length
    """
    if len(key) < _LEN.size:
        raise ValueError(f"storage key too short: {key!r}")
    (hash_key_len,) = _LEN.unpack_from(key)
    end = _LEN.size + hash_key_len
    if len(key) < end:
        raise ValueError(f"storage key truncated: need {end} bytes, got {len(key)}")
    return key[_LEN.size:end], key[end:]


def partition_index(hash_key: bytes, partition_count: int) -> int:
    """Partition owning ``hash_key`` (CRC32 of the hash key modulo partition count)."""
    if partition_count < 1:
        raise ValueError(f"partition_count must be >= 1, got {partition_count}")
    return zlib.crc32(hash_key) % partition_count
