"""Local RocksDB table implementing the partition scanner and KV client capabilities."""
from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Tuple, Union

from rocksdict import Options, Rdict  # type: ignore

from ..errors import ErrorCode, KVError, describe_error_code
from ..types import Record
from .key_schema import generate_key, partition_index, restore_key

logger = logging.getLogger(__name__)

__all__ = ["LocalStore", "LocalKVClient", "LocalScanner"]


def make_store_options(*, create_if_missing: bool = True) -> Options:
    """Raw-mode options: keys and values are stored as plain bytes."""
    opts = Options(raw_mode=True)
    opts.create_if_missing(create_if_missing)
    return opts


class LocalStore:
    """
    A single-table key-value store backed by an embedded RocksDB.

    Every RocksDB call runs on one dedicated thread that owns the handle, so
    futures returned by the scanner and client resolve on that thread in
    submission order. Blocking helpers (``put``, ``get``, ...) wait for their
    own call only.

    Args:
        path: RocksDB directory (created if missing)
        retries: Additional open attempts on lock errors
        delay_seconds: Initial sleep between open attempts
        backoff: Multiplicative backoff for subsequent sleeps
    """

    def __init__(
        self,
        path: Union[str, Path],
        *,
        create_if_missing: bool = True,
        retries: int = 1,
        delay_seconds: float = 0.2,
        backoff: float = 2.0,
    ):
        self.path = Path(path).expanduser()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="local-store")
        self._db: Optional[Rdict] = None
        try:
            self._call(self._open, create_if_missing, retries, delay_seconds, backoff)
        except Exception:
            self._executor.shutdown(wait=True)
            raise

    # --- lifecycle -----------------------------------------------------------

    def _open(self, create_if_missing: bool, retries: int, delay_seconds: float, backoff: float) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        opts = make_store_options(create_if_missing=create_if_missing)

        attempt = 1
        delay = delay_seconds
        while True:
            try:
                self._db = Rdict(str(self.path), opts)
                logger.info("Opened local store at %s (attempt %d)", self.path, attempt)
                return
            except Exception as exc:
                lock_issue = "lock" in str(exc).lower()
                if not lock_issue or attempt > retries:
                    logger.error("Failed to open local store at %s: %s", self.path, exc)
                    raise

                logger.warning(
                    "RocksDB lock issue opening %s (attempt %d/%d): %s",
                    self.path, attempt, retries + 1, exc,
                )
                time.sleep(delay)
                delay *= backoff
                attempt += 1

    def close(self) -> None:
        if self._db is None:
            return
        self._call(self._close)
        self._executor.shutdown(wait=True)

    def _close(self) -> None:
        db, self._db = self._db, None
        db.close()
        logger.info("Closed local store at %s", self.path)

    def __enter__(self) -> "LocalStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- execution -----------------------------------------------------------

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Run ``fn`` on the store thread."""
        return self._executor.submit(fn, *args)

    def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        return self.submit(fn, *args).result()

    @property
    def db(self) -> Rdict:
        """The open handle; only valid on the store thread."""
        if self._db is None:
            raise KVError(ErrorCode.APP_NOT_EXIST, f"local store {self.path} is closed")
        return self._db

    # --- blocking helpers ----------------------------------------------------

    def put(self, hash_key: bytes, sort_key: bytes, value: bytes) -> None:
        self._call(self._put, hash_key, sort_key, value)

    def get(self, hash_key: bytes, sort_key: bytes) -> Optional[bytes]:
        return self._call(self._get, hash_key, sort_key)

    def delete(self, hash_key: bytes, sort_key: bytes) -> None:
        self._call(self._delete, hash_key, sort_key)

    def count(self) -> int:
        return self._call(lambda: sum(1 for _ in self.db.keys()))

    def records(self) -> List[Record]:
        """All records in storage-key order."""
        return self._call(lambda: [Record(*restore_key(k), v) for k, v in self.db.items()])

    def _put(self, hash_key: bytes, sort_key: bytes, value: bytes) -> None:
        self.db[generate_key(hash_key, sort_key)] = value

    def _get(self, hash_key: bytes, sort_key: bytes) -> Optional[bytes]:
        return self.db.get(generate_key(hash_key, sort_key))

    def _delete(self, hash_key: bytes, sort_key: bytes) -> None:
        del self.db[generate_key(hash_key, sort_key)]

    # --- capabilities --------------------------------------------------------

    def client(self) -> "LocalKVClient":
        return LocalKVClient(self)

    def scanners(self, split_count: int) -> List["LocalScanner"]:
        """One scanner per split; rows are assigned to splits by hash key."""
        if split_count < 1:
            raise ValueError(f"split_count must be >= 1, got {split_count}")
        return [LocalScanner(self, split_id, split_count) for split_id in range(split_count)]


def _as_kv_error(fn: Callable[..., Any], *args: Any) -> Any:
    try:
        return fn(*args)
    except KVError:
        raise
    except ValueError as exc:
        raise KVError(ErrorCode.INVALID_ARGUMENT, str(exc)) from exc
    except Exception as exc:
        raise KVError(ErrorCode.SERVER_INTERNAL_ERROR, str(exc)) from exc


class LocalKVClient:
    """Async set/delete against a LocalStore. Timeouts are accepted and ignored."""

    def __init__(self, store: LocalStore):
        self.store = store

    def async_set(self, hash_key: bytes, sort_key: bytes, value: bytes, timeout_ms: int = 5_000) -> Future:
        return self.store.submit(_as_kv_error, self.store._put, hash_key, sort_key, value)

    def async_del(self, hash_key: bytes, sort_key: bytes, timeout_ms: int = 5_000) -> Future:
        return self.store.submit(_as_kv_error, self.store._delete, hash_key, sort_key)

    def error_message(self, code: int) -> str:
        return describe_error_code(code)


class LocalScanner:
    """
    Scanner over one hash-partitioned split of a LocalStore.

    Each split walks the whole key space and keeps the rows whose hash key
    maps to it. The iterator lives on the store thread and sees the snapshot
    taken by its first ``async_next``, so deletes issued while scanning do not
    disturb it.
    """

    def __init__(self, store: LocalStore, split_id: int, split_count: int):
        self.store = store
        self.split_id = split_id
        self.split_count = split_count
        self._items: Optional[Iterator[Tuple[bytes, bytes]]] = None

    def async_next(self) -> Future:
        return self.store.submit(_as_kv_error, self._next)

    def _next(self) -> Optional[Record]:
        if self._items is None:
            self._items = iter(self.store.db.items())
        for key, value in self._items:
            hash_key, sort_key = restore_key(key)
            if partition_index(hash_key, self.split_count) == self.split_id:
                return Record(hash_key, sort_key, value)
        return None
