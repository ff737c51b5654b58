"""Self-refilling bounded-concurrency scan/apply loop for one split."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from functools import partial
from typing import Callable, Optional, Tuple

from ..config import ScanOperation
from ..errors import KVError
from ..types import Record
from .task import ScanTask

__all__ = ["ScanPipeline"]

logger = logging.getLogger(__name__)


class ScanPipeline:
    """
    Drives ScanTasks through their splits.

    ``drive(task)`` keeps issuing ``scanner.async_next()`` while the split is
    running, no sibling split has failed and the task has budget left. Every
    completion re-enters ``drive`` to refill the slot it is about to free, and
    releases that slot as its very last action, so ``in_flight`` never drops to
    zero while the split still has work being issued.

    Because the completing request still holds its slot while it refills, the
    refill may count that slot as free (``handover``). Without it a budget of
    one, or every slot held by a running completion, would leave nothing to
    refill once those slots are released.

    Completions that finish synchronously (already-resolved futures) would
    otherwise recurse once per record. A ``drive`` call made on a thread that is
    already driving the same task returns immediately instead: the outer loop
    sees the freed slot on its next budget check.
    """

    def __init__(self) -> None:
        self._local = threading.local()

    def drive(self, task: ScanTask, *, handover: bool = False) -> None:
        active = self._active_tasks()
        key = id(task)
        if key in active:
            return
        active.add(key)
        try:
            self._fill(task, 1 if handover else 0)
        finally:
            active.discard(key)

    def _active_tasks(self) -> set:
        active = getattr(self._local, "active", None)
        if active is None:
            active = self._local.active = set()
        return active

    def _fill(self, task: ScanTask, handover: int = 0) -> None:
        # The caller holds its handed-over slot for the whole loop
        while task.try_acquire_slot(handover):
            try:
                future = task.scanner.async_next()
            except Exception as exc:
                self._report_failure(task, "scan next failed", exc)
                task.release_slot()
                return
            future.add_done_callback(partial(self._on_next, task))

    # --- completions ---------------------------------------------------------

    def _on_next(self, task: ScanTask, future: "Future[Optional[Record]]") -> None:
        try:
            try:
                record = future.result()
            except Exception as exc:
                self._report_failure(task, "scan next failed", exc)
                return

            if record is None:
                task.mark_completed()
                return

            self._apply(task, record)
        except Exception as exc:
            logger.exception("split[%d] record handler raised", task.split_id)
            self._report_failure(task, "record handler failed", exc)
        finally:
            # Must stay last: the slot covers everything issued above
            task.release_slot()

    def _apply(self, task: ScanTask, record: Record) -> None:
        hash_key, sort_key, value = record

        if task.operation is ScanOperation.COUNT:
            task.record_row(hash_key, sort_key, value)
            self.drive(task, handover=True)
            return

        what, issue = self._write_call(task, record)
        task.hold_slot()
        try:
            future = issue()
        except Exception as exc:
            self._report_failure(task, f"{what} failed", exc)
            task.release_slot()
            return
        future.add_done_callback(partial(self._on_write, task, what))

    @staticmethod
    def _write_call(task: ScanTask, record: Record) -> Tuple[str, Callable[[], Future]]:
        hash_key, sort_key, value = record
        op = task.operation
        if op is ScanOperation.COPY:
            return "async set", lambda: task.client.async_set(
                hash_key, sort_key, value, task.timeout_ms
            )
        if op is ScanOperation.CLEAR:
            return "async del", lambda: task.client.async_del(hash_key, sort_key, task.timeout_ms)
        if op is ScanOperation.GEN_GEO:
            return "async set", lambda: task.geo_client.async_set(
                hash_key, sort_key, value, task.timeout_ms
            )
        raise AssertionError(f"op = {op!r}")

    def _on_write(self, task: ScanTask, what: str, future: "Future[None]") -> None:
        try:
            try:
                future.result()
            except Exception as exc:
                self._report_failure(task, f"{what} failed", exc)
                return
            task.add_row()
            self.drive(task, handover=True)
        except Exception as exc:
            logger.exception("split[%d] write handler raised", task.split_id)
            self._report_failure(task, "write handler failed", exc)
        finally:
            task.release_slot()

    # --- errors --------------------------------------------------------------

    def _report_failure(self, task: ScanTask, what: str, exc: BaseException) -> None:
        message = f"split[{task.split_id}] {what}: {self._describe(task, exc)}"
        if task.claim_failure(message):
            logger.error("ERROR: %s", message)

    @staticmethod
    def _describe(task: ScanTask, exc: BaseException) -> str:
        if isinstance(exc, KVError) and task.client is not None:
            label = task.client.error_message(exc.code)
            return label if exc.message == label else f"{label}: {exc.message}"
        return str(exc) or type(exc).__name__
