"""Single background worker running export jobs strictly one at a time."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from typing import Any, Callable, Optional, Set

from tenant_export.domains.export.exceptions import ExportQueueFullError, ExportWorkerShutdownError

logger = logging.getLogger(__name__)


class ExportWorker:
    """
    Serial job executor with a bounded backlog.

    All jobs share one thread regardless of tenant, so a slow job delays
    every job queued behind it. ``queue_depth`` counts queued plus running
    jobs; submissions beyond ``max_queued_jobs`` are rejected.
    """

    def __init__(self, max_queued_jobs: int = 16, thread_name: str = "tenant-export"):
        if max_queued_jobs <= 0:
            raise ValueError("max_queued_jobs must be positive")
        self.max_queued_jobs = max_queued_jobs
        self.thread_name = thread_name
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()
        self._shutdown = False

    @property
    def queue_depth(self) -> int:
        with self._lock:
            return len(self._pending)

    def is_full(self) -> bool:
        return self.queue_depth >= self.max_queued_jobs

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        with self._lock:
            if self._shutdown:
                raise ExportWorkerShutdownError("Export worker is shut down")
            if len(self._pending) >= self.max_queued_jobs:
                raise ExportQueueFullError(self.max_queued_jobs)
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=self.thread_name)
            future = self._executor.submit(fn, *args)
            self._pending.add(future)
        future.add_done_callback(self._on_done)
        return future

    def _on_done(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error("Export job raised outside its error boundary", exc_info=future.exception())

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait until every job submitted so far has finished. Returns False on timeout."""
        with self._lock:
            pending = set(self._pending)
        _, not_done = wait_futures(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = False) -> None:
        """Stop accepting jobs and drop the ones not started yet. The running job is never interrupted."""
        with self._lock:
            self._shutdown = True
            executor = self._executor
        if executor is not None:
            executor.shutdown(wait=wait, cancel_futures=True)
        logger.info(f"Export worker shut down (wait={wait})")
