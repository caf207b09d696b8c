"""In-memory registry of export results with access-based expiry."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

from tenant_export.domains.export.exceptions import ExportResultNotFoundError

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class RemovalCause(str, Enum):
    """Why an entry left the registry."""
    EXPIRED = "expired"
    EXPLICIT = "explicit"
    SHUTDOWN = "shutdown"


RemovalListener = Callable[[K, V, RemovalCause], None]


@dataclass
class _Entry(Generic[V]):
    value: V
    last_access: float


class ExportResultRegistry(Generic[K, V]):
    """
    Maps job handles to results; an entry expires ``ttl_seconds`` after its
    last read.

    Every removal (expiry, explicit removal, shutdown) is reported exactly
    once to ``removal_listener``, which runs on a separate cleanup executor.
    Entries for which ``is_evictable`` returns False never expire; their idle
    time starts once they become evictable.
    Replacing a key through ``put`` is not a removal: the caller receives the
    previous value and owns its cleanup.
    """

    def __init__(
        self,
        ttl_seconds: float,
        removal_listener: Optional[RemovalListener] = None,
        is_evictable: Optional[Callable[[V], bool]] = None,
        clock: Optional[Callable[[], float]] = None,
        cleanup_executor: Optional[Executor] = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._removal_listener = removal_listener
        self._is_evictable = is_evictable or (lambda value: True)
        self._clock = clock or time.monotonic
        self._owns_executor = cleanup_executor is None
        self._cleanup_executor: Optional[Executor] = cleanup_executor
        self._entries: Dict[K, _Entry[V]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: K) -> bool:
        return self.peek(key) is not None

    def get(self, key: K) -> V:
        """Return the live value and reset its expiry; raise when absent or expired."""
        removed = None
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_expired(entry):
                removed = self._entries.pop(key)
                entry = None
            elif entry is not None:
                entry.last_access = self._clock()
        if removed is not None:
            self._notify(key, removed.value, RemovalCause.EXPIRED)
        if entry is None:
            raise ExportResultNotFoundError(key)
        return entry.value

    def peek(self, key: K) -> Optional[V]:
        """Return the live value without touching its expiry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or self._is_expired(entry):
                return None
            return entry.value

    def put(self, key: K, value: V) -> Optional[V]:
        """Insert or replace; returns the replaced value, if any."""
        with self._lock:
            previous = self._entries.get(key)
            self._entries[key] = _Entry(value=value, last_access=self._clock())
        return previous.value if previous is not None else None

    def touch(self, key: K, value: V) -> bool:
        """Restart the expiry of ``key`` while it still maps to ``value``."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.value is not value:
                return False
            entry.last_access = self._clock()
            return True

    def discard(self, key: K, value: V) -> bool:
        """Drop ``key`` only while it still maps to ``value``, without notifying the listener."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.value is not value:
                return False
            del self._entries[key]
            return True

    def remove(self, key: K) -> bool:
        with self._lock:
            entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._notify(key, entry.value, RemovalCause.EXPLICIT)
        return True

    def purge_expired(self) -> int:
        """Evict every expired entry; returns how many were evicted."""
        with self._lock:
            expired: List[Tuple[K, _Entry[V]]] = [
                (key, entry) for key, entry in self._entries.items() if self._is_expired(entry)
            ]
            for key, _ in expired:
                del self._entries[key]
        for key, entry in expired:
            self._notify(key, entry.value, RemovalCause.EXPIRED)
        if expired:
            logger.info(f"Evicted {len(expired)} expired export results")
        return len(expired)

    def close(self, wait: bool = True) -> None:
        """Remove every entry, reporting each as a shutdown removal, and stop the cleanup executor."""
        with self._lock:
            entries = list(self._entries.items())
            self._entries.clear()
        for key, entry in entries:
            self._notify(key, entry.value, RemovalCause.SHUTDOWN)
        with self._lock:
            executor = self._cleanup_executor if self._owns_executor else None
        if executor is not None:
            executor.shutdown(wait=wait)

    def _is_expired(self, entry: _Entry[V]) -> bool:
        if not self._is_evictable(entry.value):
            # Idle time only counts once the value became evictable.
            entry.last_access = self._clock()
            return False
        return self._clock() - entry.last_access >= self.ttl_seconds

    def _notify(self, key: K, value: V, cause: RemovalCause) -> None:
        logger.info(f"[{key}] Export result removed ({cause.value})")
        if self._removal_listener is None:
            return
        self._get_cleanup_executor().submit(self._run_listener, key, value, cause)

    def _get_cleanup_executor(self) -> Executor:
        with self._lock:
            if self._cleanup_executor is None:
                self._cleanup_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="export-cleanup")
            return self._cleanup_executor

    def _run_listener(self, key: K, value: V, cause: RemovalCause) -> None:
        try:
            self._removal_listener(key, value, cause)
        except Exception as e:
            logger.error(f"[{key}] Removal listener failed ({cause.value}): {e}", exc_info=True)
