"""Tenant-keyed LRU cache of assembled schemas."""

from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional
import logging
import threading
import time

from .metrics import MetricsCollector
from .schema.assembler import SchemaUnit

logger = logging.getLogger(__name__)


class SchemaCache:
    """
    Thread-safe LRU store of SchemaUnits keyed by tenant id (or ``"global"``).

    ``get_or_build`` runs at most one build per key at a time: concurrent
    callers missing the same key wait for the first build and receive the
    same unit. A failing build leaves the key absent.
    """

    def __init__(self, max_size: int = 100, metrics_collector: Optional[MetricsCollector] = None):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")

        self.max_size = max_size
        self.metrics = metrics_collector
        self._entries: "OrderedDict[str, SchemaUnit]" = OrderedDict()
        self._build_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._builds = 0
        self._failures = 0
        self._evictions = 0

    def get_or_build(self, key: str, builder: Callable[[], SchemaUnit]) -> SchemaUnit:
        """Return the unit cached under ``key``, building and storing it on a miss."""
        with self._lock:
            unit = self._get_locked(key)
            if unit is not None:
                return unit
            key_lock = self._build_locks.setdefault(key, threading.Lock())

        with key_lock:
            try:
                with self._lock:
                    # Another caller may have finished the build while we waited
                    unit = self._get_locked(key)
                    if unit is not None:
                        return unit
                    self._misses += 1

                unit = self._build(key, builder)

                with self._lock:
                    self._entries[key] = unit
                    self._entries.move_to_end(key)
                    self._evict_locked()

                return unit
            finally:
                with self._lock:
                    if self._build_locks.get(key) is key_lock:
                        del self._build_locks[key]

    def get(self, key: str) -> Optional[SchemaUnit]:
        """Return the cached unit for ``key`` without building."""
        with self._lock:
            return self._get_locked(key)

    def invalidate(self, key: str) -> bool:
        """Drop ``key`` so the next request rebuilds it."""
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            logger.info(f"Invalidated cached schema {key}")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> List[str]:
        """Cached keys, least recently used first."""
        with self._lock:
            return list(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups if lookups > 0 else 0,
                "builds": self._builds,
                "failures": self._failures,
                "evictions": self._evictions,
            }

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _get_locked(self, key: str) -> Optional[SchemaUnit]:
        unit = self._entries.get(key)
        if unit is None:
            return None

        self._entries.move_to_end(key)
        self._hits += 1
        if self.metrics:
            self.metrics.record_cache_hit(key)
        return unit

    def _build(self, key: str, builder: Callable[[], SchemaUnit]) -> SchemaUnit:
        start_time = time.time()
        try:
            unit = builder()
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            with self._lock:
                self._failures += 1
            if self.metrics:
                self.metrics.record_build(key, duration_ms, error=str(e))
            logger.error(f"Schema build for {key} failed after {duration_ms:.2f}ms: {e}")
            raise

        duration_ms = (time.time() - start_time) * 1000
        with self._lock:
            self._builds += 1
        if self.metrics:
            self.metrics.record_build(key, duration_ms)
        logger.info(f"Built schema {key} in {duration_ms:.2f}ms")
        return unit

    def _evict_locked(self) -> None:
        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            self._evictions += 1
            if self.metrics:
                self.metrics.record_eviction(evicted)
            logger.info(f"Evicted cached schema {evicted}")
