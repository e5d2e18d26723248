"""Metrics collection for TenantQL resolvers and schema builds."""

import time
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from datetime import datetime
import statistics


@dataclass
class QueryMetrics:
    """Metrics for a single root-field resolution."""

    query_id: str
    operation_type: str  # single, list
    tenant_id: Optional[str]
    table_name: Optional[str]
    start_time: float
    end_time: Optional[float] = None
    duration_ms: Optional[float] = None
    row_count: Optional[int] = None
    error: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def complete(self, row_count: Optional[int] = None, error: Optional[str] = None):
        """Mark query as complete and calculate duration."""
        self.end_time = time.time()
        self.duration_ms = (self.end_time - self.start_time) * 1000
        self.row_count = row_count
        self.error = error


@dataclass
class BuildMetrics:
    """Metrics for one schema build."""

    key: str
    duration_ms: float
    timestamp: float
    error: Optional[str] = None


class MetricsCollector:
    """Collects and aggregates metrics for resolvers and the schema cache."""

    def __init__(self,
                 max_history: int = 10000,
                 enable_detailed_logging: bool = False):
        """
        Initialize metrics collector.

        Args:
            max_history: Maximum number of queries and builds to keep in history
            enable_detailed_logging: Whether to keep filter/options context per query
        """
        self.max_history = max_history
        self.enable_detailed_logging = enable_detailed_logging
        self._queries: List[QueryMetrics] = []
        self._builds: List[BuildMetrics] = []
        self._lock = threading.Lock()

        # Aggregate counters
        self._total_queries = 0
        self._total_errors = 0

        # Per-tenant and per-table counters
        self._tenant_queries: Dict[str, int] = {}
        self._table_queries: Dict[str, int] = {}
        self._table_errors: Dict[str, int] = {}

        # Per-operation counters
        self._operation_counts: Dict[str, int] = {
            'single': 0,
            'list': 0
        }

        # Schema cache counters, keyed by cache key
        self._build_counts: Dict[str, int] = {}
        self._build_failures: Dict[str, int] = {}
        self._cache_hits: Dict[str, int] = {}
        self._evictions = 0

    def start_query(self,
                    query_id: str,
                    operation_type: str,
                    tenant_id: Optional[str] = None,
                    table_name: Optional[str] = None,
                    context: Optional[Dict[str, Any]] = None) -> QueryMetrics:
        """Start tracking a new query."""
        metrics = QueryMetrics(
            query_id=query_id,
            operation_type=operation_type,
            tenant_id=tenant_id,
            table_name=table_name,
            start_time=time.time(),
            context=(context or {}) if self.enable_detailed_logging else {}
        )

        with self._lock:
            self._queries.append(metrics)
            self._total_queries += 1

            # Update operation count
            self._operation_counts[operation_type] = self._operation_counts.get(operation_type, 0) + 1

            if tenant_id is not None:
                self._tenant_queries[tenant_id] = self._tenant_queries.get(tenant_id, 0) + 1

            table_key = self._table_key(tenant_id, table_name)
            if table_key:
                self._table_queries[table_key] = self._table_queries.get(table_key, 0) + 1

            # Trim history if needed
            if len(self._queries) > self.max_history:
                self._queries = self._queries[-self.max_history:]

        return metrics

    def complete_query(self,
                       metrics: QueryMetrics,
                       row_count: Optional[int] = None,
                       error: Optional[str] = None):
        """Complete tracking for a query."""
        metrics.complete(row_count=row_count, error=error)

        with self._lock:
            if error:
                self._total_errors += 1
                table_key = self._table_key(metrics.tenant_id, metrics.table_name)
                if table_key:
                    self._table_errors[table_key] = self._table_errors.get(table_key, 0) + 1

    def record_build(self, key: str, duration_ms: float, error: Optional[str] = None):
        """Record a schema build for a cache key."""
        with self._lock:
            self._builds.append(BuildMetrics(
                key=key,
                duration_ms=duration_ms,
                timestamp=time.time(),
                error=error
            ))
            if error:
                self._build_failures[key] = self._build_failures.get(key, 0) + 1
            else:
                self._build_counts[key] = self._build_counts.get(key, 0) + 1

            if len(self._builds) > self.max_history:
                self._builds = self._builds[-self.max_history:]

    def record_cache_hit(self, key: str):
        """Record a schema cache hit."""
        with self._lock:
            self._cache_hits[key] = self._cache_hits.get(key, 0) + 1

    def record_eviction(self, key: str):
        """Record a schema cache eviction."""
        with self._lock:
            self._evictions += 1

    def build_count(self, key: str) -> int:
        """Number of successful builds recorded for ``key``."""
        with self._lock:
            return self._build_counts.get(key, 0)

    def get_stats(self) -> Dict[str, Any]:
        """Get aggregated statistics."""
        with self._lock:
            completed_queries = [q for q in self._queries if q.duration_ms is not None]
            error_queries = [q for q in completed_queries if q.error is not None]
            successful_queries = [q for q in completed_queries if q.error is None]

            # Calculate duration statistics
            durations = [q.duration_ms for q in successful_queries]
            duration_stats = {}
            if durations:
                duration_stats = {
                    'min': min(durations),
                    'max': max(durations),
                    'mean': statistics.mean(durations),
                    'median': statistics.median(durations),
                    'p95': statistics.quantiles(durations, n=20)[18] if len(durations) > 1 else durations[0],
                    'p99': statistics.quantiles(durations, n=100)[98] if len(durations) > 1 else durations[0]
                }

            # Calculate row count statistics
            row_counts = [q.row_count for q in successful_queries if q.row_count is not None]
            row_stats = {}
            if row_counts:
                row_stats = {
                    'min': min(row_counts),
                    'max': max(row_counts),
                    'mean': statistics.mean(row_counts),
                    'total': sum(row_counts)
                }

            build_durations = [b.duration_ms for b in self._builds if b.error is None]
            total_builds = sum(self._build_counts.values())
            total_hits = sum(self._cache_hits.values())
            lookups = total_builds + total_hits

            return {
                'summary': {
                    'total_queries': self._total_queries,
                    'total_errors': self._total_errors,
                    'error_rate': self._total_errors / self._total_queries if self._total_queries > 0 else 0,
                },
                'operations': dict(self._operation_counts),
                'tenants': dict(self._tenant_queries),
                'tables': {
                    'queries': dict(self._table_queries),
                    'errors': dict(self._table_errors)
                },
                'durations_ms': duration_stats,
                'row_counts': row_stats,
                'schemas': {
                    'builds': dict(self._build_counts),
                    'build_failures': dict(self._build_failures),
                    'total_builds': total_builds,
                    'cache_hits': total_hits,
                    'cache_hit_rate': total_hits / lookups if lookups > 0 else 0,
                    'evictions': self._evictions,
                    'mean_build_ms': statistics.mean(build_durations) if build_durations else 0,
                },
                'recent_errors': [
                    {
                        'query_id': q.query_id,
                        'tenant': q.tenant_id,
                        'table': q.table_name,
                        'error': q.error,
                        'duration_ms': q.duration_ms,
                        'timestamp': datetime.fromtimestamp(q.start_time).isoformat()
                    }
                    for q in error_queries[-10:]  # Last 10 errors
                ],
                'slow_queries': [
                    {
                        'query_id': q.query_id,
                        'tenant': q.tenant_id,
                        'table': q.table_name,
                        'operation': q.operation_type,
                        'duration_ms': q.duration_ms,
                        'row_count': q.row_count,
                        'timestamp': datetime.fromtimestamp(q.start_time).isoformat()
                    }
                    for q in sorted(successful_queries, key=lambda x: x.duration_ms, reverse=True)[:10]
                ]
            }

    def get_query_history(self,
                          limit: int = 100,
                          tenant_id: Optional[str] = None,
                          table_name: Optional[str] = None,
                          operation_type: Optional[str] = None,
                          include_errors: bool = True) -> List[Dict[str, Any]]:
        """Get recent query history with optional filters."""
        with self._lock:
            queries = self._queries[-limit:]

            # Apply filters
            if tenant_id is not None:
                queries = [q for q in queries if q.tenant_id == tenant_id]

            if table_name:
                queries = [q for q in queries if q.table_name == table_name]

            if operation_type:
                queries = [q for q in queries if q.operation_type == operation_type]

            if not include_errors:
                queries = [q for q in queries if q.error is None]

            return [
                {
                    'query_id': q.query_id,
                    'operation': q.operation_type,
                    'tenant': q.tenant_id,
                    'table': q.table_name,
                    'duration_ms': q.duration_ms,
                    'row_count': q.row_count,
                    'error': q.error,
                    'timestamp': datetime.fromtimestamp(q.start_time).isoformat(),
                    'context': q.context
                }
                for q in queries
            ]

    def reset_stats(self):
        """Reset all statistics."""
        with self._lock:
            self._queries.clear()
            self._builds.clear()
            self._total_queries = 0
            self._total_errors = 0
            self._tenant_queries.clear()
            self._table_queries.clear()
            self._table_errors.clear()
            self._operation_counts = {
                'single': 0,
                'list': 0
            }
            self._build_counts.clear()
            self._build_failures.clear()
            self._cache_hits.clear()
            self._evictions = 0

    @staticmethod
    def _table_key(tenant_id: Optional[str], table_name: Optional[str]) -> Optional[str]:
        if not table_name:
            return None
        return f"{tenant_id}.{table_name}" if tenant_id is not None else table_name
