"""Reporters for exporting metrics in various formats."""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from .collector import MetricsCollector


class MetricsReporter(ABC):
    """Base class for metrics reporters."""

    def __init__(self, collector: MetricsCollector):
        """Initialize reporter with a metrics collector."""
        self.collector = collector

    @abstractmethod
    def report(self) -> str:
        """Generate a metrics report."""
        pass


class ConsoleReporter(MetricsReporter):
    """Reporter that formats metrics for console output."""

    def report(self, include_details: bool = True) -> str:
        """Generate a human-readable metrics report."""
        stats = self.collector.get_stats()
        schemas = stats['schemas']

        lines = [
            "=== TenantQL Metrics Report ===",
            f"Generated at: {datetime.now().isoformat()}",
            "",
            "📊 Summary:",
            f"  Total Queries: {stats['summary']['total_queries']}",
            f"  Total Errors: {stats['summary']['total_errors']} ({stats['summary']['error_rate']:.1%} error rate)",
            "",
            "🧩 Schemas:",
            f"  Builds: {schemas['total_builds']} (mean {schemas['mean_build_ms']:.2f}ms)",
            f"  Cache Hits: {schemas['cache_hits']} ({schemas['cache_hit_rate']:.1%} hit rate)",
            f"  Evictions: {schemas['evictions']}",
            "",
            "⚡ Performance:",
        ]

        if stats['durations_ms']:
            d = stats['durations_ms']
            lines.extend([
                f"  Min: {d['min']:.2f}ms",
                f"  Mean: {d['mean']:.2f}ms",
                f"  Median: {d['median']:.2f}ms",
                f"  P95: {d['p95']:.2f}ms",
                f"  P99: {d['p99']:.2f}ms",
                f"  Max: {d['max']:.2f}ms",
            ])
        else:
            lines.append("  No completed queries")

        lines.extend([
            "",
            "📈 Operations:",
        ])

        for op, count in stats['operations'].items():
            lines.append(f"  {op}: {count}")

        if include_details:
            if stats['tenants']:
                lines.extend([
                    "",
                    "🏢 Tenant Activity:",
                ])
                for tenant, count in sorted(stats['tenants'].items(),
                                            key=lambda x: x[1], reverse=True)[:10]:
                    builds = schemas['builds'].get(tenant, 0)
                    lines.append(f"  {tenant}: {count} queries, {builds} schema builds")

            lines.extend([
                "",
                "🔍 Table Activity:",
            ])

            for table, count in sorted(stats['tables']['queries'].items(),
                                      key=lambda x: x[1], reverse=True)[:10]:
                errors = stats['tables']['errors'].get(table, 0)
                lines.append(f"  {table}: {count} queries, {errors} errors")

            if stats['slow_queries']:
                lines.extend([
                    "",
                    "🐌 Slowest Queries:",
                ])

                for q in stats['slow_queries'][:5]:
                    lines.append(
                        f"  {q['operation']} on {q['tenant']}.{q['table']}: "
                        f"{q['duration_ms']:.2f}ms ({q['row_count']} rows)"
                    )

            if stats['recent_errors']:
                lines.extend([
                    "",
                    "❌ Recent Errors:",
                ])

                for e in stats['recent_errors'][:5]:
                    lines.append(
                        f"  {e['table']}: {e['error'][:50]}..."
                        if len(e['error']) > 50 else f"  {e['table']}: {e['error']}"
                    )

        return "\n".join(lines)


class JSONReporter(MetricsReporter):
    """Reporter that exports metrics as JSON."""

    def report(self, pretty: bool = True) -> str:
        """Generate a JSON metrics report."""
        stats = self.collector.get_stats()

        report = {
            'timestamp': datetime.now().isoformat(),
            'version': '1.0',
            'metrics': stats
        }

        if pretty:
            return json.dumps(report, indent=2)
        else:
            return json.dumps(report)


def _label_value(value: Any) -> str:
    """Escape a label value as the Prometheus text exposition format requires."""
    return str(value).replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


class PrometheusReporter(MetricsReporter):
    """Reporter that exports metrics in Prometheus format."""

    def report(self) -> str:
        """Generate metrics in Prometheus exposition format."""
        stats = self.collector.get_stats()
        schemas = stats['schemas']
        lines = []

        lines.extend([
            "# HELP tenantql_queries_total Total number of root field resolutions",
            "# TYPE tenantql_queries_total counter",
            f"tenantql_queries_total {stats['summary']['total_queries']}",
            "",
            "# HELP tenantql_errors_total Total number of resolver errors",
            "# TYPE tenantql_errors_total counter",
            f"tenantql_errors_total {stats['summary']['total_errors']}",
            "",
            "# HELP tenantql_schema_cache_hits_total Total number of schema cache hits",
            "# TYPE tenantql_schema_cache_hits_total counter",
            f"tenantql_schema_cache_hits_total {schemas['cache_hits']}",
            "",
            "# HELP tenantql_schema_evictions_total Total number of evicted schemas",
            "# TYPE tenantql_schema_evictions_total counter",
            f"tenantql_schema_evictions_total {schemas['evictions']}",
            "",
        ])

        if schemas['builds']:
            lines.extend([
                "# HELP tenantql_schema_builds_total Schema builds by cache key",
                "# TYPE tenantql_schema_builds_total counter",
            ])
            for key, count in schemas['builds'].items():
                lines.append(f'tenantql_schema_builds_total{{key="{_label_value(key)}"}} {count}')
            lines.append("")

        lines.extend([
            "# HELP tenantql_queries_by_operation Queries by operation type",
            "# TYPE tenantql_queries_by_operation counter",
        ])
        for op, count in stats['operations'].items():
            lines.append(f'tenantql_queries_by_operation{{operation="{_label_value(op)}"}} {count}')
        lines.append("")

        if stats['tenants']:
            lines.extend([
                "# HELP tenantql_queries_by_tenant Queries by tenant",
                "# TYPE tenantql_queries_by_tenant counter",
            ])
            for tenant, count in stats['tenants'].items():
                lines.append(f'tenantql_queries_by_tenant{{tenant="{_label_value(tenant)}"}} {count}')
            lines.append("")

        if stats['durations_ms']:
            d = stats['durations_ms']
            lines.extend([
                "# HELP tenantql_query_duration_milliseconds Query duration statistics",
                "# TYPE tenantql_query_duration_milliseconds summary",
                f'tenantql_query_duration_milliseconds{{quantile="0"}} {d["min"]}',
                f'tenantql_query_duration_milliseconds{{quantile="0.5"}} {d["median"]}',
                f'tenantql_query_duration_milliseconds{{quantile="0.95"}} {d["p95"]}',
                f'tenantql_query_duration_milliseconds{{quantile="0.99"}} {d["p99"]}',
                f'tenantql_query_duration_milliseconds{{quantile="1"}} {d["max"]}',
                f'tenantql_query_duration_milliseconds_sum {d["mean"] * stats["summary"]["total_queries"]}',
                f'tenantql_query_duration_milliseconds_count {stats["summary"]["total_queries"]}',
                "",
            ])

        if stats['row_counts']:
            r = stats['row_counts']
            lines.extend([
                "# HELP tenantql_rows_returned Total rows returned by queries",
                "# TYPE tenantql_rows_returned summary",
                f"tenantql_rows_returned_sum {r['total']}",
                f"tenantql_rows_returned_count {stats['summary']['total_queries']}",
                "",
            ])

        return "\n".join(lines)
