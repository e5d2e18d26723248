"""Core TenantQL implementation."""

from typing import Dict, Any, Optional, Callable
import logging

from strawberry.types import ExecutionResult

from .cache import SchemaCache
from .exceptions import SchemaBuildError, TenantNotFoundError
from .metrics import MetricsCollector
from .schema import QueryExecutor, TenantRegistry, TenantSchemaAssembler, SchemaUnit, GLOBAL_KEY
from .schema.assembler import lookup_tables

logger = logging.getLogger(__name__)


TenantResolver = Callable[[Any], Optional[str]]


class TenantQL:
    """Serves lazily synthesized, cached GraphQL schemas for many tenants."""

    def __init__(self,
                 registry: TenantRegistry,
                 executor: Optional[QueryExecutor] = None,
                 executor_factory: Optional[Callable[[str], QueryExecutor]] = None,
                 tenant_resolver: Optional[TenantResolver] = None,
                 cache_size: int = 100,
                 cache: Optional[SchemaCache] = None,
                 enable_metrics: bool = True,
                 metrics_history_size: int = 10000,
                 log_queries: bool = False):
        """
        Initialize TenantQL over a tenant registry.

        Args:
            registry: Source of the table descriptors of every tenant
            executor: Query executor shared by all tenants
            executor_factory: Returns the query executor of a tenant; takes
                precedence over ``executor``
            tenant_resolver: Extracts the tenant id from an incoming request
            cache_size: Maximum number of schemas kept in the cache
            cache: Pre-built schema cache to use instead of creating one
            enable_metrics: Whether to enable metrics collection
            metrics_history_size: Maximum number of entries kept in metrics history
            log_queries: Whether metrics keep the filter and options of each query
        """
        if executor is None and executor_factory is None:
            raise ValueError("Either executor or executor_factory is required")

        self.registry = registry
        self.executor = executor
        self.executor_factory = executor_factory
        self.tenant_resolver = tenant_resolver

        # Set up metrics collection
        self.metrics_collector = None
        if enable_metrics:
            self.metrics_collector = MetricsCollector(
                max_history=metrics_history_size,
                enable_detailed_logging=log_queries
            )

        self.cache = cache if cache is not None else SchemaCache(
            max_size=cache_size,
            metrics_collector=self.metrics_collector
        )
        self.assembler = TenantSchemaAssembler(
            self._executor_for,
            metrics_collector=self.metrics_collector
        )

    def _executor_for(self, tenant_id: str) -> QueryExecutor:
        if self.executor_factory is not None:
            return self.executor_factory(tenant_id)
        return self.executor

    def resolve_tenant_id(self, request: Any = None) -> Optional[str]:
        """
        Tenant id of a request.

        Uses the configured tenant resolver and falls back to the first
        registered tenant. Returns None when neither yields an id.
        """
        tenant_id = None
        if self.tenant_resolver is not None and request is not None:
            tenant_id = self.tenant_resolver(request)

        if tenant_id:
            return tenant_id

        tenant_ids = list(self.registry.tenant_ids())
        return tenant_ids[0] if tenant_ids else None

    def get_tenant_schema(self, tenant_id: Optional[str]) -> SchemaUnit:
        """Get the schema of one tenant, building it on first use."""
        if not tenant_id:
            raise TenantNotFoundError()
        if tenant_id == GLOBAL_KEY:
            raise SchemaBuildError(
                f"Tenant id '{GLOBAL_KEY}' is reserved for the global schema",
                tenant_id=tenant_id
            )

        return self.cache.get_or_build(
            tenant_id,
            lambda: self.assembler.assemble(lookup_tables(self.registry, tenant_id), tenant_id)
        )

    def get_global_schema(self) -> SchemaUnit:
        """Get the schema spanning every registered tenant."""
        return self.cache.get_or_build(
            GLOBAL_KEY,
            lambda: self.assembler.assemble_global(self.registry)
        )

    async def execute(self,
                      query: str,
                      variables: Optional[Dict[str, Any]] = None,
                      tenant_id: Optional[str] = None,
                      operation_name: Optional[str] = None,
                      context: Optional[Any] = None) -> ExecutionResult:
        """Execute a GraphQL document against a tenant schema (default: first tenant)."""
        unit = self.get_tenant_schema(tenant_id or self.resolve_tenant_id())
        return await unit.schema.execute(
            query,
            variable_values=variables,
            operation_name=operation_name,
            context_value=context
        )

    async def execute_global(self,
                             query: str,
                             variables: Optional[Dict[str, Any]] = None,
                             operation_name: Optional[str] = None,
                             context: Optional[Any] = None) -> ExecutionResult:
        """Execute a GraphQL document against the global schema."""
        unit = self.get_global_schema()
        return await unit.schema.execute(
            query,
            variable_values=variables,
            operation_name=operation_name,
            context_value=context
        )

    def invalidate(self, tenant_id: Optional[str] = None) -> None:
        """
        Drop cached schemas so they are rebuilt from the registry.

        With a tenant id, drops that tenant's schema and the global one;
        without, clears the whole cache.
        """
        if tenant_id is None:
            self.cache.clear()
            logger.info("Cleared schema cache")
            return

        self.cache.invalidate(tenant_id)
        self.cache.invalidate(GLOBAL_KEY)

    def create_app(
        self,
        path: str = "/graphql",
        global_path: Optional[str] = "/global",
        graphql_ide: Optional[str] = "graphiql"
    ):
        """Create the FastAPI application serving this instance."""
        from .server import create_app
        return create_app(self, path=path, global_path=global_path, graphql_ide=graphql_ide)

    def serve(
        self,
        host: str = "0.0.0.0",
        port: int = 8000,
        path: str = "/graphql",
        global_path: Optional[str] = "/global",
        debug: bool = True
    ) -> None:
        """Start the GraphQL server."""
        import uvicorn

        app = self.create_app(path=path, global_path=global_path)

        logger.info(f"🏢 TenantQL server starting at http://{host}:{port}{path}")
        logger.info(f"📊 GraphQL playground available at http://{host}:{port}{path}")
        if global_path:
            logger.info(f"🌐 Global schema available at http://{host}:{port}{global_path}")

        uvicorn.run(app, host=host, port=port, log_level="info" if debug else "warning")

    def get_stats(self) -> Dict[str, Any]:
        """Get schema cache and query statistics."""
        stats = {"cache": self.cache.get_stats()}

        if self.metrics_collector:
            stats['metrics'] = self.metrics_collector.get_stats()

        return stats

    def reset_stats(self) -> None:
        """Reset query statistics."""
        if self.metrics_collector:
            self.metrics_collector.reset_stats()

    def get_metrics_report(self, format: str = 'console') -> str:
        """Get a formatted metrics report.

        Args:
            format: Report format ('console', 'json', 'prometheus')

        Returns:
            Formatted metrics report string
        """
        if not self.metrics_collector:
            return "Metrics collection is disabled"

        from .metrics import ConsoleReporter, JSONReporter, PrometheusReporter

        reporters = {
            'console': ConsoleReporter,
            'json': JSONReporter,
            'prometheus': PrometheusReporter
        }

        reporter_class = reporters.get(format, ConsoleReporter)
        reporter = reporter_class(self.metrics_collector)
        return reporter.report()
