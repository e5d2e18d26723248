"""FastAPI transport for tenant and global GraphQL endpoints."""

from typing import TYPE_CHECKING, Any, Callable, Dict, Optional
import logging

from fastapi import FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from strawberry.asgi import GraphQL

from .exceptions import TenantNotFoundError, TenantQLError
from .schema import SchemaUnit, GLOBAL_KEY

if TYPE_CHECKING:
    from .core import TenantQL

logger = logging.getLogger(__name__)


TENANT_NOT_FOUND = {"error": "Tenant not found"}


def header_tenant_resolver(header: str = "x-tenant-id") -> Callable[[Request], Optional[str]]:
    """Tenant resolver reading the tenant id from a request header."""
    def resolver(request: Request) -> Optional[str]:
        return request.headers.get(header) or None
    return resolver


class SchemaUnitGraphQL(GraphQL):
    """Strawberry ASGI view serving one cached schema unit."""

    def __init__(self, unit: SchemaUnit, graphql_ide: Optional[str] = "graphiql"):
        super().__init__(unit.schema, graphql_ide=graphql_ide)
        self.unit = unit

    async def get_context(self, request: Any, response: Any) -> Dict[str, Any]:
        return {
            "request": request,
            "response": response,
            "tenant_id": None if self.unit.key == GLOBAL_KEY else self.unit.key,
        }


class SchemaUnitApp:
    """
    ASGI app that looks up the schema unit of each request and hands the
    request to the strawberry view of that unit.

    Views are kept per cache key and replaced when the cache hands out a
    rebuilt unit for the key. Schema lookups run in the thread pool.
    """

    def __init__(self, tenantql: "TenantQL", graphql_ide: Optional[str] = "graphiql"):
        self.tenantql = tenantql
        self.graphql_ide = graphql_ide
        self._views: Dict[str, SchemaUnitGraphQL] = {}

    async def __call__(self, scope: Dict[str, Any], receive: Callable, send: Callable) -> None:
        request = Request(scope, receive=receive)

        try:
            unit = await self.load_unit(request)
        except TenantNotFoundError:
            response = JSONResponse(TENANT_NOT_FOUND, status_code=404)
        except TenantQLError as e:
            logger.error(f"[{e.correlation_id}] Schema unavailable: {e.message}")
            response = JSONResponse(e.to_dict(), status_code=500)
        else:
            await self.view_for(unit)(scope, receive, send)
            return

        await response(scope, receive, send)

    async def load_unit(self, request: Request) -> SchemaUnit:
        raise NotImplementedError

    def view_for(self, unit: SchemaUnit) -> SchemaUnitGraphQL:
        view = self._views.get(unit.key)
        if view is None or view.unit is not unit:
            view = SchemaUnitGraphQL(unit, graphql_ide=self.graphql_ide)
            self._views[unit.key] = view
        return view


class TenantGraphQLApp(SchemaUnitApp):
    """Serves each request against the schema of the tenant it resolves to."""

    async def load_unit(self, request: Request) -> SchemaUnit:
        tenant_id = self.tenantql.resolve_tenant_id(request)
        if not tenant_id:
            raise TenantNotFoundError()
        return await run_in_threadpool(self.tenantql.get_tenant_schema, tenant_id)


class GlobalGraphQLApp(SchemaUnitApp):
    """Serves every request against the global schema."""

    async def load_unit(self, request: Request) -> SchemaUnit:
        return await run_in_threadpool(self.tenantql.get_global_schema)


def create_app(
    tenantql: "TenantQL",
    path: str = "/graphql",
    global_path: Optional[str] = "/global",
    graphql_ide: Optional[str] = "graphiql"
) -> FastAPI:
    """Create the FastAPI application with tenant, global, health and metrics routes."""
    app = FastAPI(title="TenantQL GraphQL API")

    # GraphQL routes, GraphiQL included on GET
    app.add_route(path, TenantGraphQLApp(tenantql, graphql_ide=graphql_ide), methods=["GET", "POST"])
    if global_path:
        app.add_route(global_path, GlobalGraphQLApp(tenantql, graphql_ide=graphql_ide), methods=["GET", "POST"])

    @app.get("/health")
    async def health():
        return {"status": "healthy", "tenants": len(tenantql.registry.tenant_ids())}

    if tenantql.metrics_collector:
        @app.get("/metrics")
        async def prometheus_metrics():
            """Prometheus-compatible metrics endpoint."""
            return Response(
                content=tenantql.get_metrics_report("prometheus"),
                media_type="text/plain; version=0.0.4"
            )

        @app.get("/metrics/json")
        async def json_metrics():
            """JSON metrics endpoint."""
            return Response(
                content=tenantql.get_metrics_report("json"),
                media_type="application/json"
            )

    return app
