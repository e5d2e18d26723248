"""CLI interface for TenantQL."""

import logging
from typing import Optional, Tuple

import click

from .backends import DuckDBTenantRegistry
from .core import TenantQL
from .exceptions import TenantQLError


def _open_registry(databases: Tuple[str, ...], **executor_options) -> DuckDBTenantRegistry:
    try:
        return DuckDBTenantRegistry.from_paths(databases, **executor_options)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="DATABASES")


def _report_error(e: TenantQLError, verbose: bool) -> None:
    click.echo(f"\n❌ {e.error_code}: {e.message}", err=True)
    if e.context:
        click.echo(f"📍 Context: {e.context}", err=True)
    if e.suggestions:
        click.echo("\n💡 Suggestions:", err=True)
        for suggestion in e.suggestions:
            click.echo(f"   • {suggestion}", err=True)
    if verbose:
        click.echo(f"\n🔍 Correlation ID: {e.correlation_id}", err=True)


@click.group()
def cli():
    """TenantQL - per-tenant GraphQL schemas over DuckDB databases."""
    pass


@cli.command()
@click.argument('databases', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--host', default='0.0.0.0', help='Host to bind to')
@click.option('--port', default=8000, type=int, help='Port to bind to')
@click.option('--path', default='/graphql', help='Per-tenant GraphQL endpoint path')
@click.option('--global-path', default='/global', help='Global GraphQL endpoint path')
@click.option('--tenant-header', default='x-tenant-id', help='Request header carrying the tenant id')
@click.option('--cache-size', default=100, type=int, help='Maximum number of cached schemas')
@click.option('--debug/--no-debug', default=True, help='Enable debug mode')
@click.option('--log-queries/--no-log-queries', default=False, help='Log all SQL queries')
@click.option('--enable-metrics/--disable-metrics', default=True, help='Enable metrics collection')
@click.option('--verbose', '-v', is_flag=True, help='Verbose error output')
def serve(databases: Tuple[str, ...], host: str, port: int, path: str, global_path: str,
          tenant_header: str, cache_size: int, debug: bool, log_queries: bool,
          enable_metrics: bool, verbose: bool):
    """Serve one tenant per DuckDB database file, named after the file."""
    if debug or log_queries:
        logging.basicConfig(
            level=logging.DEBUG if log_queries else logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    from .server import header_tenant_resolver

    registry = _open_registry(databases, log_queries=log_queries)
    click.echo(f"🏢 Tenants: {', '.join(registry.tenant_ids())}")

    try:
        server = TenantQL(
            registry,
            executor_factory=registry.executor_for,
            tenant_resolver=header_tenant_resolver(tenant_header),
            cache_size=cache_size,
            enable_metrics=enable_metrics,
            log_queries=log_queries
        )

        if enable_metrics:
            click.echo(f"📊 Metrics endpoint: http://{host}:{port}/metrics")

        click.echo(f"🚀 Starting GraphQL server at http://{host}:{port}{path} (tenant header: {tenant_header})")
        server.serve(host=host, port=port, path=path, global_path=global_path or None, debug=debug)

    except TenantQLError as e:
        _report_error(e, verbose)
        raise click.Abort()

    except Exception as e:
        click.echo(f"\n❌ Unexpected Error: {e}", err=True)
        if verbose:
            import traceback
            click.echo("\n🔍 Stack trace:", err=True)
            click.echo(traceback.format_exc(), err=True)
        raise click.Abort()

    finally:
        registry.close()


@cli.command()
@click.argument('databases', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--tenant', 'tenant_id', default=None, help='Tenant to print (default: first database)')
@click.option('--global', 'global_schema', is_flag=True, help='Print the schema spanning all tenants')
@click.option('--verbose', '-v', is_flag=True, help='Verbose error output')
def schema(databases: Tuple[str, ...], tenant_id: Optional[str], global_schema: bool, verbose: bool):
    """Print the GraphQL SDL of a tenant or of all tenants."""
    registry = _open_registry(databases)
    try:
        server = TenantQL(registry, executor_factory=registry.executor_for, enable_metrics=False)
        if global_schema:
            unit = server.get_global_schema()
        else:
            unit = server.get_tenant_schema(tenant_id or server.resolve_tenant_id())
        click.echo(unit.as_str())

    except TenantQLError as e:
        _report_error(e, verbose)
        raise click.Abort()

    finally:
        registry.close()


@cli.command()
@click.argument('databases', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
def tenants(databases: Tuple[str, ...]):
    """List the tenants and their tables."""
    registry = _open_registry(databases)
    try:
        for tenant_id in registry.tenant_ids():
            click.echo(f"🏢 {tenant_id}")
            tables = registry.tables(tenant_id) or {}
            if not tables:
                click.echo("  (no tables)")
            for table_name, table in tables.items():
                click.echo(f"  - {table_name} ({len(table.columns)} columns)")
    finally:
        registry.close()


if __name__ == '__main__':
    cli()
