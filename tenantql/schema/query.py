"""Root query fields delegating to the tenant's query executor."""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Type
import inspect
import logging
import uuid

import strawberry

from ..exceptions import TenantQLError, QueryError
from ..metrics import MetricsCollector
from .descriptors import QueryExecutor, TableDescriptor
from .filters import FilterTypeBuilder, input_to_filter
from .types import EntityTypeBuilder, qualified_type_name, to_graphql_name, unique_python_name

logger = logging.getLogger(__name__)


def entity_field_name(table_name: str) -> str:
    """Name of the singular root field of a table."""
    return to_graphql_name(table_name.lower())


def list_field_name(table_name: str) -> str:
    """Name of the plural root field of a table."""
    return to_graphql_name(f"{table_name.lower()}s")


class QueryRootBuilder:
    """Builds the per-tenant query root with a singular and a plural field per table."""

    def __init__(
        self,
        executor: QueryExecutor,
        tenant_id: Optional[str] = None,
        metrics_collector: Optional[MetricsCollector] = None
    ):
        self.executor = executor
        self.tenant_id = tenant_id
        self.metrics = metrics_collector
        self.filter_builder = FilterTypeBuilder()

    def build(self, tables: Mapping[str, TableDescriptor], name_prefix: str) -> Type:
        """Build the query root type for a tenant's table set."""
        entity_builder = EntityTypeBuilder(name_prefix)
        for table_name in tables:
            entity_builder.build(tables, table_name)
        entity_types = entity_builder.finalize()

        root_fields = {}
        for table_name, table in tables.items():
            where_type = self.filter_builder.build_where(
                table, f"{qualified_type_name(name_prefix, table_name)}__Where"
            )
            entity_type = entity_types[table_name]

            root_fields[unique_python_name(entity_field_name(table_name), root_fields)] = \
                self._create_single_resolver(table_name, entity_type, where_type)
            root_fields[unique_python_name(list_field_name(table_name), root_fields)] = \
                self._create_list_resolver(table_name, entity_type, where_type)

        root_type = type(name_prefix, (), root_fields)
        return strawberry.type(
            root_type,
            name=name_prefix,
            description=f"Tables of tenant {self.tenant_id}" if self.tenant_id is not None else None
        )

    def _create_single_resolver(self, table_name: str, entity_type: Type, where_type: Type) -> Any:
        """Create a resolver for fetching a single record."""

        async def resolver(where: Optional[where_type] = None) -> Optional[entity_type]:
            records = await self._query(table_name, "single", input_to_filter(where), {})
            return records[0] if records else None

        return strawberry.field(
            resolver=resolver,
            name=entity_field_name(table_name),
            description=f"Fetch a single {table_name} record"
        )

    def _create_list_resolver(self, table_name: str, entity_type: Type, where_type: Type) -> Any:
        """Create a resolver for fetching a list of records."""

        async def resolver(
            where: Optional[where_type] = None,
            limit: Optional[int] = None,
            offset: Optional[int] = None,
        ) -> List[entity_type]:
            # Falsy values are left out so the executor applies its own defaults
            options = {}
            if limit:
                options["limit"] = limit
            if offset:
                options["offset"] = offset

            return await self._query(table_name, "list", input_to_filter(where), options)

        return strawberry.field(
            resolver=resolver,
            name=list_field_name(table_name),
            description=f"Fetch a list of {table_name} records"
        )

    async def _query(
        self,
        table_name: str,
        operation: str,
        where: Dict[str, Any],
        options: Dict[str, int]
    ) -> List[Any]:
        correlation_id = str(uuid.uuid4())

        query_metrics = None
        if self.metrics:
            query_metrics = self.metrics.start_query(
                query_id=correlation_id,
                operation_type=operation,
                tenant_id=self.tenant_id,
                table_name=table_name,
                context={"where": where, "options": options}
            )

        logger.debug(
            f"[{correlation_id}] {operation} lookup on {self.tenant_id}.{table_name} "
            f"where={where} options={options}"
        )

        try:
            result = self.executor.query(table_name, where, options)
            if inspect.isawaitable(result):
                result = await result
            records = list(result or [])

        except TenantQLError as e:
            if query_metrics:
                self.metrics.complete_query(query_metrics, error=e.message)
            raise

        except Exception as e:
            logger.error(
                f"[{correlation_id}] Error in {operation} resolver for "
                f"{self.tenant_id}.{table_name}: {str(e)}"
            )
            if query_metrics:
                self.metrics.complete_query(query_metrics, error=str(e))
            raise QueryError(
                f"Failed to fetch {table_name} records",
                tenant_id=self.tenant_id,
                table_name=table_name,
                operation=operation,
                correlation_id=correlation_id,
                context={"original_error": str(e)}
            ) from e

        if query_metrics:
            self.metrics.complete_query(query_metrics, row_count=len(records))

        return records


def root_field_names(tables: Sequence[str]) -> List[str]:
    """Root field names generated for ``tables``, in schema order."""
    names = []
    for table_name in tables:
        names.append(entity_field_name(table_name))
        names.append(list_field_name(table_name))
    return names
