"""Assembly of per-tenant and global GraphQL schemas."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type
import logging
import time

import strawberry
from strawberry.schema.config import StrawberryConfig

from ..exceptions import SchemaBuildError, TenantNotFoundError
from ..metrics import MetricsCollector
from .descriptors import QueryExecutor, TableDescriptor, TenantRegistry
from .query import QueryRootBuilder, root_field_names
from .types import qualified_type_name, to_graphql_name

logger = logging.getLogger(__name__)

GLOBAL_KEY = "global"
GLOBAL_TYPE_NAME = "Global"


@dataclass(frozen=True)
class SchemaUnit:
    """One assembled schema, as stored in the schema cache."""
    key: str
    schema: strawberry.Schema
    tenant_ids: Tuple[str, ...]
    root_fields: Tuple[str, ...]
    built_at: float = field(default_factory=time.time)

    def as_str(self) -> str:
        """SDL of the schema."""
        return self.schema.as_str()


def tenant_prefix(tenant_id: str) -> str:
    """Type name prefix shared by every type generated for ``tenant_id``."""
    return qualified_type_name("Tenant", tenant_id)


def _placeholder() -> Dict[str, Any]:
    # Root fields of a tenant ignore their parent value
    return {}


class TenantSchemaAssembler:
    """Composes entity and query root types into complete schemas."""

    def __init__(
        self,
        executor_factory: Callable[[str], QueryExecutor],
        metrics_collector: Optional[MetricsCollector] = None
    ):
        """
        Args:
            executor_factory: Returns the query executor serving a tenant
            metrics_collector: Optional collector receiving resolver metrics
        """
        self.executor_factory = executor_factory
        self.metrics = metrics_collector

    def assemble(self, tables: Optional[Mapping[str, TableDescriptor]], tenant_id: str) -> SchemaUnit:
        """Build the schema of a single tenant, exposed under one root field."""
        if tables is None:
            raise TenantNotFoundError(f"Tenant '{tenant_id}' not found", tenant_id=tenant_id)

        field_name = to_graphql_name(tenant_id)
        tenant_type = self.build_tenant_type(tables, tenant_id)

        query_type = self._build_query_type(
            qualified_type_name("Query", tenant_id),
            {field_name: (tenant_id, tenant_type)}
        )
        schema = self._create_schema(query_type, tenant_id)

        logger.info(f"Assembled schema for tenant {tenant_id} ({len(tables)} tables)")
        return SchemaUnit(
            key=tenant_id,
            schema=schema,
            tenant_ids=(tenant_id,),
            root_fields=(field_name,)
        )

    def assemble_global(self, registry: TenantRegistry) -> SchemaUnit:
        """Build one schema exposing every registered tenant under its own root field."""
        tenant_fields: Dict[str, Tuple[str, Type]] = {}

        for tenant_id in registry.tenant_ids():
            tables = lookup_tables(registry, tenant_id)
            if not tables:
                logger.warning(f"Skipping tenant {tenant_id}: registry has no tables for it")
                continue

            field_name = to_graphql_name(tenant_id)
            if field_name in tenant_fields:
                raise SchemaBuildError(
                    f"Tenants '{tenant_fields[field_name][0]}' and '{tenant_id}' "
                    f"both map to field '{field_name}'",
                    tenant_id=tenant_id
                )
            tenant_fields[field_name] = (tenant_id, self.build_tenant_type(tables, tenant_id))

        if not tenant_fields:
            raise SchemaBuildError(
                "No tenants available for the global schema",
                suggestions=["Register at least one tenant with tables"]
            )

        query_type = self._build_query_type(GLOBAL_TYPE_NAME, tenant_fields)
        schema = self._create_schema(query_type, GLOBAL_KEY)

        logger.info(f"Assembled global schema for {len(tenant_fields)} tenants")
        return SchemaUnit(
            key=GLOBAL_KEY,
            schema=schema,
            tenant_ids=tuple(tenant_id for tenant_id, _ in tenant_fields.values()),
            root_fields=tuple(tenant_fields)
        )

    def build_tenant_type(self, tables: Mapping[str, TableDescriptor], tenant_id: str) -> Type:
        """Build the query root type holding every table field of one tenant."""
        self._check_tables(tables, tenant_id)

        try:
            builder = QueryRootBuilder(
                self.executor_factory(tenant_id),
                tenant_id=tenant_id,
                metrics_collector=self.metrics
            )
            return builder.build(tables, tenant_prefix(tenant_id))
        except SchemaBuildError:
            raise
        except Exception as e:
            raise SchemaBuildError(
                f"Failed to build types for tenant '{tenant_id}': {e}",
                tenant_id=tenant_id,
                context={"original_error": str(e)}
            ) from e

    def _build_query_type(self, type_name: str, tenant_fields: Dict[str, Tuple[str, Type]]) -> Type:
        fields = {}
        for field_name, (tenant_id, tenant_type) in tenant_fields.items():
            fields[f"tenant_{len(fields)}"] = strawberry.field(
                resolver=_returning(tenant_type),
                name=field_name,
                description=f"Tables of tenant {tenant_id}"
            )
        return strawberry.type(type(type_name, (), fields), name=type_name)

    def _create_schema(self, query_type: Type, key: str) -> strawberry.Schema:
        try:
            return strawberry.Schema(
                query=query_type,
                config=StrawberryConfig(auto_camel_case=False)
            )
        except Exception as e:
            raise SchemaBuildError(
                f"Generated schema for '{key}' is invalid: {e}",
                tenant_id=key,
                context={"original_error": str(e)}
            ) from e

    @staticmethod
    def _check_tables(tables: Mapping[str, TableDescriptor], tenant_id: str) -> None:
        """Reject table sets that are empty or whose field names collide."""
        if not tables:
            raise SchemaBuildError(f"Tenant '{tenant_id}' has no tables", tenant_id=tenant_id)

        _check_unique(
            root_field_names(list(tables)),
            f"Root fields of tenant '{tenant_id}' collide",
            tenant_id
        )

        for table_name, table in tables.items():
            if not table.columns:
                raise SchemaBuildError(
                    f"Table '{table_name}' has no columns",
                    tenant_id=tenant_id,
                    table_name=table_name
                )
            _check_unique(
                [to_graphql_name(column.name) for column in table.columns],
                f"Column names of table '{table_name}' collide after sanitizing",
                tenant_id,
                table_name=table_name
            )


def _returning(tenant_type: Type) -> Callable[[], Any]:
    def resolver() -> tenant_type:
        return _placeholder()
    return resolver


def _check_unique(names: List[str], message: str, tenant_id: str, table_name: Optional[str] = None) -> None:
    duplicates = sorted(name for name, count in Counter(names).items() if count > 1)
    if duplicates:
        raise SchemaBuildError(
            f"{message}: {', '.join(duplicates)}",
            tenant_id=tenant_id,
            table_name=table_name
        )


def lookup_tables(registry: TenantRegistry, tenant_id: str) -> Optional[Mapping[str, TableDescriptor]]:
    """Tables of ``tenant_id``, or None when the registry does not know it."""
    try:
        return registry.tables(tenant_id)
    except KeyError:
        return None
