"""Schema synthesis from tenant table descriptors."""

from .descriptors import (
    ColumnDescriptor,
    RelationDescriptor,
    TableDescriptor,
    TenantRegistry,
    QueryExecutor,
    InMemoryTenantRegistry,
)
from .types import ScalarKind, EntityTypeBuilder, map_scalar_kind, sanitize_name
from .filters import FilterTypeBuilder, input_to_filter, operators_for
from .query import QueryRootBuilder
from .assembler import TenantSchemaAssembler, SchemaUnit, GLOBAL_KEY

__all__ = [
    "ColumnDescriptor",
    "RelationDescriptor",
    "TableDescriptor",
    "TenantRegistry",
    "QueryExecutor",
    "InMemoryTenantRegistry",
    "ScalarKind",
    "EntityTypeBuilder",
    "map_scalar_kind",
    "sanitize_name",
    "FilterTypeBuilder",
    "input_to_filter",
    "operators_for",
    "QueryRootBuilder",
    "TenantSchemaAssembler",
    "SchemaUnit",
    "GLOBAL_KEY",
]
