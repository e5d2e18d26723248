"""TenantQL - lazily synthesized, cached GraphQL schemas for multi-tenant data."""

from .cache import SchemaCache
from .core import TenantQL
from .schema import (
    ColumnDescriptor,
    RelationDescriptor,
    TableDescriptor,
    InMemoryTenantRegistry,
    SchemaUnit,
)

__version__ = "0.1.0"
__all__ = [
    "TenantQL",
    "SchemaCache",
    "ColumnDescriptor",
    "RelationDescriptor",
    "TableDescriptor",
    "InMemoryTenantRegistry",
    "SchemaUnit",
]
