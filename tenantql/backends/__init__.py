"""Storage backends implementing the tenant registry and query executor."""

from .translator import FilterTranslator
from .duckdb_backend import DuckDBTenantRegistry, DuckDBQueryExecutor

__all__ = ["FilterTranslator", "DuckDBTenantRegistry", "DuckDBQueryExecutor"]
