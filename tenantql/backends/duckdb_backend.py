"""DuckDB implementations of the tenant registry and query executor."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
import logging
import threading
import time
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import duckdb

from ..schema.descriptors import ColumnDescriptor, RelationDescriptor, TableDescriptor
from .translator import FilterTranslator

logger = logging.getLogger(__name__)


@dataclass
class DuckDBTenant:
    """One tenant's database connection and the lock serializing its use."""
    tenant_id: str
    connection: duckdb.DuckDBPyConnection
    relations: Dict[str, Dict[str, str]] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)


class DuckDBTenantRegistry:
    """Tenant registry with one DuckDB database per tenant.

    Tables and their columns are introspected from ``information_schema`` on
    every lookup. Relations cannot be introspected and are declared per table
    as ``{"Invoice": {"user": "User"}}``.
    """

    def __init__(self, **executor_options: Any):
        self.executor_options = executor_options
        self._tenants: Dict[str, DuckDBTenant] = {}
        self._executors: Dict[str, "DuckDBQueryExecutor"] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_paths(
        cls,
        paths: Iterable[Union[str, Path]],
        read_only: bool = True,
        **executor_options: Any
    ) -> "DuckDBTenantRegistry":
        """Registry with one tenant per database file, named after the file stem."""
        registry = cls(**executor_options)
        try:
            for path in paths:
                path = Path(path)
                registry.add_database(path.stem, str(path), read_only=read_only)
        except Exception:
            registry.close()
            raise
        return registry

    def add_database(
        self,
        tenant_id: str,
        database: Union[str, duckdb.DuckDBPyConnection] = ":memory:",
        relations: Optional[Dict[str, Dict[str, str]]] = None,
        read_only: bool = False,
    ) -> DuckDBTenant:
        """Register a tenant backed by a database path or an open connection."""
        if self.tenant(tenant_id) is not None:
            raise ValueError(f"Tenant '{tenant_id}' is already registered")

        if isinstance(database, str):
            if database == ":memory:":
                connection = duckdb.connect(":memory:")
            else:
                connection = duckdb.connect(database, read_only=read_only)
        else:
            connection = database

        tenant = DuckDBTenant(tenant_id, connection, dict(relations or {}))
        with self._lock:
            if tenant_id in self._tenants:
                raise ValueError(f"Tenant '{tenant_id}' is already registered")
            self._tenants[tenant_id] = tenant

        logger.info(f"Registered DuckDB tenant {tenant_id}")
        return tenant

    def tenant_ids(self) -> List[str]:
        with self._lock:
            return list(self._tenants)

    def tenant(self, tenant_id: str) -> Optional[DuckDBTenant]:
        with self._lock:
            return self._tenants.get(tenant_id)

    def tables(self, tenant_id: str) -> Optional[Dict[str, TableDescriptor]]:
        """Introspect the tables of a tenant, or None for an unknown tenant."""
        tenant = self.tenant(tenant_id)
        if tenant is None:
            return None

        with tenant.lock:
            rows = tenant.connection.execute(
                """
                SELECT table_name, column_name, data_type
                FROM information_schema.columns
                WHERE table_schema = 'main'
                ORDER BY table_name, ordinal_position
                """
            ).fetchall()

        tables: Dict[str, TableDescriptor] = {}
        for table_name, column_name, data_type in rows:
            table = tables.get(table_name)
            if table is None:
                table = tables[table_name] = TableDescriptor(name=table_name)
            table.columns.append(ColumnDescriptor(column_name, data_type))

        for table_name, relations in tenant.relations.items():
            table = tables.get(table_name)
            if table is None:
                logger.warning(f"Relations declared for unknown table {tenant_id}.{table_name}")
                continue
            for relation_name, target in relations.items():
                table.relations[relation_name] = RelationDescriptor(target)

        logger.debug(f"Introspected {len(tables)} tables for tenant {tenant_id}")
        return tables

    def executor_for(self, tenant_id: str) -> "DuckDBQueryExecutor":
        """Query executor bound to the tenant's connection, created on first use."""
        with self._lock:
            executor = self._executors.get(tenant_id)
            if executor is not None:
                return executor

            tenant = self._tenants.get(tenant_id)
            if tenant is None:
                raise KeyError(tenant_id)

            executor = DuckDBQueryExecutor(
                tenant.connection, lock=tenant.lock, tenant_id=tenant_id, **self.executor_options
            )
            self._executors[tenant_id] = executor
            return executor

    def close(self) -> None:
        """Shut down executors and close every tenant connection."""
        with self._lock:
            executors = list(self._executors.values())
            tenants = list(self._tenants.values())
            self._executors.clear()
            self._tenants.clear()

        for executor in executors:
            executor.close()
        for tenant in tenants:
            tenant.connection.close()


class DuckDBQueryExecutor:
    """Runs filtered table lookups against a DuckDB connection off the event loop."""

    def __init__(self,
                 connection: duckdb.DuckDBPyConnection,
                 lock: Optional[threading.Lock] = None,
                 tenant_id: Optional[str] = None,
                 default_limit: Optional[int] = None,
                 log_queries: bool = False,
                 log_slow_queries: bool = True,
                 slow_query_ms: int = 1000):
        """
        Initialize the executor.

        Args:
            connection: DuckDB connection to query
            lock: Lock shared with other users of the connection
            tenant_id: Tenant the connection belongs to, used in log messages
            default_limit: Row limit applied when the client sets none
            log_queries: Whether to log all SQL queries at DEBUG level
            log_slow_queries: Whether to log slow queries at WARNING level
            slow_query_ms: Threshold in milliseconds for slow query logging
        """
        self.connection = connection
        self.lock = lock or threading.Lock()
        self.tenant_id = tenant_id
        self.default_limit = default_limit
        self.log_queries = log_queries
        self.log_slow_queries = log_slow_queries
        self.slow_query_ms = slow_query_ms
        self.translator = FilterTranslator()
        self.executor = ThreadPoolExecutor(max_workers=1)

    async def query(
        self,
        table_name: str,
        where: Mapping[str, Mapping[str, Any]],
        options: Mapping[str, int]
    ) -> List[Dict[str, Any]]:
        """Fetch the rows of ``table_name`` matching ``where``."""
        sql, params = self.translator.translate_query(
            table_name,
            where,
            limit=options.get("limit", self.default_limit),
            offset=options.get("offset"),
        )

        correlation_id = str(uuid.uuid4())
        if self.log_queries:
            logger.debug(f"[{correlation_id}] Executing query for {self.tenant_id}: {sql} {params}")

        start_time = time.time()
        loop = asyncio.get_running_loop()
        rows = await loop.run_in_executor(self.executor, self._execute_sync, sql, params)

        execution_time = (time.time() - start_time) * 1000
        if self.log_slow_queries and execution_time > self.slow_query_ms:
            logger.warning(f"[{correlation_id}] Slow query detected: {execution_time:.2f}ms - {sql}")
        elif self.log_queries:
            logger.debug(
                f"[{correlation_id}] Query completed in {execution_time:.2f}ms, returned {len(rows)} rows"
            )

        return rows

    def _execute_sync(self, sql: str, params: List[Any]) -> List[Dict[str, Any]]:
        with self.lock:
            result = self.connection.execute(sql, params)
            rows = result.fetchall()
            columns = [desc[0] for desc in result.description] if result.description else []

        return [
            {column: _to_graphql_value(value) for column, value in zip(columns, row)}
            for row in rows
        ]

    def close(self) -> None:
        self.executor.shutdown(wait=False)


def _to_graphql_value(value: Any) -> Any:
    """Convert DuckDB values to types the GraphQL scalars serialize."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, memoryview):
        return value.tobytes().decode("utf-8", errors="replace")
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value
