"""Table descriptors and the collaborator interfaces the schema builders consume."""

from dataclasses import dataclass, field
from typing import (
    Any, Awaitable, Dict, List, Mapping, Optional, Protocol, Sequence, Union,
    runtime_checkable,
)


Record = Mapping[str, Any]


@dataclass(frozen=True)
class ColumnDescriptor:
    """A column as described by the storage layer."""
    name: str
    storage_type: Optional[str] = None


@dataclass(frozen=True)
class RelationDescriptor:
    """A named relation pointing at another table of the same tenant."""
    target_table: str


@dataclass
class TableDescriptor:
    """Information about a tenant table."""
    name: str
    columns: List[ColumnDescriptor] = field(default_factory=list)
    relations: Dict[str, RelationDescriptor] = field(default_factory=dict)

    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]


@runtime_checkable
class TenantRegistry(Protocol):
    """Storage-schema lookup per tenant."""

    def tables(self, tenant_id: str) -> Optional[Mapping[str, TableDescriptor]]:
        ...

    def tenant_ids(self) -> Sequence[str]:
        ...


@runtime_checkable
class QueryExecutor(Protocol):
    """Runs a filtered, paginated lookup against one table.

    ``where`` maps column names to ``{operator: operand}`` mappings and is
    passed through exactly as the client sent it. ``options`` only carries
    ``limit``/``offset`` when the client supplied them.
    """

    def query(
        self,
        table_name: str,
        where: Dict[str, Dict[str, Any]],
        options: Dict[str, int]
    ) -> Union[Sequence[Record], Awaitable[Sequence[Record]]]:
        ...


class InMemoryTenantRegistry:
    """Registry backed by a plain ``{tenant_id: {table_name: TableDescriptor}}`` mapping."""

    def __init__(self, tenants: Optional[Dict[str, Dict[str, TableDescriptor]]] = None):
        self._tenants: Dict[str, Dict[str, TableDescriptor]] = dict(tenants or {})

    def tables(self, tenant_id: str) -> Optional[Mapping[str, TableDescriptor]]:
        return self._tenants.get(tenant_id)

    def tenant_ids(self) -> List[str]:
        return list(self._tenants)

    def add_tenant(self, tenant_id: str, tables: Dict[str, TableDescriptor]) -> None:
        self._tenants[tenant_id] = dict(tables)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InMemoryTenantRegistry":
        """
        Build a registry from a JSON-style manifest.

        The manifest maps tenant ids to tables. A table lists its columns
        either as ``{"name": "type"}`` or as ``[{"name": ..., "type": ...}]``,
        and its relations as ``{"relation": "Target"}`` or
        ``{"relation": {"table": "Target"}}``::

            {
                "acme": {
                    "Invoice": {
                        "columns": {"id": "Int", "total": "Float"},
                        "relations": {"user": "User"}
                    }
                }
            }
        """
        tenants = {}
        for tenant_id, tables in data.items():
            tenants[tenant_id] = {
                table_name: table_from_dict(table_name, entry)
                for table_name, entry in tables.items()
            }
        return cls(tenants)


def table_from_dict(name: str, entry: Mapping[str, Any]) -> TableDescriptor:
    """Build a TableDescriptor from its manifest entry."""
    raw_columns = entry.get("columns") or {}
    if isinstance(raw_columns, Mapping):
        columns = [ColumnDescriptor(col, col_type) for col, col_type in raw_columns.items()]
    else:
        columns = [
            ColumnDescriptor(col["name"], col.get("type"))
            for col in raw_columns
        ]

    relations = {}
    for relation_name, target in (entry.get("relations") or {}).items():
        if isinstance(target, Mapping):
            target = target["table"]
        relations[relation_name] = RelationDescriptor(target)

    return TableDescriptor(name=name, columns=columns, relations=relations)
