"""GraphQL output type generation from tenant table descriptors."""

from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Type
import keyword
import logging
import re

import strawberry

from .descriptors import ColumnDescriptor, TableDescriptor

logger = logging.getLogger(__name__)


class ScalarKind(Enum):
    """Scalar kinds exposed by the generated API, valued by their GraphQL name."""
    INTEGER = "Int"
    FLOAT = "Float"
    IDENTIFIER = "ID"
    TEXT = "String"


SCALAR_TYPES = {
    ScalarKind.INTEGER: int,
    ScalarKind.FLOAT: float,
    ScalarKind.IDENTIFIER: strawberry.ID,
    ScalarKind.TEXT: str,
}

_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")


def map_scalar_kind(column_name: str, storage_type: Optional[str]) -> ScalarKind:
    """
    Map a storage column to the scalar kind it is exposed as.

    The storage type tag is matched case-insensitively and the integer rule
    is checked first, so a column named ``id`` typed ``INTEGER`` is an
    INTEGER, not an IDENTIFIER.
    """
    type_tag = str(storage_type or "").lower()

    if "int" in type_tag:
        return ScalarKind.INTEGER
    if "float" in type_tag or "double" in type_tag or "decimal" in type_tag:
        return ScalarKind.FLOAT
    if str(column_name).lower() == "id" or "id" in type_tag:
        return ScalarKind.IDENTIFIER
    return ScalarKind.TEXT


def scalar_type(column_name: str, storage_type: Optional[str]) -> Any:
    """Python/strawberry type of a column's scalar kind."""
    return SCALAR_TYPES[map_scalar_kind(column_name, storage_type)]


def sanitize_name(name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_]`` with ``_``."""
    return _INVALID_NAME_CHARS.sub("_", str(name))


def encode_name_part(part: str) -> str:
    """
    Encode a tenant id, table or column name for use inside a type name.

    ASCII letters and digits are kept, ``_`` becomes ``_0`` and any other
    character becomes ``_u`` followed by its six-digit hex code point. An
    encoded part never contains ``__`` and never ends with ``_``, so parts
    joined by ``qualified_type_name`` can always be split back apart.
    """
    encoded = []
    for char in str(part):
        if char == "_":
            encoded.append("_0")
        elif char.isascii() and char.isalnum():
            encoded.append(char)
        else:
            encoded.append(f"_u{ord(char):06x}")
    return "".join(encoded)


def qualified_type_name(prefix: str, *parts: str) -> str:
    """``prefix`` followed by each encoded part, e.g. ``Tenant__acme_0eu__Invoice``."""
    return "".join([prefix] + [f"__{encode_name_part(part)}" for part in parts])


def to_graphql_name(name: str) -> str:
    """Sanitized name that is also legal as a standalone GraphQL name."""
    graphql_name = sanitize_name(name)
    if not graphql_name or graphql_name[0].isdigit():
        graphql_name = f"_{graphql_name}"

    # A leading "__" is reserved for introspection
    if graphql_name.startswith("__"):
        graphql_name = "_" + graphql_name.lstrip("_")
    return graphql_name


def to_python_name(name: str) -> str:
    """Convert a column or operator name to a valid Python attribute name."""
    python_name = sanitize_name(name)

    # Handle names that start with numbers or look like dunder attributes
    if not python_name or python_name[0].isdigit() or python_name.startswith("__"):
        python_name = f"field_{python_name}"

    # Handle Python reserved words
    if keyword.iskeyword(python_name):
        python_name = f"{python_name}_"

    return python_name


def unique_python_name(name: str, taken: Mapping[str, Any]) -> str:
    """``to_python_name`` suffixed with a counter until it is not in ``taken``."""
    python_name = to_python_name(name)
    candidate = python_name
    counter = 2
    while candidate in taken:
        candidate = f"{python_name}_{counter}"
        counter += 1
    return candidate


def find_table(tables: Mapping[str, TableDescriptor], name: str) -> Optional[str]:
    """Return the key of table ``name`` in ``tables``, matching case-insensitively as a fallback."""
    if name in tables:
        return name
    folded = name.casefold()
    for table_name in tables:
        if table_name.casefold() == folded:
            return table_name
    return None


def record_value(record: Any, key: str) -> Any:
    """Read ``key`` off a record that is either a mapping or a plain object."""
    if record is None:
        return None
    if isinstance(record, Mapping):
        return record.get(key)
    return getattr(record, key, None)


def related_records(record: Any, relation_name: str) -> List[Any]:
    """
    Records nested under a relation key of ``record``.

    Storage layers name the key either after the relation (``user``) or its
    plural (``users``). The singular key is read first; the plural key is
    only used when the singular one is missing or null. A single nested
    mapping is returned as a one-element list.
    """
    for key in (relation_name, f"{relation_name}s"):
        value = record_value(record, key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            return [value]
        return list(value)
    return []


def column_field(column: ColumnDescriptor) -> Any:
    """Scalar field reading one column off the parent record."""
    field_type = Optional[scalar_type(column.name, column.storage_type)]
    key = column.name

    def resolve(root) -> field_type:
        return record_value(root, key)

    return strawberry.field(
        resolver=resolve,
        name=to_graphql_name(column.name),
        description=f"Column {column.name} ({column.storage_type or 'untyped'})"
    )


def relation_field(relation_name: str, target_type: Type) -> Any:
    """List field returning the records nested under ``relation_name``."""

    def resolve(root) -> List[target_type]:
        return related_records(root, relation_name)

    return strawberry.field(
        resolver=resolve,
        name=to_graphql_name(f"{relation_name}s"),
        description=f"Related records of relation {relation_name}"
    )


class EntityTypeBuilder:
    """
    Builds one strawberry output type per table of a single tenant.

    ``build`` hands out the type class immediately and defers its field set
    until ``finalize``, so relations may point at tables whose types have not
    been built yet, including the table itself.
    """

    def __init__(self, name_prefix: str):
        self.name_prefix = name_prefix
        self._types: Dict[str, Type] = {}
        self._pending: Dict[str, Callable[[], Dict[str, Any]]] = {}

    def build(self, tables: Mapping[str, TableDescriptor], table_name: str) -> Type:
        """Return the (possibly not yet finalized) type for ``table_name``."""
        if table_name in self._types:
            return self._types[table_name]

        table = tables[table_name]
        type_name = qualified_type_name(self.name_prefix, table_name)

        entity_type = type(type_name, (), {"__doc__": f"Records of the {table_name} table."})
        self._types[table_name] = entity_type
        self._pending[table_name] = lambda: self._build_fields(tables, table)

        return entity_type

    def finalize(self) -> Dict[str, Type]:
        """Resolve every pending field set and turn the classes into strawberry types."""
        while self._pending:
            table_name = next(iter(self._pending))
            fields_thunk = self._pending.pop(table_name)
            entity_type = self._types[table_name]

            for python_name, field_def in fields_thunk().items():
                setattr(entity_type, python_name, field_def)

            strawberry.type(
                entity_type,
                name=entity_type.__name__,
                description=entity_type.__doc__
            )
            logger.debug(f"Built entity type {entity_type.__name__}")

        return dict(self._types)

    def _build_fields(
        self,
        tables: Mapping[str, TableDescriptor],
        table: TableDescriptor
    ) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        graphql_names: Dict[str, str] = {}

        for column in table.columns:
            python_name = unique_python_name(column.name, fields)
            fields[python_name] = column_field(column)
            graphql_names[to_graphql_name(column.name)] = python_name

        for relation_name, relation in table.relations.items():
            target_name = find_table(tables, relation.target_table)
            if target_name is None:
                logger.debug(
                    f"Skipping relation {table.name}.{relation_name}: "
                    f"table {relation.target_table} does not exist"
                )
                continue

            field_def = relation_field(relation_name, self.build(tables, target_name))
            graphql_name = to_graphql_name(f"{relation_name}s")

            shadowed = graphql_names.pop(graphql_name, None)
            if shadowed is not None:
                logger.warning(
                    f"Relation {table.name}.{relation_name} shadows field {graphql_name}"
                )
                del fields[shadowed]

            python_name = unique_python_name(f"{relation_name}s", fields)
            fields[python_name] = field_def
            graphql_names[graphql_name] = python_name

        return fields
