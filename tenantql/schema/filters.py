"""Filter input types for the generated ``where`` arguments."""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Type
import logging

import strawberry

from .descriptors import TableDescriptor
from .types import (
    ScalarKind,
    SCALAR_TYPES,
    map_scalar_kind,
    qualified_type_name,
    to_graphql_name,
    unique_python_name,
)

logger = logging.getLogger(__name__)


# Python attribute name -> GraphQL operator name
EQUALITY_OPERATORS = {"eq": "eq", "ne": "ne"}
LIST_OPERATORS = {"in_": "in", "nin": "nin"}
COMPARISON_OPERATORS = {"gt": "gt", "gte": "gte", "lt": "lt", "lte": "lte"}
TEXT_OPERATORS = {"contains": "contains", "starts_with": "startsWith", "ends_with": "endsWith"}

NUMERIC_KINDS = (ScalarKind.INTEGER, ScalarKind.FLOAT)
TEXTUAL_KINDS = (ScalarKind.IDENTIFIER, ScalarKind.TEXT)


def operators_for(kind: ScalarKind) -> List[str]:
    """GraphQL operator names legal for a scalar kind."""
    operators = list(EQUALITY_OPERATORS.values()) + list(LIST_OPERATORS.values())
    if kind in NUMERIC_KINDS:
        operators.extend(COMPARISON_OPERATORS.values())
    if kind in TEXTUAL_KINDS:
        operators.extend(TEXT_OPERATORS.values())
    return operators


class FilterTypeBuilder:
    """Builds filter input types for columns and tables."""

    def __init__(self):
        self._filter_types: Dict[str, Type] = {}

    def build(self, column_name: str, storage_type: Optional[str], name_prefix: str) -> Type:
        """Build the filter input type for one column."""
        type_name = f"{qualified_type_name(name_prefix, column_name)}__Filter"

        if type_name in self._filter_types:
            return self._filter_types[type_name]

        kind = map_scalar_kind(column_name, storage_type)
        base_type = SCALAR_TYPES[kind]

        annotations = {}
        operator_names = {}

        for python_name, operator in EQUALITY_OPERATORS.items():
            annotations[python_name] = Optional[base_type]
            operator_names[python_name] = operator

        for python_name, operator in LIST_OPERATORS.items():
            annotations[python_name] = Optional[List[base_type]]
            operator_names[python_name] = operator

        if kind in NUMERIC_KINDS:
            for python_name, operator in COMPARISON_OPERATORS.items():
                annotations[python_name] = Optional[base_type]
                operator_names[python_name] = operator

        if kind in TEXTUAL_KINDS:
            # Text matching always takes a string, even on ID columns
            for python_name, operator in TEXT_OPERATORS.items():
                annotations[python_name] = Optional[str]
                operator_names[python_name] = operator

        class_dict = {'__annotations__': annotations}
        for python_name in annotations:
            class_dict[python_name] = None

        filter_class = type(type_name, (), class_dict)
        filter_class = strawberry.input(
            filter_class,
            name=type_name,
            description=f"Comparison operators for {column_name} ({kind.value})"
        )

        for field_def in filter_class.__strawberry_definition__.fields:
            field_def.graphql_name = operator_names[field_def.python_name]

        self._filter_types[type_name] = filter_class
        return filter_class

    def build_where(self, table: TableDescriptor, name_prefix: str) -> Type:
        """
        Build the ``where`` input type of a table.

        It has one optional field per column, typed with that column's filter
        input type. ``name_prefix`` is also the resulting type's name.
        """
        if name_prefix in self._filter_types:
            return self._filter_types[name_prefix]

        annotations = {}
        column_names = {}

        for column in table.columns:
            python_name = unique_python_name(column.name, annotations)
            filter_type = self.build(column.name, column.storage_type, name_prefix)
            annotations[python_name] = Optional[filter_type]
            column_names[python_name] = column.name

        class_dict = {'__annotations__': annotations}
        for python_name in annotations:
            class_dict[python_name] = None

        where_class = type(name_prefix, (), class_dict)
        where_class = strawberry.input(
            where_class,
            name=name_prefix,
            description=f"Filter on the columns of {table.name}"
        )

        for field_def in where_class.__strawberry_definition__.fields:
            field_def.graphql_name = to_graphql_name(column_names[field_def.python_name])

        # Lets input_to_filter hand back storage column names
        where_class.__tenantql_columns__ = column_names

        self._filter_types[name_prefix] = where_class
        logger.debug(f"Built where input {name_prefix} with {len(column_names)} columns")
        return where_class

    def get_filter_type(self, type_name: str) -> Optional[Type]:
        return self._filter_types.get(type_name)


def input_to_filter(input_obj: Any) -> Dict[str, Any]:
    """
    Convert a generated ``where`` input object into a plain filter mapping.

    The result maps storage column names to ``{operator: operand}`` mappings
    keyed by GraphQL operator names. Columns and operators left unset are
    omitted.
    """
    if input_obj is None:
        return {}

    if isinstance(input_obj, Mapping):
        return {key: value for key, value in input_obj.items() if value is not None}

    column_names = getattr(type(input_obj), "__tenantql_columns__", {})
    result = {}

    for field_def in input_obj.__strawberry_definition__.fields:
        value = getattr(input_obj, field_def.python_name, None)
        if value is None:
            continue

        key = column_names.get(field_def.python_name, field_def.graphql_name or field_def.python_name)

        if hasattr(value, "__strawberry_definition__"):
            result[key] = input_to_filter(value)
        elif isinstance(value, Enum):
            result[key] = value.value
        else:
            result[key] = value

    return result
