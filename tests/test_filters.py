"""Tests for filter input type generation."""

import re

import pytest
import strawberry
from strawberry.schema.config import StrawberryConfig

from tenantql.schema.descriptors import ColumnDescriptor, TableDescriptor
from tenantql.schema.filters import FilterTypeBuilder, input_to_filter, operators_for
from tenantql.schema.types import ScalarKind


NUMERIC_OPERATORS = {"eq", "ne", "in", "nin", "gt", "gte", "lt", "lte"}
TEXT_OPERATORS = {"eq", "ne", "in", "nin", "contains", "startsWith", "endsWith"}


def operator_names(filter_type):
    return {f.graphql_name for f in filter_type.__strawberry_definition__.fields}


class TestFilterTypeBuilder:
    """Test per-column filter input types."""

    @pytest.fixture
    def builder(self):
        return FilterTypeBuilder()

    @pytest.mark.parametrize("storage_type", ["INTEGER", "BIGINT", "DOUBLE", "float", "DECIMAL(18,3)"])
    def test_numeric_operators(self, builder, storage_type):
        filter_type = builder.build("amount", storage_type, "Tenant__acme__Invoice__Where")
        assert operator_names(filter_type) == NUMERIC_OPERATORS

    @pytest.mark.parametrize("column_name,storage_type", [
        ("name", "VARCHAR"),
        ("name", None),
        ("id", "UUID"),
        ("ref", "external_id"),
    ])
    def test_textual_operators(self, builder, column_name, storage_type):
        filter_type = builder.build(column_name, storage_type, "Tenant__acme__User__Where")
        assert operator_names(filter_type) == TEXT_OPERATORS

    def test_operators_for_matches_built_types(self, builder):
        assert set(operators_for(ScalarKind.INTEGER)) == NUMERIC_OPERATORS
        assert set(operators_for(ScalarKind.FLOAT)) == NUMERIC_OPERATORS
        assert set(operators_for(ScalarKind.IDENTIFIER)) == TEXT_OPERATORS
        assert set(operators_for(ScalarKind.TEXT)) == TEXT_OPERATORS

    def test_type_name(self, builder):
        filter_type = builder.build("unit-price", "DOUBLE", "Tenant__acme__Invoice__Where")
        name = filter_type.__strawberry_definition__.name

        assert name == "Tenant__acme__Invoice__Where__unit_u00002dprice__Filter"
        assert re.fullmatch(r"[A-Za-z0-9_]+", name)

    def test_same_name_is_built_once(self, builder):
        first = builder.build("total", "DOUBLE", "P")
        assert builder.build("total", "DOUBLE", "P") is first
        assert builder.get_filter_type("P__total__Filter") is first

    def test_where_type(self, builder):
        table = TableDescriptor(
            "Invoice",
            columns=[
                ColumnDescriptor("id", "INTEGER"),
                ColumnDescriptor("total", "DOUBLE"),
                ColumnDescriptor("2nd-line", "VARCHAR"),
            ],
        )
        where_type = builder.build_where(table, "Tenant__acme__Invoice__Where")
        definition = where_type.__strawberry_definition__

        assert definition.name == "Tenant__acme__Invoice__Where"
        assert sorted(f.graphql_name for f in definition.fields) == ["_2nd_line", "id", "total"]


class TestInputToFilter:
    """Test conversion of where inputs back into filter mappings."""

    @pytest.fixture
    def where_type(self):
        table = TableDescriptor(
            "Invoice",
            columns=[
                ColumnDescriptor("total", "DOUBLE"),
                ColumnDescriptor("customer-name", "VARCHAR"),
            ],
        )
        return FilterTypeBuilder().build_where(table, "Tenant__acme__Invoice__Where")

    def test_none(self):
        assert input_to_filter(None) == {}

    def test_mapping_drops_nulls(self):
        assert input_to_filter({"total": {"gt": 5}, "name": None}) == {"total": {"gt": 5}}

    def test_arguments_round_trip_to_storage_names(self, where_type):
        received = {}

        @strawberry.type
        class Query:
            @strawberry.field
            def probe(self, where: where_type) -> bool:
                received.update(input_to_filter(where))
                return True

        schema = strawberry.Schema(query=Query, config=StrawberryConfig(auto_camel_case=False))
        result = schema.execute_sync("""
            {
                probe(where: {
                    total: {gte: 1.5, in: [2, 3]},
                    customer_name: {startsWith: "Ac", nin: ["x"]}
                })
            }
        """)

        assert result.errors is None
        assert received == {
            "total": {"gte": 1.5, "in": [2.0, 3.0]},
            "customer-name": {"startsWith": "Ac", "nin": ["x"]},
        }
