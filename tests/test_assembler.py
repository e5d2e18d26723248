"""Tests for tenant and global schema assembly."""

import random
import re

import pytest

from tenantql.exceptions import SchemaBuildError, TenantNotFoundError
from tenantql.schema import (
    ColumnDescriptor,
    InMemoryTenantRegistry,
    RelationDescriptor,
    TableDescriptor,
    TenantSchemaAssembler,
    GLOBAL_KEY,
)
from tenantql.schema.assembler import lookup_tables, tenant_prefix
from tenantql.schema.query import entity_field_name, root_field_names
from tenantql.schema.types import qualified_type_name, to_graphql_name

from .tenant_fixtures import RecordingExecutor, acme_tables, single_table


TYPE_FIELDS_QUERY = '{ __type(name: "%s") { fields { name } } }'
ALL_TYPES_QUERY = "{ __schema { queryType { name } types { name } } }"


def type_fields(unit, type_name):
    result = unit.schema.execute_sync(TYPE_FIELDS_QUERY % type_name)
    assert result.errors is None
    if result.data["__type"] is None:
        return None
    return sorted(f["name"] for f in result.data["__type"]["fields"])


@pytest.fixture
def executor():
    return RecordingExecutor([{"id": 1, "label": "x"}])


@pytest.fixture
def assembler(executor):
    return TenantSchemaAssembler(lambda tenant_id: executor)


class TestTenantSchema:
    """Test single tenant assembly."""

    def test_root_type_exposes_tenant_field(self, assembler):
        unit = assembler.assemble(acme_tables(), "acme")

        assert unit.key == "acme"
        assert unit.tenant_ids == ("acme",)
        assert unit.root_fields == ("acme",)
        assert type_fields(unit, "Query__acme") == ["acme"]
        assert type_fields(unit, "Tenant__acme") == ["invoice", "invoices", "user", "users"]

    def test_entity_and_filter_types(self, assembler):
        unit = assembler.assemble(acme_tables(), "acme")

        assert type_fields(unit, "Tenant__acme__Invoice") == ["id", "total", "userId", "users"]
        assert type_fields(unit, "Tenant__acme__User") == ["id", "name"]

        sdl = unit.as_str()
        assert "input Tenant__acme__Invoice__Where {" in sdl
        assert "input Tenant__acme__Invoice__Where__total__Filter" in sdl
        assert "invoices(" in sdl

    def test_tenant_placeholder_resolves(self, assembler):
        unit = assembler.assemble(single_table(), "acme")
        result = unit.schema.execute_sync("{ acme { __typename } }")

        assert result.errors is None
        assert result.data == {"acme": {"__typename": "Tenant__acme"}}

    def test_dangling_relation_is_dropped(self, assembler):
        tables = acme_tables()
        tables["Invoice"].relations["customer"] = RelationDescriptor("Customer")

        unit = assembler.assemble(tables, "acme")

        assert "customers" not in type_fields(unit, "Tenant__acme__Invoice")

    def test_sanitized_tenant_id(self, assembler):
        unit = assembler.assemble(single_table(), "acme-corp.eu")

        assert unit.key == "acme-corp.eu"
        assert unit.root_fields == ("acme_corp_eu",)
        assert type_fields(unit, "Query__acme_u00002dcorp_u00002eeu") == ["acme_corp_eu"]
        assert type_fields(unit, "Tenant__acme_u00002dcorp_u00002eeu__Item") == ["id", "label"]

    def test_unknown_tenant(self, assembler):
        with pytest.raises(TenantNotFoundError) as exc_info:
            assembler.assemble(None, "ghost")

        assert exc_info.value.tenant_id == "ghost"

    def test_executor_factory_receives_tenant(self, executor):
        requested = []

        def factory(tenant_id):
            requested.append(tenant_id)
            return executor

        TenantSchemaAssembler(factory).assemble(single_table(), "acme")
        assert requested == ["acme"]


class TestMalformedMetadata:
    """Test rejection of descriptors that cannot form a schema."""

    def test_no_tables(self, assembler):
        with pytest.raises(SchemaBuildError, match="has no tables"):
            assembler.assemble({}, "acme")

    def test_table_without_columns(self, assembler):
        with pytest.raises(SchemaBuildError, match="has no columns") as exc_info:
            assembler.assemble({"Empty": TableDescriptor("Empty")}, "acme")

        assert exc_info.value.context == {"tenant": "acme", "table": "Empty"}

    def test_colliding_table_names(self, assembler):
        tables = {**single_table("line-item"), **single_table("line_item")}

        with pytest.raises(SchemaBuildError, match="collide"):
            assembler.assemble(tables, "acme")

    def test_colliding_column_names(self, assembler):
        tables = {
            "Item": TableDescriptor(
                "Item",
                columns=[ColumnDescriptor("unit-price"), ColumnDescriptor("unit price")],
            )
        }

        with pytest.raises(SchemaBuildError, match="unit_price"):
            assembler.assemble(tables, "acme")

    def test_factory_failure_is_wrapped(self):
        def factory(tenant_id):
            raise RuntimeError("no connection")

        with pytest.raises(SchemaBuildError) as exc_info:
            TenantSchemaAssembler(factory).assemble(single_table(), "acme")

        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestGlobalSchema:
    """Test the schema spanning every tenant."""

    def test_exposes_one_field_per_tenant(self, assembler):
        registry = InMemoryTenantRegistry({"a": single_table(), "b": single_table()})

        unit = assembler.assemble_global(registry)

        assert unit.key == GLOBAL_KEY
        assert unit.tenant_ids == ("a", "b")
        assert unit.root_fields == ("a", "b")
        assert type_fields(unit, "Global") == ["a", "b"]

    def test_tenant_types_are_prefixed(self, assembler):
        registry = InMemoryTenantRegistry({"a": single_table(), "b": single_table("Other")})
        unit = assembler.assemble_global(registry)

        result = unit.schema.execute_sync("{ __typename }")
        assert result.data == {"__typename": "Global"}

        assert type_fields(unit, "Tenant__a") == ["item", "items"]
        assert type_fields(unit, "Tenant__b") == ["other", "others"]

    def test_tenants_without_tables_are_skipped(self, assembler):
        registry = InMemoryTenantRegistry({"a": single_table(), "empty": {}})

        unit = assembler.assemble_global(registry)

        assert unit.root_fields == ("a",)

    def test_no_tenants(self, assembler):
        with pytest.raises(SchemaBuildError, match="No tenants"):
            assembler.assemble_global(InMemoryTenantRegistry())

    def test_colliding_tenant_ids(self, assembler):
        registry = InMemoryTenantRegistry({"a-b": single_table(), "a_b": single_table()})

        with pytest.raises(SchemaBuildError, match="both map to field 'a_b'"):
            assembler.assemble_global(registry)


class TestTypeNameIsolation:
    """Type names stay distinct when names contain the separator character."""

    @pytest.mark.asyncio
    async def test_tenants_sharing_a_name_prefix(self):
        registry = InMemoryTenantRegistry({
            "a_b": {"C": TableDescriptor("C", [ColumnDescriptor("id", "INTEGER")])},
            "a": {"b_C": TableDescriptor("b_C", [ColumnDescriptor("name", "VARCHAR")])},
        })
        executor = RecordingExecutor([{"id": 7, "name": "ann"}])

        unit = TenantSchemaAssembler(lambda tenant_id: executor).assemble_global(registry)
        result = await unit.schema.execute("{ a { b_c { name } } a_b { c { id } } }")

        assert result.errors is None
        assert result.data == {"a": {"b_c": {"name": "ann"}}, "a_b": {"c": {"id": 7}}}
        assert type_fields(unit, "Tenant__a__b_0C") == ["name"]
        assert type_fields(unit, "Tenant__a_0b__C") == ["id"]

    def test_table_named_like_an_input_type(self, assembler):
        tables = {**single_table("Item"), **single_table("Item_WhereInput"), **single_table("Item__Where")}

        unit = assembler.assemble(tables, "acme")

        assert type_fields(unit, "Tenant__acme") == [
            "item", "item__where", "item__wheres", "item_whereinput", "item_whereinputs", "items"
        ]
        assert type_fields(unit, "Tenant__acme__Item_0_0Where") == ["id", "label"]

    def test_tenant_named_like_a_table_type(self, assembler):
        registry = InMemoryTenantRegistry({
            "acme": single_table("X"),
            "X": single_table(),
            "acme_X": single_table(),
        })

        unit = assembler.assemble_global(registry)

        assert unit.root_fields == ("acme", "X", "acme_X")
        assert type_fields(unit, "Tenant__acme__X") == ["id", "label"]
        assert type_fields(unit, "Tenant__acme_0X") == ["item", "items"]


NAME_ALPHABET = "ab_" * 4 + "AB9-. @é"
STORAGE_TYPES = ["INTEGER", "DOUBLE", "VARCHAR", "UUID"]


def random_name(rng, max_length=5):
    return "".join(rng.choice(NAME_ALPHABET) for _ in range(rng.randint(1, max_length)))


def random_tenant_ids(count=25, seed=1234):
    rng = random.Random(seed)
    return [random_name(rng, max_length=12) for _ in range(count)]


def random_tenants(seed, tenant_count=6):
    """
    Tenant -> table -> column name sets drawn from a small alphabet rich in
    ``_``. Candidates whose field names would clash are redrawn, so every
    set is a valid registry content.
    """
    rng = random.Random(seed)
    tenants = {}

    while len(tenants) < tenant_count:
        tenant_id = random_name(rng)
        taken = {to_graphql_name(t) for t in tenants}
        if tenant_id == GLOBAL_KEY or to_graphql_name(tenant_id) in taken:
            continue

        tables = {}
        for _ in range(rng.randint(1, 4)):
            table_name = random_name(rng)
            fields = root_field_names(list(tables) + [table_name])
            if table_name in tables or len(set(fields)) != len(fields):
                continue

            columns = []
            for _ in range(rng.randint(1, 4)):
                column_name = random_name(rng)
                if to_graphql_name(column_name) in {to_graphql_name(c.name) for c in columns}:
                    continue
                columns.append(ColumnDescriptor(column_name, rng.choice(STORAGE_TYPES)))

            tables[table_name] = TableDescriptor(table_name, columns)

        tenants[tenant_id] = tables

    return tenants


def field_types(unit, type_name):
    """GraphQL field name -> named type of every field of ``type_name``."""
    result = unit.schema.execute_sync(FIELD_TYPES_QUERY % type_name)
    assert result.errors is None
    return {
        f["name"]: f["type"]["name"] or f["type"]["ofType"]["name"]
        for f in result.data["__type"]["fields"]
    }


FIELD_TYPES_QUERY = '{ __type(name: "%s") { fields { name type { name ofType { name } } } } }'


class TestGeneratedNames:
    """Generated type names only use [A-Za-z0-9_] and never collide."""

    @pytest.mark.parametrize("tenant_id", random_tenant_ids() + ["__", "9-lives", "_@_x"])
    def test_type_names(self, assembler, tenant_id):
        unit = assembler.assemble(acme_tables(), tenant_id)
        result = unit.schema.execute_sync(ALL_TYPES_QUERY)

        assert result.errors is None
        generated = [
            t["name"] for t in result.data["__schema"]["types"]
            if t["name"].startswith(("Query__", tenant_prefix(tenant_id)))
        ]
        # Query root, tenant root, two entities with their where inputs, five column filters
        assert len(generated) == 11
        for name in generated:
            assert re.fullmatch(r"[A-Za-z0-9_]+", name), name
            assert not name.startswith("__")
        assert result.data["__schema"]["queryType"]["name"] == qualified_type_name("Query", tenant_id)

    @pytest.mark.parametrize("seed", range(20))
    def test_global_schema_keeps_every_source_name_apart(self, assembler, seed):
        tenants = random_tenants(seed)

        unit = assembler.assemble_global(InMemoryTenantRegistry(tenants))

        result = unit.schema.execute_sync(ALL_TYPES_QUERY)
        assert result.errors is None
        generated = {
            t["name"] for t in result.data["__schema"]["types"] if t["name"].startswith("Tenant__")
        }
        # One root per tenant, then an entity and a where input per table and a filter per column
        expected_count = sum(
            1 + sum(2 + len(table.columns) for table in tables.values())
            for tables in tenants.values()
        )
        assert len(generated) == expected_count

        # Follow each tenant's fields to its entity types, which must carry that table's columns
        global_fields = field_types(unit, "Global")
        assert set(global_fields) == {to_graphql_name(t) for t in tenants}

        for tenant_id, tables in tenants.items():
            tenant_fields = field_types(unit, global_fields[to_graphql_name(tenant_id)])
            for table_name, table in tables.items():
                entity_type = tenant_fields[entity_field_name(table_name)]
                assert entity_type in generated
                assert type_fields(unit, entity_type) == sorted(
                    to_graphql_name(column.name) for column in table.columns
                )


class TestLookupTables:
    def test_known_and_unknown(self):
        registry = InMemoryTenantRegistry({"a": single_table()})

        assert set(lookup_tables(registry, "a")) == {"Item"}
        assert lookup_tables(registry, "zzz") is None

    def test_key_error_means_unknown(self):
        class StrictRegistry:
            def tables(self, tenant_id):
                raise KeyError(tenant_id)

            def tenant_ids(self):
                return []

        assert lookup_tables(StrictRegistry(), "a") is None
