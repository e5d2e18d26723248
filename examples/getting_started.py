"""
Getting Started with TenantQL

This example builds tenant schemas from plain table descriptions and
queries them without any database or HTTP server.
"""

import asyncio

from tenantql import TenantQL, InMemoryTenantRegistry


TENANTS = {
    "acme": {
        "User": {"columns": {"id": "INTEGER", "name": "VARCHAR"}},
        "Invoice": {
            "columns": {"id": "INTEGER", "total": "DOUBLE", "userId": "INTEGER"},
            "relations": {"user": "User"},
        },
    },
    "globex-eu": {
        "Shipment": {"columns": {"id": "VARCHAR", "destination": "VARCHAR"}},
    },
}

ROWS = {
    "User": [{"id": 1, "name": "Ann"}, {"id": 2, "name": "Bob"}],
    "Invoice": [
        {"id": 1, "total": 10.0, "userId": 1, "user": {"id": 1, "name": "Ann"}},
        {"id": 2, "total": 3.5, "userId": 2, "user": {"id": 2, "name": "Bob"}},
    ],
    "Shipment": [{"id": "s-001", "destination": "Rotterdam"}],
}


class ListExecutor:
    """Answers lookups from in-memory rows, honoring eq/gt filters and limit."""

    def query(self, table_name, where, options):
        rows = ROWS.get(table_name, [])
        for column, operators in where.items():
            for operator, operand in operators.items():
                if operator == "eq":
                    rows = [r for r in rows if r.get(column) == operand]
                elif operator == "gt":
                    rows = [r for r in rows if r.get(column) is not None and r[column] > operand]
        if "limit" in options:
            rows = rows[:options["limit"]]
        return rows


async def main():
    """Basic TenantQL usage example."""
    print("🏢 Getting Started with TenantQL\n")

    registry = InMemoryTenantRegistry.from_dict(TENANTS)
    server = TenantQL(registry, executor=ListExecutor())

    print("✅ Tenant schemas are built on first use")
    print("\nSDL of tenant acme:\n")
    print(server.get_tenant_schema("acme").as_str())

    print("\n1. Invoices above 5 with their user:")
    result = await server.execute(
        "{ acme { invoices(where: {total: {gt: 5}}) { id total users { name } } } }",
        tenant_id="acme"
    )
    print(result.data)

    print("\n2. A tenant id with a dash is exposed as globex_eu:")
    result = await server.execute_global("{ globex_eu { shipment { id destination } } }")
    print(result.data)

    print("\n📈 Cache statistics:")
    print(server.get_stats()["cache"])


if __name__ == "__main__":
    asyncio.run(main())
