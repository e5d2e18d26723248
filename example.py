"""Example usage of TenantQL with two DuckDB tenants."""

import duckdb
from tenantql import TenantQL
from tenantql.backends import DuckDBTenantRegistry
from tenantql.server import header_tenant_resolver


# Create one in-memory database per tenant
def create_tenant_databases():
    acme = duckdb.connect(":memory:")
    acme.execute("""
        CREATE TABLE "User" (
            id INTEGER,
            name VARCHAR
        )
    """)
    acme.execute("""
        CREATE TABLE "Invoice" (
            id INTEGER,
            total DOUBLE,
            "userId" INTEGER
        )
    """)
    acme.execute("INSERT INTO \"User\" VALUES (1, 'Ann'), (2, 'Bob')")
    acme.execute("INSERT INTO \"Invoice\" VALUES (1, 10.0, 1), (2, 3.5, 2), (3, 42.0, 1)")

    globex = duckdb.connect(":memory:")
    globex.execute("""
        CREATE TABLE shipment (
            id VARCHAR,
            destination VARCHAR,
            weight_kg DOUBLE
        )
    """)
    globex.execute("""
        INSERT INTO shipment VALUES
        ('s-001', 'Rotterdam', 1200.5),
        ('s-002', 'Singapore', 830.0)
    """)

    return acme, globex


def main():
    print("🏢 Creating tenant databases...")
    acme, globex = create_tenant_databases()

    registry = DuckDBTenantRegistry()
    registry.add_database("acme", acme)
    registry.add_database("globex", globex)

    print("🚀 Initializing TenantQL server...")
    server = TenantQL(
        registry,
        executor_factory=registry.executor_for,
        tenant_resolver=header_tenant_resolver("x-tenant-id")
    )

    print("\n📊 Endpoints:")
    print("  - /graphql: schema of the tenant named in the x-tenant-id header")
    print("  - /global: every tenant under its own root field")

    print("\n🎯 Example GraphQL queries to try:")
    print("""
1. Large invoices of tenant acme (header x-tenant-id: acme):
   query {
     acme {
       invoices(where: { total: { gte: 10 } }, limit: 10) {
         id
         total
       }
     }
   }

2. Shipments to Singapore across tenants (POST /global):
   query {
     globex {
       shipments(where: { destination: { startsWith: "Sing" } }) {
         id
         weight_kg
       }
     }
   }
    """)

    print("\n🚀 Starting GraphQL server...")
    server.serve(port=8000)


if __name__ == "__main__":
    main()
