"""Tests for the command line interface."""

from unittest.mock import patch

import duckdb
import pytest
from click.testing import CliRunner

from tenantql.cli import cli

from .tenant_fixtures import create_invoice_database


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def databases(tmp_path):
    """Two tenant database files, acme and globex."""
    acme = tmp_path / "acme.duckdb"
    create_invoice_database(str(acme)).close()

    globex = tmp_path / "globex.duckdb"
    conn = duckdb.connect(str(globex))
    conn.execute("CREATE TABLE shipment (id INTEGER, destination VARCHAR)")
    conn.close()

    return [str(acme), str(globex)]


class TestTenantsCommand:
    def test_lists_tenants_and_tables(self, runner, databases):
        result = runner.invoke(cli, ["tenants", *databases])

        assert result.exit_code == 0
        assert "acme" in result.output
        assert "Invoice (3 columns)" in result.output
        assert "globex" in result.output
        assert "shipment (2 columns)" in result.output

    def test_requires_a_database(self, runner):
        result = runner.invoke(cli, ["tenants"])
        assert result.exit_code != 0

    def test_duplicate_tenant_names(self, runner, databases, tmp_path):
        other = tmp_path / "nested"
        other.mkdir()
        duplicate = other / "acme.duckdb"
        create_invoice_database(str(duplicate)).close()

        result = runner.invoke(cli, ["tenants", databases[0], str(duplicate)])

        assert result.exit_code != 0
        assert "already registered" in result.output


class TestSchemaCommand:
    def test_first_tenant_by_default(self, runner, databases):
        result = runner.invoke(cli, ["schema", *databases])

        assert result.exit_code == 0
        assert "type Query__acme" in result.output
        assert "type Tenant__acme__Invoice" in result.output
        assert "Tenant__globex" not in result.output

    def test_selected_tenant(self, runner, databases):
        result = runner.invoke(cli, ["schema", *databases, "--tenant", "globex"])

        assert result.exit_code == 0
        assert "type Tenant__globex__shipment" in result.output

    def test_global(self, runner, databases):
        result = runner.invoke(cli, ["schema", *databases, "--global"])

        assert result.exit_code == 0
        assert "type Global" in result.output
        assert "Tenant__acme__Invoice" in result.output
        assert "Tenant__globex__shipment" in result.output

    def test_unknown_tenant(self, runner, databases):
        result = runner.invoke(cli, ["schema", *databases, "--tenant", "ghost"])

        assert result.exit_code != 0
        assert "TENANT_NOT_FOUND" in result.output


class TestServeCommand:
    def test_serve_options(self, runner, databases):
        with patch("tenantql.cli.TenantQL.serve") as serve:
            result = runner.invoke(cli, [
                "serve", *databases,
                "--host", "127.0.0.1",
                "--port", "9000",
                "--path", "/api",
                "--global-path", "/all",
                "--no-debug",
            ])

        assert result.exit_code == 0, result.output
        assert "Tenants: acme, globex" in result.output
        serve.assert_called_once_with(host="127.0.0.1", port=9000, path="/api", global_path="/all", debug=False)

    def test_serve_configuration(self, runner, databases):
        with patch("tenantql.cli.TenantQL") as tenantql_class:
            result = runner.invoke(cli, [
                "serve", *databases,
                "--cache-size", "5",
                "--disable-metrics",
                "--no-debug",
            ])

        assert result.exit_code == 0, result.output
        kwargs = tenantql_class.call_args.kwargs
        assert kwargs["cache_size"] == 5
        assert kwargs["enable_metrics"] is False
        assert "Metrics endpoint" not in result.output
