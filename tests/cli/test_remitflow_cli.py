"""End-to-end tests of the remitflow CLI against a temporary SQLite store."""

import pytest
from typer.testing import CliRunner

from remitflow import __version__
from remitflow.cli.main import app

runner = CliRunner()

pytestmark = pytest.mark.integration


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at a fresh database file."""
    monkeypatch.setenv("REMITFLOW_DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("REMITFLOW_DEV_MODE", "false")
    monkeypatch.setattr("remitflow.utils.config._settings", None)
    return tmp_path


def invoke(*args):
    return runner.invoke(app, list(args))


def _add_type():
    return invoke(
        "types", "add",
        "--name", "Cash Havana",
        "--currency", "usd",
        "--delivery-currency", "cup",
        "--rate", "320",
        "--min", "10",
        "--max", "1000",
        "--commission-pct", "2.5",
    )  # fmt: skip


def _create_order(amount="100"):
    return invoke(
        "orders", "create",
        "--actor", "user-1",
        "--type", "1",
        "--amount", amount,
        "--recipient-name", "Maria Perez",
        "--recipient-phone", "+53 5 1234567",
    )  # fmt: skip


def test_version():
    result = invoke("--version")

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_db_init(cli_env):
    result = invoke("db", "init")

    assert result.exit_code == 0
    assert "orders" in result.stdout
    assert "order_audit_entries" in result.stdout


class TestTypesCommands:
    def test_add_and_list(self, cli_env):
        result = _add_type()
        assert result.exit_code == 0, result.stdout
        assert "Remittance type 1 created" in result.stdout

        result = invoke("types", "list")
        assert result.exit_code == 0
        assert "Cash Havana" in result.stdout
        assert "USD" in result.stdout

    def test_invalid_type_is_reported(self, cli_env):
        result = invoke(
            "types", "add",
            "--name", "Broken",
            "--currency", "USD",
            "--delivery-currency", "CUP",
            "--rate", "0",
            "--min", "10",
        )  # fmt: skip

        assert result.exit_code == 1
        assert "Invalid remittance type" in result.stdout

    def test_deactivate(self, cli_env):
        _add_type()

        result = invoke("types", "deactivate", "1")
        assert result.exit_code == 0

        result = _create_order()
        assert result.exit_code == 1
        assert "not accepting new orders" in result.stdout


class TestOrderCommands:
    def test_quote(self, cli_env):
        _add_type()

        result = invoke("orders", "quote", "1", "100")

        assert result.exit_code == 0
        assert "2.50" in result.stdout
        assert "31200.00" in result.stdout

    def test_amount_out_of_range(self, cli_env):
        _add_type()

        result = _create_order("5")

        assert result.exit_code == 1
        assert "between 10" in result.stdout

    def test_lifecycle(self, cli_env):
        _add_type()
        result = _create_order()
        assert result.exit_code == 0, result.stdout
        assert "REM-" in result.stdout

        result = invoke("orders", "upload-proof", "1", "--proof", "p1.jpg", "--actor", "user-1")
        assert result.exit_code == 0, result.stdout
        assert "proof_uploaded" in result.stdout

        result = invoke("orders", "validate", "1", "--actor", "admin-1")
        assert result.exit_code == 0, result.stdout

        result = invoke("orders", "start", "1", "--actor", "admin-1")
        assert result.exit_code == 0, result.stdout

        result = invoke(
            "orders", "deliver", "1",
            "--proof", "d1.jpg",
            "--received-by", "Maria Perez",
            "--received-id", "85010112345",
            "--actor", "admin-1",
        )  # fmt: skip
        assert result.exit_code == 0, result.stdout

        result = invoke("orders", "complete", "1", "--actor", "admin-1")
        assert result.exit_code == 0, result.stdout
        assert "completed" in result.stdout

        result = invoke("orders", "show", "1")
        assert result.exit_code == 0
        assert "d1.jpg" in result.stdout

        result = invoke("orders", "audit", "1")
        assert result.exit_code == 0
        assert "admin-1" in result.stdout

        result = invoke("integrity", "check")
        assert result.exit_code == 0
        assert "1 order(s) consistent" in result.stdout

        result = invoke("stats")
        assert result.exit_code == 0
        assert "Orders: 1" in result.stdout

    def test_stale_expected_status(self, cli_env):
        _add_type()
        _create_order()
        invoke("orders", "upload-proof", "1", "--proof", "p1.jpg", "--actor", "user-1")

        result = invoke("orders", "validate", "1", "--actor", "admin-1", "--expected", "created")

        assert result.exit_code == 1
        assert "please refresh" in result.stdout
        assert "stale_state" in result.stdout

    def test_unauthorized_sender(self, cli_env):
        _add_type()
        _create_order()
        invoke("orders", "upload-proof", "1", "--proof", "p1.jpg", "--actor", "user-1")

        result = invoke("orders", "validate", "1", "--actor", "user-1", "--role", "sender")

        assert result.exit_code == 1
        assert "not authorized" in result.stdout

    def test_missing_reason(self, cli_env):
        _add_type()
        _create_order()

        result = invoke("orders", "cancel", "1", "--actor", "user-1", "--reason", " ")

        assert result.exit_code == 1
        assert "missing_required_field" in result.stdout

    def test_list_by_owner(self, cli_env):
        _add_type()
        _create_order()

        result = invoke("orders", "list", "--owner", "user-2")
        assert "No orders found" in result.stdout

        result = invoke("orders", "list", "--owner", "user-1")
        assert "Maria Perez" in result.stdout

    def test_unknown_order(self, cli_env):
        result = invoke("orders", "show", "99")

        assert result.exit_code == 1
        assert "Order 99 not found" in result.stdout


def test_alert_scan_without_orders(cli_env):
    result = invoke("alerts", "scan")

    assert result.exit_code == 0
    assert "within their SLA" in result.stdout
