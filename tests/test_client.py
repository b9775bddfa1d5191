"""Tests for clients and their commands."""

import pytest

from ledgerlink.cli.main import cli
from ledgerlink.domain.errors import ConflictError, NotFoundError, ValidationError


def test_create_and_get_client(client_service):
    client_id = client_service.create_client("  Globex Ltd ")

    client = client_service.get_client(client_id)
    assert client.name == "Globex Ltd"
    assert client_service.require_client(client_id) == client


def test_client_name_required(client_service):
    with pytest.raises(ValidationError):
        client_service.create_client("   ")


def test_duplicate_client_name(client_service, sample_client):
    with pytest.raises(ConflictError):
        client_service.create_client("ACME HOLDINGS")


def test_require_missing_client(client_service):
    assert client_service.get_client(42) is None
    with pytest.raises(NotFoundError):
        client_service.require_client(42)


def test_list_clients_sorted_by_name(client_service):
    client_service.create_client("Zeta")
    client_service.create_client("Alpha")

    assert [c.name for c in client_service.list_clients()] == ["Alpha", "Zeta"]


def test_client_create_command(cli_runner, temp_db):
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "client", "create", "Initech"])

    assert result.exit_code == 0
    assert "Created client 'Initech'" in result.output


def test_client_create_duplicate_command(cli_runner, temp_db, sample_client):
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "client", "create", "Acme Holdings"]
    )

    assert result.exit_code == 1
    assert "already exists" in result.output


def test_client_list_command(cli_runner, temp_db, sample_client):
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "client", "list"])

    assert result.exit_code == 0
    assert "Acme Holdings" in result.output


def test_client_list_empty(cli_runner, temp_db):
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "client", "list"])

    assert result.exit_code == 0
    assert "No clients found" in result.output


def test_help_does_not_need_database(cli_runner, tmp_path):
    db_path = tmp_path / "never.db"

    result = cli_runner.invoke(cli, ["--db-path", str(db_path), "--help"])

    assert result.exit_code == 0
    assert "general-ledger import" in result.output
    assert not db_path.exists()


def test_bad_environment_setting_is_reported(cli_runner, temp_db, monkeypatch):
    monkeypatch.setenv("LEDGERLINK_FUZZY_FLOOR", "high")

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "client", "list"])

    assert result.exit_code == 1
    assert "LEDGERLINK_FUZZY_FLOOR must be an integer" in result.output
