"""Tests for the sfmc-cleanup CLI commands."""

from __future__ import annotations

import csv
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from sfmc_cleanup.cleanup.audit import AuditStorage
from sfmc_cleanup.cli.config import Config
from sfmc_cleanup.cli.main import app
from tests.fixtures.gateway import TENANT_ID, FakeGateway, create_sample_gateway, dependency_payload

TARGET = "Data Extensions/Archive"


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def env(tmp_path: Path) -> dict[str, str]:
    """Environment of a configured tenant backed by the in-memory gateway."""
    return {
        "SFMC_CLEANUP_HOME": str(tmp_path),
        "SFMC_CLEANUP_CONFIG": "",
        "SFMC_CLIENT_ID": "client",
        "SFMC_CLIENT_SECRET": "secret",
        "SFMC_ACCOUNT_ID": TENANT_ID,
        "SFMC_SUBDOMAIN": "mc1234567890",
        "SFMC_GATEWAY_FACTORY": "tests.fixtures.gateway:gateway_factory",
        "API_RATE_LIMIT_DELAY_MS": "0",
        "WEBHOOK_URL": "",
    }


@pytest.fixture
def gateway() -> FakeGateway:
    return create_sample_gateway()


@pytest.fixture
def patched_gateway(gateway: FakeGateway):
    """Route every command to one inspectable gateway."""
    with patch.object(Config, "create_gateway", return_value=gateway):
        yield gateway


class TestGlobalOptions:
    """Test suite for the app callback and simple commands."""

    def test_version(self, runner: CliRunner, env: dict) -> None:
        result = runner.invoke(app, ["version"], env=env)

        assert result.exit_code == 0
        assert "sfmc-cleanup version" in result.output

    def test_missing_config_file(self, runner: CliRunner, env: dict, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--config", str(tmp_path / "missing.yaml"), "version"], env=env)

        assert result.exit_code == 2
        assert "not found" in result.output

    def test_missing_credentials(self, runner: CliRunner, env: dict) -> None:
        env.update({"SFMC_CLIENT_ID": None, "SFMC_CLIENT_SECRET": None})

        result = runner.invoke(app, ["delete-data-extensions", "--folder", TARGET], env=env)

        assert result.exit_code == 2
        assert "SFMC_CLIENT_ID" in result.output


class TestDeleteDataExtensions:
    """Test suite for the delete-data-extensions command."""

    def test_dry_run(self, runner: CliRunner, env: dict) -> None:
        result = runner.invoke(app, ["delete-data-extensions", "--folder", TARGET], env=env)

        assert result.exit_code == 0
        assert "Dry run complete" in result.output

    def test_dry_run_deletes_nothing(self, runner: CliRunner, env: dict, patched_gateway: FakeGateway) -> None:
        result = runner.invoke(app, ["delete-data-extensions", "--folder", TARGET], env=env)

        assert result.exit_code == 0
        assert patched_gateway.delete_calls == 0

    def test_confirmed_deletion(self, runner: CliRunner, env: dict, patched_gateway: FakeGateway) -> None:
        result = runner.invoke(
            app,
            ["delete-data-extensions", "--folder", TARGET, "--confirm"],
            input="DELETE 5 DATA EXTENSION(S)\n",
            env=env,
        )

        assert result.exit_code == 0
        assert sorted(patched_gateway.deleted_data_extensions) == [
            "Campaign_Feb",
            "Campaign_Jan",
            "Newsletter_Old",
            "Promo_2023",
            "Promo_Q1",
        ]

    def test_wrong_phrase_aborts(self, runner: CliRunner, env: dict, patched_gateway: FakeGateway) -> None:
        result = runner.invoke(
            app,
            ["delete-data-extensions", "--folder", TARGET, "--confirm"],
            input="yes\n",
            env=env,
        )

        assert result.exit_code == 2
        assert "did not match" in result.output
        assert patched_gateway.delete_calls == 0

    def test_non_interactive_phrase(self, runner: CliRunner, env: dict, patched_gateway: FakeGateway) -> None:
        result = runner.invoke(
            app,
            [
                "delete-data-extensions",
                "--folder",
                TARGET,
                "--no-subfolders",
                "--confirm",
                "--non-interactive",
                "--confirm-phrase",
                "DELETE 3 DATA EXTENSION(S)",
            ],
            env=env,
        )

        assert result.exit_code == 0
        assert sorted(patched_gateway.deleted_data_extensions) == ["Campaign_Feb", "Campaign_Jan", "Newsletter_Old"]

    def test_non_interactive_requires_phrase(self, runner: CliRunner, env: dict) -> None:
        result = runner.invoke(
            app, ["delete-data-extensions", "--folder", TARGET, "--confirm", "--non-interactive"], env=env
        )

        assert result.exit_code == 2
        assert "--confirm-phrase" in result.output

    def test_interactive_and_non_interactive_conflict(self, runner: CliRunner, env: dict) -> None:
        result = runner.invoke(
            app, ["delete-data-extensions", "--folder", TARGET, "--interactive", "--non-interactive"], env=env
        )

        assert result.exit_code == 2

    def test_unknown_folder_suggests(self, runner: CliRunner, env: dict) -> None:
        result = runner.invoke(app, ["delete-data-extensions", "--folder", "Data Extensions/Archiv"], env=env)

        assert result.exit_code == 2
        assert "Did you mean" in result.output
        assert "Data Extensions/Archive" in result.output

    def test_invalid_date(self, runner: CliRunner, env: dict) -> None:
        result = runner.invoke(
            app, ["delete-data-extensions", "--folder", TARGET, "--created-before", "last tuesday"], env=env
        )

        assert result.exit_code == 2
        assert "Invalid date" in result.output

    def test_batch_size_above_maximum(self, runner: CliRunner, env: dict) -> None:
        result = runner.invoke(app, ["delete-data-extensions", "--folder", TARGET, "--batch-size", "100"], env=env)

        assert result.exit_code == 2
        assert "Batch size" in result.output

    def test_dependencies_abort(self, runner: CliRunner, env: dict, patched_gateway: FakeGateway) -> None:
        patched_gateway.dependents["Campaign_Jan"] = [dependency_payload("Automation", "a-1", "Nightly Import")]

        result = runner.invoke(app, ["delete-data-extensions", "--folder", TARGET], env=env)

        assert result.exit_code == 2
        assert "Nightly Import" in result.output

    def test_failed_deletion_exit_code(self, runner: CliRunner, env: dict, patched_gateway: FakeGateway) -> None:
        patched_gateway.delete_failures["Campaign_Jan"] = "Data extension is in use"

        result = runner.invoke(
            app,
            ["delete-data-extensions", "--folder", TARGET, "--confirm"],
            input="DELETE 5 DATA EXTENSION(S)\n",
            env=env,
        )

        assert result.exit_code == 1
        assert len(patched_gateway.deleted_data_extensions) == 4


class TestDeleteFolders:
    """Test suite for the delete-folders command."""

    def test_non_empty_without_force(self, runner: CliRunner, env: dict) -> None:
        result = runner.invoke(app, ["delete-folders", "--folder", TARGET], env=env)

        assert result.exit_code == 2
        assert "--force" in result.output

    def test_force_confirmed(self, runner: CliRunner, env: dict, patched_gateway: FakeGateway) -> None:
        result = runner.invoke(
            app,
            ["delete-folders", "--folder", TARGET, "--force", "--confirm"],
            input="DELETE 3 FOLDER(S)\n",
            env=env,
        )

        assert result.exit_code == 0
        assert patched_gateway.deleted_folders == [4, 3, 2]

    def test_protected_folder(self, runner: CliRunner, env: dict, patched_gateway: FakeGateway) -> None:
        result = runner.invoke(app, ["delete-folders", "--folder", "Data Extensions/System Data", "--force"], env=env)

        assert result.exit_code == 2
        assert "PROTECTED" in result.output
        assert patched_gateway.delete_calls == 0


class TestAnalyzeDependencies:
    """Test suite for the analyze-dependencies command."""

    def test_csv_export(
        self, runner: CliRunner, env: dict, patched_gateway: FakeGateway, tmp_path: Path
    ) -> None:
        patched_gateway.dependents["Campaign_Jan"] = [dependency_payload("Automation", "a-1", "Nightly Import")]
        output_file = tmp_path / "deps.csv"

        result = runner.invoke(
            app, ["analyze-dependencies", "--folder", "Archive", "--csv", str(output_file)], env=env
        )

        assert result.exit_code == 0
        with open(output_file, newline="") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 1
        assert rows[0]["name"] == "Nightly Import"
        assert rows[0]["data_extensions"] == "Campaign_Jan"

    def test_empty_folder(self, runner: CliRunner, env: dict, patched_gateway: FakeGateway) -> None:
        result = runner.invoke(app, ["analyze-dependencies", "--folder", "Shared Data Extensions"], env=env)

        assert result.exit_code == 0
        assert "No data extensions found" in result.output

    def test_unknown_folder(self, runner: CliRunner, env: dict) -> None:
        result = runner.invoke(app, ["analyze-dependencies", "--folder", "Nowhere"], env=env)

        assert result.exit_code == 2


class TestCacheCommands:
    """Test suite for the cache sub-commands."""

    def test_info_without_cache(self, runner: CliRunner, env: dict) -> None:
        result = runner.invoke(app, ["cache", "info"], env=env)

        assert result.exit_code == 0
        assert "No folder cache" in result.output

    def test_info_and_clear_after_run(self, runner: CliRunner, env: dict) -> None:
        runner.invoke(app, ["delete-data-extensions", "--folder", TARGET], env=env)

        info = runner.invoke(app, ["cache", "info"], env=env)
        cleared = runner.invoke(app, ["cache", "clear"], env=env)
        listed = runner.invoke(app, ["cache", "list"], env=env)

        assert info.exit_code == 0
        assert "Cache Files" in info.output
        assert "Cleared folder cache" in cleared.output
        assert "No cache files found" in listed.output

    def test_clear_all(self, runner: CliRunner, env: dict) -> None:
        result = runner.invoke(app, ["cache", "clear", "--all"], env=env)

        assert result.exit_code == 0
        assert "Removed 0 cache file(s)" in result.output


class TestAuditCommands:
    """Test suite for the audit sub-commands."""

    def test_list_and_show(self, runner: CliRunner, env: dict, tmp_path: Path) -> None:
        runner.invoke(app, ["delete-data-extensions", "--folder", TARGET], env=env)
        operations = AuditStorage(str(tmp_path / "audit")).query_operations()
        operation_id = operations[0]["operation"]["operation_id"]

        listed = runner.invoke(app, ["audit", "list"], env=env)
        shown = runner.invoke(app, ["audit", "show", operation_id], env=env)

        assert listed.exit_code == 0
        assert "Total operations: 1" in listed.output
        assert shown.exit_code == 0
        assert operation_id in shown.output

    def test_list_empty(self, runner: CliRunner, env: dict) -> None:
        result = runner.invoke(app, ["audit", "list"], env=env)

        assert result.exit_code == 0
        assert "No audit logs found" in result.output

    def test_show_unknown(self, runner: CliRunner, env: dict) -> None:
        result = runner.invoke(app, ["audit", "show", "op_missing"], env=env)

        assert result.exit_code == 1
