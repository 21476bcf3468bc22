"""
Unit tests for the influxdb-schema-updater CLI interface.
"""

from unittest.mock import AsyncMock, patch

import pytest
import yaml
from click.testing import CliRunner

from influxschema import __version__
from influxschema.cli import main
from influxschema.exceptions import DatabaseConnectionError
from influxschema.schema.reconciler import ExitCode
from tests.conftest import write_schema


@pytest.fixture
def runner():
    """Click test runner."""
    return CliRunner()


@pytest.fixture
def patched_client(fake_influx):
    """Route every InfluxDBClient the CLI builds to the fake instance."""
    with patch("influxschema.cli.InfluxDBClient") as client_cls:
        client_cls.from_config.return_value = fake_influx
        yield fake_influx


class TestCLIMain:
    """Test main CLI functionality."""

    def test_cli_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "influxdb-schema-updater" in result.output
        for command in ("apply", "diff", "validate", "test-connection", "init"):
            assert command in result.output

    def test_cli_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_config_file(self, runner, tmp_path):
        result = runner.invoke(main, ["--config", str(tmp_path / "missing.yaml"), "validate"])
        assert result.exit_code != 0


class TestValidateCommand:
    """Test validate command functionality."""

    def test_valid_schema(self, runner, schema_dir):
        result = runner.invoke(main, ["validate", "--schema-dir", str(schema_dir)])
        assert result.exit_code == 0
        assert "Schema files are valid" in result.output
        assert "telegraf" in result.output
        assert "metrics" in result.output

    def test_invalid_schema(self, runner, tmp_path):
        write_schema(tmp_path, db={"main": "CREATE DATABASE a\nCREATE DATABASE a\n"})
        result = runner.invoke(main, ["validate", "--schema-dir", str(tmp_path)])
        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "Duplicate database definition: a" in result.output

    def test_schema_dir_from_config_file(self, runner, schema_dir, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump({"schema_dir": str(schema_dir)}))
        result = runner.invoke(main, ["--config", str(config_path), "validate"])
        assert result.exit_code == 0
        assert "telegraf" in result.output


class TestDiffCommand:
    """Test diff command functionality."""

    def test_prints_plan(self, runner, schema_dir, patched_client):
        patched_client.add_database("legacy")

        result = runner.invoke(main, ["diff", "--schema-dir", str(schema_dir)])

        assert result.exit_code == 0
        assert '# DROP DATABASE "legacy"' in result.output
        assert 'CREATE DATABASE "telegraf"' in result.output
        assert patched_client.writes == []

    def test_force_uncomments_deletions(self, runner, schema_dir, patched_client):
        patched_client.add_database("legacy")

        result = runner.invoke(main, ["diff", "--schema-dir", str(schema_dir), "--force"])

        assert result.output.splitlines()[0] == 'DROP DATABASE "legacy"'

    def test_parse_error(self, runner, tmp_path, patched_client):
        write_schema(tmp_path, db={"main": "CREATE TABLE x"})
        result = runner.invoke(main, ["diff", "--schema-dir", str(tmp_path)])
        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert patched_client.statements == []


class TestApplyCommand:
    """Test apply command functionality."""

    def test_apply_success(self, runner, schema_dir, patched_client):
        result = runner.invoke(main, ["apply", "--schema-dir", str(schema_dir)])

        assert result.exit_code == ExitCode.SUCCESS
        assert '[create] CREATE DATABASE "metrics"' in result.output
        assert "telegraf" in patched_client.databases

    def test_apply_up_to_date(self, runner, schema_dir, patched_client):
        runner.invoke(main, ["apply", "--schema-dir", str(schema_dir)])
        result = runner.invoke(main, ["apply", "--schema-dir", str(schema_dir)])

        assert result.exit_code == ExitCode.SUCCESS
        assert "Schema is up to date" in result.output

    def test_apply_skips_deletions(self, runner, schema_dir, patched_client):
        patched_client.add_database("legacy")

        result = runner.invoke(main, ["apply", "--schema-dir", str(schema_dir)])

        assert result.exit_code == ExitCode.SKIPPED
        assert '[skip] DROP DATABASE "legacy"' in result.output
        assert "legacy" in patched_client.databases

    def test_apply_force(self, runner, schema_dir, patched_client):
        patched_client.add_database("legacy")

        result = runner.invoke(main, ["apply", "--schema-dir", str(schema_dir), "--force"])

        assert result.exit_code == ExitCode.SUCCESS
        assert "legacy" not in patched_client.databases

    def test_apply_dry_run(self, runner, schema_dir, patched_client):
        result = runner.invoke(main, ["apply", "--schema-dir", str(schema_dir), "--dryrun"])

        assert result.exit_code == ExitCode.SKIPPED
        assert "Dry run mode" in result.output
        assert patched_client.writes == []

    def test_apply_query_failure(self, runner, schema_dir, patched_client):
        patched_client.fail_on = "CREATE DATABASE"

        result = runner.invoke(main, ["apply", "--schema-dir", str(schema_dir)])

        assert result.exit_code == ExitCode.QUERY_FAILED
        assert "injected failure" in result.output

    def test_apply_connection_failure(self, runner, schema_dir, patched_client):
        patched_client.query = AsyncMock(side_effect=DatabaseConnectionError("Cannot connect"))

        result = runner.invoke(main, ["apply", "--schema-dir", str(schema_dir)])

        assert result.exit_code == ExitCode.QUERY_FAILED
        assert "Cannot connect" in result.output

    def test_diff_setting_in_config_file(self, runner, schema_dir, tmp_path, patched_client):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump({"schema_dir": str(schema_dir), "diff": True}))

        result = runner.invoke(main, ["--config", str(config_path), "apply"])

        assert result.exit_code == 0
        assert 'CREATE DATABASE "metrics"' in result.output
        assert patched_client.writes == []


class TestTestConnectionCommand:
    """Test test-connection command functionality."""

    def test_reachable(self, runner, patched_client):
        result = runner.invoke(main, ["test-connection", "--url", "http://influx:8086"])
        assert result.exit_code == 0
        assert "http://influx:8086" in result.output
        assert "1.8.10" in result.output

    def test_unreachable(self, runner, patched_client):
        patched_client.ping = AsyncMock(side_effect=DatabaseConnectionError("Cannot connect to InfluxDB"))
        result = runner.invoke(main, ["test-connection"])
        assert result.exit_code == ExitCode.QUERY_FAILED
        assert "Cannot connect to InfluxDB" in result.output

    def test_invalid_url(self, runner):
        result = runner.invoke(main, ["test-connection", "--url", "influx:8086"])
        assert result.exit_code == ExitCode.CONFIG_ERROR


class TestInitCommand:
    """Test init command functionality."""

    def test_init_default_output(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["init"])
            assert result.exit_code == 0
            assert "Configuration file created: influxdb-schema-updater.yaml" in result.output
            with open("influxdb-schema-updater.yaml") as f:
                data = yaml.safe_load(f)
            assert data["url"] == "http://localhost:8086"
            assert data["password"] == "${INFLUXDB_PASSWORD}"

    def test_init_custom_output(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["init", "-o", "custom.yaml"])
            assert result.exit_code == 0
            assert "Configuration file created: custom.yaml" in result.output

    @patch("influxschema.cli.click.confirm")
    def test_init_file_exists_no_overwrite(self, mock_confirm, runner):
        mock_confirm.return_value = False

        with runner.isolated_filesystem():
            with open("custom.yaml", "w") as f:
                f.write("existing content")

            result = runner.invoke(main, ["init", "-o", "custom.yaml"])
            assert result.exit_code == 0
            with open("custom.yaml") as f:
                assert f.read() == "existing content"
