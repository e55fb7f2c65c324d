"""
Tests for the pomigrate CLI.

Commands run through typer's CliRunner with an isolated environment. The
target client is swapped for the in-memory FakeTargetClient.
"""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from pomigrate import __version__
from pomigrate.cli import app
from pomigrate.cli.errors import ExitCode, exit_code_for
from pomigrate.cli.load import open_source
from pomigrate.core.config import MigrationConfig
from pomigrate.core.exceptions import AuthError, ConfigurationError
from pomigrate.core.source import ODataSourceClient

runner = CliRunner()

TOKEN = "abcdefghijklmnopqrstuvwxyz"
PROJECT_ID = "5f3b6a0e-1c2d-4e5f-8a9b-0c1d2e3f4a5b"


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep setup_logging from rebinding root handlers to the runner's streams."""
    with patch("pomigrate.cli.load.setup_logging"):
        yield


@pytest.fixture
def configured(isolated_env, monkeypatch):
    """A valid token in the environment."""
    monkeypatch.setenv("SMARTSHEET_API_TOKEN", TOKEN)
    return isolated_env


@pytest.fixture
def patched_target(fake_target):
    """Route HttpTargetClient construction to the in-memory target."""
    with patch("pomigrate.cli.load.HttpTargetClient", return_value=fake_target) as client:
        yield client


class TestApp:
    """Test suite for the top-level app."""

    def test_version(self) -> None:
        """Test --version prints the version."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help(self) -> None:
        """Test every command is listed."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("load", "validate", "config"):
            assert command in result.output

    def test_exit_codes(self) -> None:
        """Test the error kind decides the exit code."""
        assert exit_code_for(ConfigurationError("x")) == ExitCode.USER_ERROR
        assert exit_code_for(AuthError("x")) == ExitCode.GENERAL_ERROR
        assert exit_code_for(KeyboardInterrupt()) == ExitCode.SIGINT


class TestConfigCommand:
    """Test suite for pomigrate config."""

    def test_shows_masked_token(self, configured) -> None:
        """Test the token is masked in the output."""
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "wxyz" in result.output
        assert TOKEN not in result.output
        assert "batch_size" in result.output

    def test_missing_token(self, isolated_env) -> None:
        """Test a missing token is a user error."""
        result = runner.invoke(app, ["config"])

        assert result.exit_code == ExitCode.USER_ERROR
        assert "SMARTSHEET_API_TOKEN" in result.output

    def test_reads_project_env_file(self, isolated_env) -> None:
        """Test the callback applies the project .env file."""
        (isolated_env / ".env").write_text(f"SMARTSHEET_API_TOKEN={TOKEN}\nBATCH_SIZE=25\n")

        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "25" in result.output


class TestValidateCommand:
    """Test suite for pomigrate validate."""

    def test_invalid_guid(self, configured) -> None:
        """Test a malformed project id is rejected before any work."""
        result = runner.invoke(app, ["validate", "--project-id", "not-a-guid"])

        assert result.exit_code == ExitCode.USER_ERROR
        assert "Invalid project id" in result.output

    def test_configuration_only(self, configured) -> None:
        """Test validate without a source only checks configuration."""
        result = runner.invoke(app, ["validate"])

        assert result.exit_code == 0
        assert "Configuration is valid" in result.output

    def test_configuration_missing(self, isolated_env) -> None:
        """Test a configuration problem fails validation."""
        result = runner.invoke(app, ["validate"])

        assert result.exit_code == ExitCode.GENERAL_ERROR
        assert "Configuration" in result.output

    def test_from_file(self, configured, export_file) -> None:
        """Test a clean export validates without errors."""
        result = runner.invoke(app, ["validate", "--from-file", str(export_file)])

        assert result.exit_code == 0
        assert "Apollo Program" in result.output
        assert "0 error(s)" in result.output

    def test_from_file_with_errors(self, configured, tmp_path) -> None:
        """Test entity errors are reported and fail the command."""
        path = tmp_path / "bad.json"
        path.write_text(
            '{"project": {"Id": "p1", "Name": "Broken"},'
            ' "tasks": [{"Id": "t1"}],'
            ' "assignments": [{"Id": "a1", "TaskId": "t1", "ResourceId": "ghost"}]}'
        )

        result = runner.invoke(app, ["validate", "--from-file", str(path)])

        assert result.exit_code == ExitCode.GENERAL_ERROR
        assert "Task Name is required" in result.output

    def test_missing_file(self, configured, tmp_path) -> None:
        """Test an unreadable source file is a user error."""
        result = runner.invoke(app, ["validate", "--from-file", str(tmp_path / "nope.json")])

        assert result.exit_code == ExitCode.USER_ERROR
        assert "not found" in result.output


class TestLoadCommand:
    """Test suite for pomigrate load."""

    def test_requires_source(self, configured) -> None:
        """Test a load without a project id or file is a user error."""
        result = runner.invoke(app, ["load"])

        assert result.exit_code == ExitCode.USER_ERROR
        assert "No project to load" in result.output

    def test_invalid_guid(self, configured) -> None:
        """Test a malformed project id is rejected."""
        result = runner.invoke(app, ["load", "--project-id", "1234"])

        assert result.exit_code == ExitCode.USER_ERROR

    def test_dry_run(self, configured, export_file, patched_target, fake_target) -> None:
        """Test a dry run reports success and writes nothing."""
        result = runner.invoke(app, ["load", "--from-file", str(export_file), "--dry-run"])

        assert result.exit_code == 0
        assert "Dry run" in result.output
        assert sum(fake_target.calls.values()) == 0

    def test_load_from_file(self, configured, export_file, patched_target, fake_target) -> None:
        """Test a full load into the in-memory target."""
        result = runner.invoke(app, ["load", "--from-file", str(export_file)])

        assert result.exit_code == 0
        assert "Load Statistics" in result.output
        assert fake_target.workspace_named("Apollo Program") is not None
        patched_target.assert_called_once()
        assert patched_target.call_args.args[0] == TOKEN

    def test_failed_stage_exit_code(
        self, configured, export_file, patched_target, fake_target
    ) -> None:
        """Test a failed stage prints the failure and exits 1."""
        fake_target.failures["add_columns"] = [AuthError("forbidden", status_code=403)]

        result = runner.invoke(app, ["load", "--from-file", str(export_file)])

        assert result.exit_code == ExitCode.GENERAL_ERROR
        assert "Ensure sheets failed" in result.output

    def test_api_source_needs_url(self, configured, patched_target) -> None:
        """Test loading from the API without PROJECT_ONLINE_URL is a user error."""
        result = runner.invoke(app, ["load", "--project-id", PROJECT_ID])

        assert result.exit_code == ExitCode.USER_ERROR
        assert "PROJECT_ONLINE_URL" in result.output

    def test_missing_token(self, isolated_env, export_file) -> None:
        """Test configuration errors exit with the user error code."""
        result = runner.invoke(app, ["load", "--from-file", str(export_file)])

        assert result.exit_code == ExitCode.USER_ERROR
        assert "SMARTSHEET_API_TOKEN" in result.output


class TestOpenSource:
    """Test suite for source selection."""

    @pytest.mark.asyncio
    async def test_api_source_uses_configured_retries(self) -> None:
        """Test OData reads retry with the policy built from configuration."""
        config = MigrationConfig(
            smartsheet_api_token=TOKEN,
            project_online_url="https://contoso.sharepoint.com/sites/pwa",
            max_retries=5,
            retry_delay_ms=250,
        )

        source = open_source(config, from_file=None)

        assert isinstance(source, ODataSourceClient)
        assert source._executor.policy.max_attempts == 6
        assert source._executor.policy.initial_delay == 0.25
        await source.aclose()
