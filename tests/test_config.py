"""Tests for configuration models, loading and layered .env files."""

import logging
import os

import pytest

from pomigrate.core.config import (
    MigrationConfig,
    load_config,
    load_layered_env,
    read_env,
    user_env_path,
)
from pomigrate.core.exceptions import ConfigurationError
from pomigrate.core.strategy import SolutionType

TOKEN = "abcdefghijklmnopqrstuvwxyz"


def _env(**overrides: str) -> dict[str, str]:
    return {"SMARTSHEET_API_TOKEN": TOKEN, **overrides}


class TestMigrationConfig:
    """Test suite for MigrationConfig."""

    def test_defaults(self) -> None:
        """Test default values."""
        config = load_config(environ=_env())

        assert config.batch_size == 100
        assert config.max_retries == 3
        assert config.retry_delay_ms == 1000
        assert config.rate_limit_per_minute == 300
        assert config.solution_type == SolutionType.STANDALONE
        assert config.log_level == "INFO"
        assert config.template_workspace_id is None
        assert config.dry_run is False

    def test_all_variables(self) -> None:
        """Test every recognized variable is applied."""
        config = load_config(
            environ=_env(
                PMO_STANDARDS_WORKSPACE_ID="111",
                TEMPLATE_WORKSPACE_ID="0",
                SOLUTION_TYPE="standalone",
                PROJECT_ONLINE_URL="https://contoso.sharepoint.com/sites/pwa",
                LOG_LEVEL="debug",
                BATCH_SIZE="50",
                MAX_RETRIES="5",
                RETRY_DELAY="250",
                RATE_LIMIT_PER_MINUTE="120",
                DRY_RUN="yes",
            )
        )

        assert config.pmo_standards_workspace_id == 111
        assert config.template_workspace_id == 0
        assert config.log_level == "DEBUG"
        assert config.batch_size == 50
        assert config.dry_run is True
        assert config.project_online_url.endswith("/pwa")

    def test_retry_policy(self) -> None:
        """Test retries map to attempts and milliseconds to seconds."""
        policy = load_config(environ=_env(MAX_RETRIES="2", RETRY_DELAY="500")).retry_policy()

        assert policy.max_attempts == 3
        assert policy.initial_delay == 0.5

    def test_masked_token(self) -> None:
        """Test only the last four characters are shown."""
        config = MigrationConfig(smartsheet_api_token=TOKEN)

        assert config.masked_token() == "*" * 22 + "wxyz"
        assert MigrationConfig(smartsheet_api_token="abc").masked_token() == "***"

    def test_token_format_warning(self, caplog) -> None:
        """Test a token of the wrong shape warns but is accepted."""
        with caplog.at_level(logging.WARNING):
            config = MigrationConfig(smartsheet_api_token="short-token")

        assert config.smartsheet_api_token == "short-token"
        assert "does not look like" in caplog.text

    def test_validate_assignment(self) -> None:
        """Test assignments are validated too."""
        config = MigrationConfig(smartsheet_api_token=TOKEN)
        with pytest.raises(ValueError):
            config.batch_size = 0


class TestLoadConfig:
    """Test suite for load_config error reporting."""

    def test_missing_token(self) -> None:
        """Test the token is required."""
        with pytest.raises(ConfigurationError, match="SMARTSHEET_API_TOKEN is required"):
            load_config(environ={})

    def test_blank_token(self) -> None:
        """Test a blank token counts as missing."""
        with pytest.raises(ConfigurationError, match="SMARTSHEET_API_TOKEN"):
            load_config(environ={"SMARTSHEET_API_TOKEN": "   "})

    @pytest.mark.parametrize(
        "key,raw",
        [
            ("BATCH_SIZE", "lots"),
            ("MAX_RETRIES", "3.5"),
            ("DRY_RUN", "maybe"),
            ("BATCH_SIZE", "0"),
            ("RATE_LIMIT_PER_MINUTE", "-1"),
            ("TEMPLATE_WORKSPACE_ID", "-3"),
            ("LOG_LEVEL", "LOUD"),
        ],
    )
    def test_bad_values_name_the_variable(self, key: str, raw: str) -> None:
        """Test malformed or out-of-range values name their variable."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(environ=_env(**{key: raw}))

        assert key in str(exc_info.value)
        assert exc_info.value.context["setting"] == key

    def test_unknown_solution_type(self) -> None:
        """Test an unknown solution type lists the valid ones."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(environ=_env(SOLUTION_TYPE="Galaxy"))

        assert "StandaloneWorkspaces" in exc_info.value.hint

    def test_blank_values_are_unset(self) -> None:
        """Test empty variables fall back to defaults."""
        assert read_env({"BATCH_SIZE": "", "LOG_FILE": "  ", "DRY_RUN": ""}) == {
            "dry_run": False
        }

    def test_cache(self) -> None:
        """Test the cached config is reused until bypassed."""
        first = load_config(environ=_env(BATCH_SIZE="10"))

        assert load_config(environ=_env(BATCH_SIZE="20")) is first
        assert load_config(use_cache=False, environ=_env(BATCH_SIZE="20")).batch_size == 20


class TestLayeredEnv:
    """Test suite for load_layered_env."""

    def test_user_env_path_honors_xdg(self, isolated_env) -> None:
        """Test the user file lives under XDG_CONFIG_HOME."""
        assert user_env_path() == isolated_env / "xdg" / "pomigrate" / ".env"

    def test_precedence(self, isolated_env, monkeypatch) -> None:
        """Test shell > project .env.local > project .env > user .env."""
        user_file = user_env_path()
        user_file.parent.mkdir(parents=True)
        user_file.write_text(
            f"SMARTSHEET_API_TOKEN={TOKEN}\nBATCH_SIZE=10\nMAX_RETRIES=1\nLOG_LEVEL=DEBUG\n"
        )
        (isolated_env / ".env").write_text("BATCH_SIZE=20\nMAX_RETRIES=2\n")
        (isolated_env / ".env.local").write_text("MAX_RETRIES=4\n")
        monkeypatch.setenv("LOG_LEVEL", "ERROR")

        loaded = load_layered_env()

        assert loaded == [user_file, isolated_env / ".env", isolated_env / ".env.local"]
        assert os.environ["SMARTSHEET_API_TOKEN"] == TOKEN
        assert os.environ["BATCH_SIZE"] == "20"
        assert os.environ["MAX_RETRIES"] == "4"
        assert os.environ["LOG_LEVEL"] == "ERROR"

        config = load_config()
        assert (config.batch_size, config.max_retries, config.log_level) == (20, 4, "ERROR")

    def test_missing_files(self, isolated_env) -> None:
        """Test nothing is loaded when no files exist."""
        assert load_layered_env() == []

    def test_explicit_paths(self, isolated_env) -> None:
        """Test explicit file lists replace the defaults, later files winning."""
        (isolated_env / ".env").write_text("BATCH_SIZE=99\n")
        defaults = isolated_env / "defaults.env"
        defaults.write_text(f"SMARTSHEET_API_TOKEN={TOKEN}\nBATCH_SIZE=10\n")
        team = isolated_env / "team.env"
        team.write_text("BATCH_SIZE=30\n")

        loaded = load_layered_env(user_env_paths=[defaults], project_env_paths=[team])

        assert loaded == [defaults, team]
        assert os.environ["SMARTSHEET_API_TOKEN"] == TOKEN
        assert os.environ["BATCH_SIZE"] == "30"
