"""
Configuration data model for pomigrate.

Every setting comes from an environment variable (after the layered .env
files are applied), validated and typed via Pydantic.
"""

import logging
import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pomigrate.core.retry import RetryPolicy
from pomigrate.core.strategy import DEFAULT_TEMPLATE_NAME, SolutionType

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9]{26}$")


class MigrationConfig(BaseModel):
    """
    Settings for one migration run.

    Example:
        >>> config = MigrationConfig(smartsheet_api_token="abc123...")
        >>> config.batch_size
        100
        >>> config.retry_policy().max_attempts
        4
    """

    model_config = ConfigDict(validate_assignment=True)

    smartsheet_api_token: str = Field(
        min_length=1,
        description="Target API token (SMARTSHEET_API_TOKEN)"
    )
    pmo_standards_workspace_id: int | None = Field(
        default=None,
        gt=0,
        description="Existing standards workspace to reuse (PMO_STANDARDS_WORKSPACE_ID)"
    )
    template_workspace_id: int | None = Field(
        default=None,
        ge=0,
        description="Template workspace to copy; 0 creates blank workspaces"
    )
    template_workspace_name: str = Field(
        default=DEFAULT_TEMPLATE_NAME,
        description="Name of the template workspace to wait for"
    )
    template_distribution_url: str | None = Field(
        default=None,
        description="Link the user opens to add the template to their account"
    )
    solution_type: SolutionType = Field(
        default=SolutionType.STANDALONE,
        description="How project workspaces are organized (SOLUTION_TYPE)"
    )
    project_online_url: str | None = Field(
        default=None,
        description="Project Online site URL (PROJECT_ONLINE_URL)"
    )
    project_online_access_token: str | None = Field(
        default=None,
        description="OAuth bearer token for the OData API"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level (LOG_LEVEL)"
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file in addition to stderr (LOG_FILE)"
    )
    batch_size: int = Field(
        default=100,
        gt=0,
        description="Rows per add-rows request (BATCH_SIZE)"
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries after the first attempt (MAX_RETRIES)"
    )
    retry_delay_ms: int = Field(
        default=1000,
        gt=0,
        description="Initial retry delay in milliseconds (RETRY_DELAY)"
    )
    rate_limit_per_minute: int = Field(
        default=300,
        gt=0,
        description="Client-side request ceiling per 60s window"
    )
    dry_run: bool = Field(
        default=False,
        description="Validate and transform without writing (DRY_RUN)"
    )

    @field_validator("solution_type", mode="before")
    @classmethod
    def parse_solution_type(cls, v: object) -> SolutionType:
        if isinstance(v, (SolutionType, str)):
            return SolutionType.parse(v)
        raise ValueError(f"Invalid solution type: {v!r}")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("smartsheet_api_token")
    @classmethod
    def check_token_format(cls, v: str) -> str:
        v = v.strip()
        if v and not TOKEN_PATTERN.match(v):
            logger.warning("SMARTSHEET_API_TOKEN does not look like a 26-character API token")
        return v

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_retries + 1,
            initial_delay=self.retry_delay_ms / 1000,
        )

    def masked_token(self) -> str:
        """The API token with everything but the last four characters hidden."""
        token = self.smartsheet_api_token
        if len(token) <= 4:
            return "*" * len(token)
        return "*" * (len(token) - 4) + token[-4:]


__all__ = ["MigrationConfig"]
