"""
Configuration loading from the environment.

Precedence (highest first): exported env vars > project .env > user .env >
defaults. The .env layers are applied by ``load_layered_env``; this module
only reads os.environ, converts each variable and validates the result.
"""

import logging
import os
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from pomigrate.core.exceptions import ConfigurationError

from .models import MigrationConfig

logger = logging.getLogger(__name__)

# Global cache to avoid re-reading the environment per command
_config_cache: MigrationConfig | None = None

TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off", "")


def parse_int(key: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigurationError.for_setting(key, f"must be an integer, got '{raw}'") from None


def parse_bool(key: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ConfigurationError.for_setting(key, f"must be true or false, got '{raw}'")


def parse_str(key: str, raw: str) -> str | None:
    return raw.strip() or None


# Environment variable -> (MigrationConfig field, converter)
ENV_VARS: dict[str, tuple[str, Callable[[str, str], Any]]] = {
    "SMARTSHEET_API_TOKEN": ("smartsheet_api_token", parse_str),
    "PMO_STANDARDS_WORKSPACE_ID": ("pmo_standards_workspace_id", parse_int),
    "TEMPLATE_WORKSPACE_ID": ("template_workspace_id", parse_int),
    "TEMPLATE_WORKSPACE_NAME": ("template_workspace_name", parse_str),
    "TEMPLATE_DISTRIBUTION_URL": ("template_distribution_url", parse_str),
    "SOLUTION_TYPE": ("solution_type", parse_str),
    "PROJECT_ONLINE_URL": ("project_online_url", parse_str),
    "PROJECT_ONLINE_ACCESS_TOKEN": ("project_online_access_token", parse_str),
    "LOG_LEVEL": ("log_level", parse_str),
    "LOG_FILE": ("log_file", parse_str),
    "BATCH_SIZE": ("batch_size", parse_int),
    "MAX_RETRIES": ("max_retries", parse_int),
    "RETRY_DELAY": ("retry_delay_ms", parse_int),
    "RATE_LIMIT_PER_MINUTE": ("rate_limit_per_minute", parse_int),
    "DRY_RUN": ("dry_run", parse_bool),
}

FIELD_TO_ENV = {field: key for key, (field, _) in ENV_VARS.items()}


def read_env(environ: Mapping[str, str]) -> dict[str, Any]:
    """
    Convert the recognized environment variables to model fields.

    Blank values are treated as unset.

    Raises:
        ConfigurationError: If a number or boolean cannot be parsed
    """
    values: dict[str, Any] = {}
    for key, (field, convert) in ENV_VARS.items():
        raw = environ.get(key)
        if raw is None or (not raw.strip() and convert is not parse_bool):
            continue
        value = convert(key, raw)
        if value is not None:
            values[field] = value
    return values


def load_config(
    use_cache: bool = True, environ: Mapping[str, str] | None = None
) -> MigrationConfig:
    """
    Load and validate configuration.

    Args:
        use_cache: If True, return the config from a previous load
        environ: Variables to read (defaults to os.environ)

    Returns:
        Validated MigrationConfig

    Raises:
        ConfigurationError: For missing, malformed or out-of-range settings

    Example:
        >>> config = load_config()
        >>> config.masked_token()
        '**********************abcd'
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    values = read_env(os.environ if environ is None else environ)
    if "smartsheet_api_token" not in values:
        raise ConfigurationError.for_setting("SMARTSHEET_API_TOKEN", "is required")

    try:
        config = MigrationConfig(**values)
    except ConfigurationError:
        raise
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first["loc"] else ""
        key = FIELD_TO_ENV.get(field, field)
        raise ConfigurationError.for_setting(key, first["msg"].lower()) from e

    _config_cache = config
    logger.debug(
        f"Configuration loaded: solution_type={config.solution_type.value}, "
        f"batch_size={config.batch_size}, max_retries={config.max_retries}"
    )
    return config


def clear_cache() -> None:
    """
    Clear the configuration cache.

    Useful for testing or when the environment changes mid-session.
    """
    global _config_cache
    _config_cache = None


__all__ = [
    "ENV_VARS",
    "read_env",
    "load_config",
    "clear_cache",
]
