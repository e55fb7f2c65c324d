"""
Configuration model and loading.

Settings come from environment variables, layered as:
exported env > project .env > user .env > defaults.
"""

from .env import load_layered_env, user_env_path
from .loader import ENV_VARS, clear_cache, load_config, read_env
from .models import MigrationConfig

__all__ = [
    # Models
    "MigrationConfig",
    # Loading
    "ENV_VARS",
    "clear_cache",
    "load_config",
    "load_layered_env",
    "read_env",
    "user_env_path",
]
