"""Layered .env loading.

Sources, highest precedence first:

  os.environ (pre-existing) > project .env.local > project .env > user .env

The user file lives at ``$XDG_CONFIG_HOME/pomigrate/.env`` (default
``~/.config/pomigrate/.env``) and holds per-user defaults such as the API
token. A .env file never overrides a variable already exported in the shell.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def user_env_path() -> Path:
    xdg_home = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
    return xdg_home / "pomigrate" / ".env"


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> list[Path]:
    """Apply user and project .env files to os.environ.

    Files are applied from the highest precedence down with
    ``override=False``, so the first file to set a key wins and nothing
    already in the environment is replaced.

    Args:
        project_dir: base directory for project env files (defaults to cwd)
        user_env_paths: explicit user env files, lowest precedence first
        project_env_paths: explicit project env files, lowest precedence first

    Returns:
        The files that existed and were read, lowest precedence first
    """
    if project_dir is None:
        project_dir = Path.cwd()
    if user_env_paths is None:
        user_env_paths = [user_env_path()]
    if project_env_paths is None:
        project_env_paths = [project_dir / ".env", project_dir / ".env.local"]

    files = [Path(p) for p in [*user_env_paths, *project_env_paths]]
    layers = [path for path in files if path.is_file()]
    for path in reversed(layers):
        load_dotenv(path, override=False)

    if layers:
        logger.debug(f"Loaded env files: {', '.join(str(p) for p in layers)}")
    return layers


__all__ = ["load_layered_env", "user_env_path"]
