"""Configuration file handling for dots."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

from dots.constants import CONFIG_FILENAME, DEFAULT_SCOPE_ENV, DOTS_DIRNAME


def get_config_path(dots_dir: str | Path) -> Path:
    """Get the path to the config file.

    Args:
        dots_dir: Path to .dots directory

    Returns:
        Path to config.toml
    """
    return Path(dots_dir) / CONFIG_FILENAME


def load_config(dots_dir: str | Path) -> dict[str, Any]:
    """Load configuration from .dots/config.toml.

    Args:
        dots_dir: Path to .dots directory

    Returns:
        Configuration dictionary, or empty dict if no config exists
    """
    config_path = get_config_path(dots_dir)
    if not config_path.exists():
        return {}

    try:
        with config_path.open("rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError):
        return {}


def save_config(dots_dir: str | Path, config: dict[str, Any]) -> None:
    """Save configuration to .dots/config.toml.

    Args:
        dots_dir: Path to .dots directory
        config: Configuration dictionary to save
    """
    config_path = get_config_path(dots_dir)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with config_path.open("wb") as f:
        tomli_w.dump(config, f)


def get_default_scope(
    dots_dir: str | Path,
    explicit: str | None = None,
) -> str | None:
    """Get the scope new issues go into when none is given on the command line.

    Precedence:
    1. The explicit value
    2. The DOTS_DEFAULT_SCOPE environment variable
    3. default_scope from config.toml

    Args:
        dots_dir: Path to .dots directory
        explicit: Scope passed by the caller, if any

    Returns:
        Scope name, or None if nothing is configured
    """
    if explicit:
        return explicit

    env_scope = os.environ.get(DEFAULT_SCOPE_ENV)
    if env_scope:
        return env_scope

    scope = load_config(dots_dir).get("default_scope")
    if isinstance(scope, str) and scope:
        return scope
    return None


def set_default_scope(dots_dir: str | Path, scope: str) -> None:
    """Store the default scope in config."""
    config = load_config(dots_dir)
    config["default_scope"] = scope
    save_config(dots_dir, config)


def git_add_enabled(dots_dir: str | Path) -> bool:
    """Whether `dot init` should stage the store with git (default: yes)."""
    return bool(load_config(dots_dir).get("git_add", True))


def find_dots_dir(start_dir: str | Path | None = None) -> str:
    """Find the .dots directory by searching upward from start_dir.

    Args:
        start_dir: Directory to start searching from (default: current directory)

    Returns:
        Path to .dots directory, or ".dots" if not found
    """
    current = Path.cwd() if start_dir is None else Path(start_dir).resolve()

    while True:
        candidate = current / DOTS_DIRNAME
        if candidate.is_dir():
            return str(candidate)

        parent = current.parent
        if parent == current:
            return DOTS_DIRNAME
        current = parent
