"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < job config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import RepoScmConfig

logger = logging.getLogger(__name__)

JOB_CONFIG_FILENAME = ".reposcm.json"

# Cache keyed by resolved job directory
_config_cache: dict[Path, RepoScmConfig] = {}


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/reposcm/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "reposcm" / "config.json"


def get_job_config_path(job_dir: Path | None = None) -> Path:
    """
    Get path to a job's configuration file.

    Args:
        job_dir: Job directory (defaults to current directory)

    Returns:
        Path to .reposcm.json in the job directory
    """
    if job_dir is None:
        job_dir = Path.cwd()
    return job_dir / JOB_CONFIG_FILENAME


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`. Nested
    dicts are merged, lists and scalars are replaced.

    Example:
        >>> base = {"a": 1, "b": {"x": 10, "y": 20}}
        >>> override = {"b": {"y": 30, "z": 40}, "c": 3}
        >>> deep_merge(base, override)
        {'a': 1, 'b': {'x': 10, 'y': 30, 'z': 40}, 'c': 3}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            logger.warning("Ignoring config at %s: top level is not an object", path)
            return None
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Env vars have the highest precedence and override all config files.

    Supported env vars:
        REPOSCM_REPO_EXECUTABLE - overrides tools.repo_executable
        REPOSCM_GIT_EXECUTABLE - overrides tools.git_executable
        REPOSCM_MANIFEST_URL - overrides scm.manifest_repository_url
        REPOSCM_IGNORE_PROJECTS - overrides scm.ignore_projects
    """
    result = config_dict.copy()

    overrides = (
        ("REPOSCM_REPO_EXECUTABLE", "tools", "repo_executable"),
        ("REPOSCM_GIT_EXECUTABLE", "tools", "git_executable"),
        ("REPOSCM_MANIFEST_URL", "scm", "manifest_repository_url"),
        ("REPOSCM_IGNORE_PROJECTS", "scm", "ignore_projects"),
    )
    for var, section, key in overrides:
        value = os.environ.get(var)
        if value is None:
            continue
        result[section] = {**result.get(section, {}), key: value}

    return result


def get_default_config() -> dict[str, Any]:
    """Hardcoded defaults; everything else comes from the models."""
    return {
        "tools": {"repo_executable": "repo", "git_executable": "git"},
        "state": {"state_dir": ".reposcm", "history_limit": 50},
    }


def load_config(job_dir: Path | None = None, use_cache: bool = True) -> RepoScmConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (REPOSCM_*)
        2. Job config (.reposcm.json)
        3. User config (~/.config/reposcm/config.json)
        4. Hardcoded defaults

    Args:
        job_dir: Job directory to load .reposcm.json from (defaults to cwd)
        use_cache: If True, return cached config from a previous load

    Returns:
        Validated RepoScmConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation

    Example:
        >>> config = load_config(Path("/var/lib/jobs/android"))
        >>> config.tools.repo_executable
        'repo'
    """
    key = (job_dir or Path.cwd()).resolve()
    if use_cache and key in _config_cache:
        return _config_cache[key]

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if job_config := load_json_file(get_job_config_path(job_dir)):
        merged = deep_merge(merged, job_config)

    merged = apply_env_overrides(merged)

    config = RepoScmConfig(**merged)
    _config_cache[key] = config

    return config


def load_raw_job_config(job_dir: Path | None = None) -> dict[str, Any]:
    """The job file as stored, without merging or validation (empty if absent)."""
    return load_json_file(get_job_config_path(job_dir)) or {}


def save_job_config(data: dict[str, Any], job_dir: Path | None = None) -> Path:
    """
    Write a job configuration file atomically.

    Returns:
        Path of the written file
    """
    path = get_job_config_path(job_dir)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    tmp.replace(path)
    clear_cache()
    return path


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    _config_cache.clear()
