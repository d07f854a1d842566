"""
Configuration models and loading.

Pydantic models for reposcm configuration with multi-layer merging:
defaults < user < job < env vars.
"""

from .env import load_layered_env
from .loader import (
    clear_cache,
    get_job_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
    load_raw_job_config,
    save_job_config,
)
from .migration import CURRENT_CONFIG_VERSION, migrate_legacy_config
from .models import RepoScmConfig, ScmConfig, StateConfig, ToolsConfig

__all__ = [
    # Models
    "RepoScmConfig",
    "ScmConfig",
    "StateConfig",
    "ToolsConfig",
    # Loader functions
    "clear_cache",
    "get_job_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
    "load_layered_env",
    "load_raw_job_config",
    "save_job_config",
    # Migration
    "CURRENT_CONFIG_VERSION",
    "migrate_legacy_config",
]
