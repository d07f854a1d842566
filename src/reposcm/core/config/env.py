"""Job environment files.

A checkout job can keep variables next to its ``.reposcm.json``:

    <job_dir>/.env          committed defaults, e.g. BRANCH=main
    <job_dir>/.env.local    machine-specific values, e.g. REPOSCM_REPO_EXECUTABLE

Anything defined there lands in the process environment before the job
config is loaded. That makes it visible to the ``REPOSCM_*`` overrides and
to ``$VAR`` expansion in behavior values, where the process environment is
the lowest layer under ``-e`` parameters and ``extra_env_vars``.

A user-wide ``$XDG_CONFIG_HOME/reposcm/.env`` supplies defaults for every
job. Variables already exported by the CI agent are never replaced:

  os.environ (pre-existing) > job .env files > user .env
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

JOB_ENV_FILES = (".env", ".env.local")


def job_env_files(job_dir: Path | None = None) -> list[Path]:
    """Env files read for a job, lowest precedence first."""
    base = job_dir if job_dir is not None else Path.cwd()
    return [base / name for name in JOB_ENV_FILES]


def user_env_files() -> list[Path]:
    xdg_home = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
    return [xdg_home / "reposcm" / ".env"]


def _read_env(path: Path) -> dict[str, str]:
    if not path.is_file():
        return {}
    return {str(k): str(v) for k, v in dotenv_values(path).items() if k and v is not None}


def load_layered_env(
    *,
    job_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    job_env_paths: Iterable[Path] | None = None,
) -> dict[str, str]:
    """
    Apply user and job ``.env`` files to ``os.environ``.

    Args:
        job_dir: Job whose env files are read (defaults to cwd)
        user_env_paths: Explicit user env files
        job_env_paths: Explicit job env files; later files win

    Returns:
        The variables this call set, with their values
    """
    if user_env_paths is None:
        user_env_paths = user_env_files()
    if job_env_paths is None:
        job_env_paths = job_env_files(job_dir)

    applied: dict[str, str] = {}
    for path in user_env_paths:
        for key, value in _read_env(Path(path)).items():
            if key not in os.environ:
                applied[key] = value

    # Job files may replace user values but not the inherited environment.
    for path in job_env_paths:
        for key, value in _read_env(Path(path)).items():
            if key not in os.environ:
                applied[key] = value

    os.environ.update(applied)
    if applied:
        logger.debug("Loaded %s from .env files", ", ".join(sorted(applied)))
    return applied
