"""
Environment variable layering and expansion for repo invocations.

Configured values such as the manifest URL or branch may reference
variables (``$BRANCH`` or ``${BRANCH}``). They are expanded against the
job environment right before use; unknown variables are left untouched.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from string import Template


def expand(value: str | None, env: Mapping[str, str]) -> str | None:
    """Expand ``$VAR`` / ``${VAR}`` references in ``value`` using ``env``.

    Example:
        >>> expand("refs/heads/${BRANCH}", {"BRANCH": "main"})
        'refs/heads/main'
        >>> expand("$MISSING/x", {})
        '$MISSING/x'
    """
    if value is None:
        return None
    return Template(value).safe_substitute(env)


def build_environment(
    parameters: Mapping[str, str] | None = None,
    extra_env_vars: Mapping[str, str] | None = None,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """
    Build the environment handed to repo/git and used for expansion.

    Precedence (lowest to highest): ``base`` (process environment),
    build ``parameters``, then configured ``extra_env_vars``. Values of the
    upper layers may reference lower layers and are resolved once.

    Args:
        parameters: Build parameters (e.g. from ``-e KEY=VALUE``)
        extra_env_vars: Job-level overrides from configuration
        base: Starting environment (defaults to ``os.environ``)

    Returns:
        A new dictionary; the inputs are not modified.
    """
    env: dict[str, str] = dict(os.environ if base is None else base)
    for layer in (parameters, extra_env_vars):
        if not layer:
            continue
        snapshot = dict(env)
        for key, value in layer.items():
            env[key] = Template(value).safe_substitute(snapshot)
    return env


def parse_assignments(items: list[str] | None) -> dict[str, str]:
    """Parse ``KEY=VALUE`` strings from the command line.

    Raises:
        ValueError: If an item has no ``=`` or an empty key.
    """
    result: dict[str, str] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got '{item}'")
        result[key] = value
    return result
