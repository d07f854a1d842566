"""
Legacy job configuration migration.

Older job files configured every option as a flat field on the job
(``"manifest_branch": "main", "trace": true, ...``). Version 2 replaces
them with an ordered ``behaviors`` list. ``migrate_legacy_config`` maps one
representation to the other; it is a pure function on the raw dict and is
only ever applied when no ``behaviors`` key exists yet.
"""

from __future__ import annotations

import logging
from typing import Any

from reposcm.core.behaviors import get_behavior_class

logger = logging.getLogger(__name__)

CURRENT_CONFIG_VERSION = 2

# Legacy string fields: one behavior per non-empty value, field name == kind.
LEGACY_STRING_FIELDS: tuple[str, ...] = (
    "destination_dir",
    "manifest_branch",
    "manifest_file",
    "mirror_dir",
    "repo_url",
    "manifest_group",
    "manifest_platform",
    "local_manifest",
    "repo_branch",
)

# Legacy boolean fields: a field-less behavior when true.
LEGACY_FLAG_FIELDS: tuple[str, ...] = (
    "trace",
    "no_clone_bundle",
    "current_branch",
    "no_tags",
    "manifest_submodules",
    "reset_first",
    "clean_first",
)

LEGACY_FIELDS: frozenset[str] = frozenset(LEGACY_STRING_FIELDS + LEGACY_FLAG_FIELDS + ("depth",))


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "false", "0", "no")
    return bool(value)


def migrate_legacy_config(data: dict[str, Any]) -> dict[str, Any]:
    """
    Convert flat legacy fields into an ordered behavior list.

    Empty strings, false flags and a depth of 0 produce no behavior. The
    input dict is not modified.

    Args:
        data: Raw job configuration without a ``behaviors`` key

    Returns:
        A new dict with the legacy fields removed, ``behaviors`` set and
        ``config_version`` bumped

    Example:
        >>> migrate_legacy_config({"manifest_branch": "main", "trace": True})["behaviors"]
        [{'kind': 'trace'}, {'kind': 'manifest_branch', 'manifest_branch': 'main'}]
    """
    if "behaviors" in data:
        raise ValueError("Configuration already has a behavior list")

    result = {k: v for k, v in data.items() if k not in LEGACY_FIELDS}
    behaviors: list[dict[str, Any]] = []

    for field in LEGACY_STRING_FIELDS:
        value = data.get(field)
        if isinstance(value, str) and value.strip():
            behaviors.append({"kind": field, field: value})

    for field in LEGACY_FLAG_FIELDS:
        if _truthy(data.get(field)):
            behaviors.append({"kind": field})

    depth = data.get("depth")
    if depth not in (None, "", 0, "0"):
        behaviors.append({"kind": "depth", "depth": int(depth)})

    behaviors.sort(key=lambda b: get_behavior_class(b["kind"]).ordinal)

    if behaviors:
        logger.info(
            "Migrated legacy configuration to behaviors: %s",
            ", ".join(b["kind"] for b in behaviors),
        )

    result["behaviors"] = behaviors
    result["config_version"] = CURRENT_CONFIG_VERSION
    return result


def strip_legacy_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Drop legacy fields from a configuration that already has behaviors."""
    stale = sorted(k for k in data if k in LEGACY_FIELDS)
    if not stale:
        return data
    logger.warning(
        "Ignoring legacy configuration fields alongside 'behaviors': %s", ", ".join(stale)
    )
    return {k: v for k, v in data.items() if k not in LEGACY_FIELDS}
