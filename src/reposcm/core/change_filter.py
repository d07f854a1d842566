"""
Change significance policy.

Decides whether a ChangeSet should trigger a build, given the set of
server paths whose changes are ignored.
"""

from __future__ import annotations

from collections.abc import Iterable

from reposcm.core.manifest.models import ChangeSet


def parse_ignore_projects(value: str | None) -> frozenset[str]:
    """
    Parse a whitespace-separated list of server paths.

    Example:
        >>> sorted(parse_ignore_projects("platform/foo\\n  platform/bar "))
        ['platform/bar', 'platform/foo']
    """
    if not value:
        return frozenset()
    return frozenset(value.split())


def is_significant(change_set: ChangeSet, ignore_set: Iterable[str] = ()) -> bool:
    """
    Return whether ``change_set`` warrants a build.

    An empty change set is never significant. With an empty ignore set any
    change is significant. Otherwise the change is suppressed only when
    every affected project (across added, removed and changed) is ignored.
    """
    if change_set.is_empty:
        return False

    ignored = frozenset(ignore_set)
    if not ignored:
        return True

    return not change_set.affected_paths() <= ignored
