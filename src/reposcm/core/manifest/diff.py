"""
Semantic diff between two manifest snapshots.

Computed purely over the server path -> revision mappings. Revisions are
compared as exact strings: a tag and the commit it points to count as
different revisions.
"""

from __future__ import annotations

from reposcm.core.manifest.models import ChangeSet, ManifestSnapshot, ProjectState


def diff(baseline: ManifestSnapshot | None, current: ManifestSnapshot) -> ChangeSet:
    """
    Compute what changed from ``baseline`` to ``current``.

    - added: in ``current`` but not ``baseline``
    - removed: in ``baseline`` but not ``current``
    - changed: in both, with unequal revision strings

    A missing baseline is treated as an empty manifest, so every current
    project is reported as added.

    Ordering follows ``current`` for added/changed and ``baseline`` for
    removed, which keeps ``diff(a, b).added == diff(b, a).removed``.

    Example:
        >>> old = ManifestSnapshot(projects={"platform/foo": "abc"})
        >>> new = ManifestSnapshot(projects={"platform/foo": "def"})
        >>> [str(p) for p in diff(old, new).changed]
        ['platform/foo abc -> def']
    """
    before = baseline.projects if baseline is not None else {}
    after = current.projects

    added: list[ProjectState] = []
    changed: list[ProjectState] = []
    for path, revision in after.items():
        previous = before.get(path)
        if previous is None:
            added.append(ProjectState(path, revision))
        elif previous != revision:
            changed.append(ProjectState(path, revision, previous_revision=previous))

    removed = [
        ProjectState(path, revision) for path, revision in before.items() if path not in after
    ]

    return ChangeSet(added=added, removed=removed, changed=changed)
