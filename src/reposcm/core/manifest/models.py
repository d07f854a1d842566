"""
Data models for manifest snapshots and their differences.

A ManifestSnapshot is the comparable materialization of a manifest at a
point in time. It is created after every successful sync, attached to the
build record that produced it, and never mutated afterwards.

ProjectState and ChangeSet are produced only by diff computation
(see ``reposcm.core.manifest.diff``).
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ManifestSnapshot(BaseModel):
    """
    Immutable, comparable view of a manifest.

    Two snapshots are equal when every server path maps to the same revision
    string. The raw text and the pinned manifest revision are kept for
    reporting only. The branch is compared separately by the revision store,
    which treats a snapshot for another branch as absent.

    Example:
        >>> a = ManifestSnapshot(projects={"platform/foo": "abc"}, branch="main")
        >>> b = ManifestSnapshot(projects={"platform/foo": "abc"}, branch="dev")
        >>> a == b
        True
    """

    model_config = ConfigDict(frozen=True)

    manifest: str = Field(default="", description="Raw manifest text")
    revision: str | None = Field(
        default=None, description="Pinned revision of the manifest repository itself"
    )
    branch: str | None = Field(default=None, description="Requested manifest branch")
    projects: dict[str, str] = Field(
        default_factory=dict, description="Server path to resolved revision"
    )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ManifestSnapshot):
            return NotImplemented
        return self.projects == other.projects

    def __hash__(self) -> int:
        return hash(frozenset(self.projects.items()))

    def revision_of(self, server_path: str) -> str | None:
        """Return the revision recorded for ``server_path``, if any."""
        return self.projects.get(server_path)


@dataclass(frozen=True)
class ProjectState:
    """
    A changed project as reported by a diff.

    Attributes:
        server_path: Unique project identifier within the manifest
        revision: Revision on the side the project is present in; for a
            changed project, the current revision
        previous_revision: Baseline revision, only set for changed projects
    """

    server_path: str
    revision: str
    previous_revision: str | None = None

    def __str__(self) -> str:
        if self.previous_revision is not None:
            return f"{self.server_path} {self.previous_revision} -> {self.revision}"
        return f"{self.server_path} {self.revision}"


@dataclass(frozen=True)
class ChangeSet:
    """
    Difference between a baseline and a current snapshot.

    The three lists are disjoint: a server path appears in at most one.
    """

    added: list[ProjectState] = field(default_factory=list)
    removed: list[ProjectState] = field(default_factory=list)
    changed: list[ProjectState] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)

    def __bool__(self) -> bool:
        return not self.is_empty

    def __len__(self) -> int:
        return len(self.added) + len(self.removed) + len(self.changed)

    def __iter__(self) -> Iterator[ProjectState]:
        yield from self.added
        yield from self.removed
        yield from self.changed

    def affected_paths(self) -> set[str]:
        """Union of server paths across added, removed and changed."""
        return {state.server_path for state in self}

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form used for JSON output."""

        def dump(states: list[ProjectState]) -> list[dict[str, Any]]:
            rows = []
            for s in states:
                row: dict[str, Any] = {"server_path": s.server_path, "revision": s.revision}
                if s.previous_revision is not None:
                    row["previous_revision"] = s.previous_revision
                rows.append(row)
            return rows

        return {
            "added": dump(self.added),
            "removed": dump(self.removed),
            "changed": dump(self.changed),
        }
