"""
Manifest snapshots and the diff engine.

Example:
    >>> from reposcm.core.manifest import diff, parse_manifest
    >>> old = parse_manifest('<manifest><project name="a" revision="1"/></manifest>')
    >>> new = parse_manifest('<manifest><project name="a" revision="2"/></manifest>')
    >>> diff(old, new).affected_paths()
    {'a'}
"""

from reposcm.core.manifest.diff import diff
from reposcm.core.manifest.models import ChangeSet, ManifestSnapshot, ProjectState
from reposcm.core.manifest.parser import parse_manifest, parse_projects

__all__ = [
    "ChangeSet",
    "ManifestSnapshot",
    "ProjectState",
    "diff",
    "parse_manifest",
    "parse_projects",
]
