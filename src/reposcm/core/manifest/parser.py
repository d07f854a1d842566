"""
Manifest parsing.

Turns the XML emitted by ``repo manifest -o - -r`` (or any repo manifest)
into a ManifestSnapshot. Only project identity and revision are read:

    <manifest>
      <default revision="main" remote="aosp"/>
      <project name="platform/build" path="build" revision="3f1c..."/>
      <project name="platform/foo"/>           <!-- inherits "main" -->
    </manifest>

Everything else in the document is ignored.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET

from reposcm.core.errors import MalformedManifestError
from reposcm.core.manifest.models import ManifestSnapshot

logger = logging.getLogger(__name__)


def _default_revision(root: ET.Element) -> str | None:
    revisions = [
        el.get("revision") for el in root.iter("default") if el.get("revision") is not None
    ]
    if len(revisions) > 1:
        raise MalformedManifestError(
            f"Manifest declares {len(revisions)} default revisions; at most one is allowed"
        )
    return revisions[0] if revisions else None


def parse_projects(raw_xml: str) -> dict[str, str]:
    """
    Extract the server path -> revision mapping from manifest text.

    Args:
        raw_xml: Manifest document

    Returns:
        Mapping in document order

    Raises:
        MalformedManifestError: If the text is not XML, a project has no
            name, a name repeats, or a project has neither an explicit nor
            a default revision.
    """
    if not raw_xml or not raw_xml.strip():
        raise MalformedManifestError("Manifest is empty")

    try:
        root = ET.fromstring(raw_xml)
    except ET.ParseError as e:
        raise MalformedManifestError(f"Manifest is not valid XML: {e}") from e

    default = _default_revision(root)

    projects: dict[str, str] = {}
    for index, element in enumerate(root.iter("project")):
        name = element.get("name")
        if not name:
            raise MalformedManifestError(f"Project #{index + 1} has no name attribute")
        if name in projects:
            raise MalformedManifestError(f"Project '{name}' is declared more than once")

        revision = element.get("revision") or default
        if not revision:
            raise MalformedManifestError(
                f"Project '{name}' has no revision and the manifest has no default revision"
            )
        projects[name] = revision

    logger.debug("Parsed %d projects (default revision: %s)", len(projects), default)
    return projects


def parse_manifest(
    raw_xml: str,
    revision: str | None = None,
    branch: str | None = None,
) -> ManifestSnapshot:
    """
    Parse manifest text into a snapshot.

    Args:
        raw_xml: Manifest document
        revision: Pinned commit of the manifest repository, if known
        branch: Requested manifest branch, if any

    Returns:
        A fully resolved ManifestSnapshot

    Raises:
        MalformedManifestError: See ``parse_projects``. No snapshot is
            produced in that case.

    Example:
        >>> snap = parse_manifest(
        ...     '<manifest><default revision="main"/><project name="a"/></manifest>'
        ... )
        >>> snap.projects
        {'a': 'main'}
    """
    projects = parse_projects(raw_xml)
    return ManifestSnapshot(
        manifest=raw_xml,
        revision=revision or None,
        branch=branch or None,
        projects=projects,
    )
