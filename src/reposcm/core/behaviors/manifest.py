"""
Behaviors that choose what ``repo init`` checks out and where.

Values may reference job environment variables (``$VAR`` / ``${VAR}``);
they are expanded when the command line is built, not when configured.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from urllib.parse import urlparse

import httpx
from pydantic import field_validator

from reposcm.core.behaviors.base import (
    Behavior,
    Capability,
    CommandLine,
    PhaseContext,
    register_behavior,
)
from reposcm.core.errors import BehaviorApplicationError
from reposcm.utils.envvars import expand

logger = logging.getLogger(__name__)

INIT = Capability.DECORATES_INIT

LOCAL_MANIFEST_FILE = "local.xml"
FETCH_TIMEOUT_SECONDS = 30.0


def _require(value: str, field: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{field} may not be empty")
    return value


@register_behavior("destination_dir", ordinal=10, display_name="Destination directory")
class DestinationDirectory(Behavior):
    """
    Sync into a subdirectory of the workspace instead of its root.

    Consumed by the checkout service when resolving the workspace; it takes
    part in no phase.
    """

    destination_dir: str

    @field_validator("destination_dir")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        return _require(v, "destination_dir")

    def resolve(self, workspace: Path, env: Mapping[str, str]) -> Path:
        return workspace / (expand(self.destination_dir, env) or "")


@register_behavior("manifest_branch", ordinal=30, display_name="Manifest branch", capabilities={INIT})
class ManifestBranch(Behavior):
    """Manifest branch or revision (``repo init -b``)."""

    manifest_branch: str

    @field_validator("manifest_branch")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        return _require(v, "manifest_branch")

    def expanded(self, env: Mapping[str, str]) -> str:
        return expand(self.manifest_branch, env) or ""

    def decorate_init(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append("-b", self.expanded(env))
        return True


@register_behavior("manifest_file", ordinal=40, display_name="Manifest file", capabilities={INIT})
class ManifestFile(Behavior):
    """Initial manifest file name (``repo init -m``); repo defaults to default.xml."""

    manifest_file: str

    @field_validator("manifest_file")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        return _require(v, "manifest_file")

    def decorate_init(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append("-m", expand(self.manifest_file, env) or "")
        return True


@register_behavior("mirror_dir", ordinal=50, display_name="Mirror directory", capabilities={INIT})
class MirrorDir(Behavior):
    """Local mirror to borrow objects from (``repo init --reference``)."""

    mirror_dir: str

    @field_validator("mirror_dir")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        return _require(v, "mirror_dir")

    def decorate_init(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append(f"--reference={expand(self.mirror_dir, env)}")
        return True


@register_behavior("repo_url", ordinal=60, display_name="Repo URL", capabilities={INIT})
class RepoUrl(Behavior):
    """Fetch the repo tool itself from a different URL."""

    repo_url: str

    @field_validator("repo_url")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        return _require(v, "repo_url")

    def decorate_init(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append(f"--repo-url={expand(self.repo_url, env)}", "--no-repo-verify")
        return True


@register_behavior("repo_branch", ordinal=65, display_name="Repo branch", capabilities={INIT})
class RepoBranch(Behavior):
    """Branch of the repo tool itself."""

    repo_branch: str

    @field_validator("repo_branch")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        return _require(v, "repo_branch").strip()

    def decorate_init(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append(f"--repo-branch={expand(self.repo_branch, env)}")
        return True


@register_behavior("manifest_group", ordinal=70, display_name="Manifest group", capabilities={INIT})
class ManifestGroup(Behavior):
    """Restrict the checkout to manifest groups (``repo init -g``)."""

    manifest_group: str

    @field_validator("manifest_group")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        return _require(v, "manifest_group")

    def decorate_init(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append("-g", expand(self.manifest_group, env) or "")
        return True


@register_behavior(
    "manifest_platform", ordinal=80, display_name="Manifest platform", capabilities={INIT}
)
class ManifestPlatform(Behavior):
    """Platform-specific projects to fetch (``repo init -p``)."""

    manifest_platform: str

    @field_validator("manifest_platform")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        return _require(v, "manifest_platform")

    def decorate_init(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append("-p", expand(self.manifest_platform, env) or "")
        return True


@register_behavior(
    "local_manifest",
    ordinal=140,
    display_name="Local manifest",
    capabilities={Capability.RUNS_POST_INIT},
)
class LocalManifest(Behavior):
    """
    Write ``.repo/local_manifests/local.xml`` after every init.

    The value is either the overlay document itself (starting with
    ``<?xml``) or a URL to fetch it from.
    """

    local_manifest: str

    @field_validator("local_manifest")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        return _require(v, "local_manifest").strip()

    def post_init(self, context: PhaseContext) -> bool:
        target = context.local_manifests / LOCAL_MANIFEST_FILE
        value = expand(self.local_manifest, context.env) or ""
        try:
            if value.startswith("<?xml"):
                content = value
            else:
                content = self._fetch(value)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        except (OSError, ValueError, httpx.HTTPError) as e:
            raise BehaviorApplicationError(self.name, cause=e) from e

        logger.info("Wrote local manifest overlay to %s", target)
        return True

    @staticmethod
    def _fetch(url: str) -> str:
        parsed = urlparse(url)
        if parsed.scheme == "file":
            return Path(parsed.path).read_text(encoding="utf-8")
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"Not an XML document or a supported URL: {url!r}")
        response = httpx.get(url, follow_redirects=True, timeout=FETCH_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.text
