"""
Behaviors that only add command-line flags to ``repo init`` / ``repo sync``.
"""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import Field

from reposcm.core.behaviors.base import Behavior, Capability, CommandLine, register_behavior

INIT = Capability.DECORATES_INIT
SYNC = Capability.DECORATES_SYNC


@register_behavior("trace", ordinal=20, display_name="Trace", capabilities={INIT, SYNC})
class Trace(Behavior):
    """``repo --trace``; the flag goes right after the executable."""

    def decorate_init(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.insert(1, "--trace")
        return True

    def decorate_sync(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.insert(1, "--trace")
        return True


@register_behavior("depth", ordinal=90, display_name="Depth", capabilities={INIT})
class Depth(Behavior):
    """Shallow clone depth for ``repo init``; 0 means full history."""

    depth: int = Field(default=0, ge=0)

    def decorate_init(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        if self.depth != 0:
            command.append(f"--depth={self.depth}")
        return True


@register_behavior(
    "no_clone_bundle",
    ordinal=100,
    display_name="No clone bundle",
    capabilities={INIT, SYNC},
)
class NoCloneBundle(Behavior):
    def decorate_init(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append("--no-clone-bundle")
        return True

    def decorate_sync(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append("--no-clone-bundle")
        return True


@register_behavior("current_branch", ordinal=110, display_name="Current branch", capabilities={SYNC})
class CurrentBranch(Behavior):
    """Fetch only the current manifest branch (``repo sync -c``)."""

    def decorate_sync(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append("-c")
        return True


@register_behavior("no_tags", ordinal=120, display_name="No tags", capabilities={SYNC})
class NoTags(Behavior):
    def decorate_sync(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append("--no-tags")
        return True


@register_behavior(
    "manifest_submodules",
    ordinal=130,
    display_name="Manifest submodules",
    capabilities={INIT},
)
class ManifestSubmodules(Behavior):
    def decorate_init(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append("--submodules")
        return True


@register_behavior(
    "quiet", ordinal=170, display_name="Quiet", capabilities={SYNC}, default=True
)
class Quiet(Behavior):
    def decorate_sync(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append("-q")
        return True


@register_behavior("force_sync", ordinal=180, display_name="Force sync", capabilities={SYNC})
class ForceSync(Behavior):
    """Overwrite existing git directories if needed (``--force-sync``)."""

    def decorate_sync(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append("--force-sync")
        return True


@register_behavior("jobs", ordinal=180, display_name="Jobs", capabilities={SYNC})
class Jobs(Behavior):
    """Parallel fetch jobs for ``repo sync``; 0 leaves repo's default."""

    jobs: int = Field(default=0, ge=0)

    def decorate_sync(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        if self.jobs > 0:
            command.append(f"--jobs={self.jobs}")
        return True


@register_behavior(
    "fetch_submodules",
    ordinal=190,
    display_name="Fetch submodules",
    capabilities={SYNC},
)
class FetchSubmodules(Behavior):
    def decorate_sync(self, command: CommandLine, env: Mapping[str, str]) -> bool:
        command.append("--fetch-submodules")
        return True
