"""
Pluggable behaviors and the pipeline that runs them.

Importing this package registers every built-in behavior kind.

Key Types:
    Behavior: Base class for decorators and lifecycle side effects
    BehaviorPipeline: Runs one phase across the ordered behaviors
    Phase: decorate-init, decorate-sync, pre-sync, post-init
    PhaseResult / StepResult: Explicit per-step outcomes

Usage:
    from reposcm.core.behaviors import BehaviorPipeline, CommandLine, Phase, load_behaviors

    pipeline = BehaviorPipeline(load_behaviors([{"kind": "quiet"}, {"kind": "jobs", "jobs": 8}]))
    command = CommandLine(["repo", "sync", "-d"])
    result = pipeline.decorate(Phase.DECORATE_SYNC, command, env={})
"""

from reposcm.core.behaviors.base import (
    Behavior,
    BehaviorInfo,
    Capability,
    CommandLine,
    PhaseContext,
    create_behavior,
    default_behaviors,
    describe_behaviors,
    get_behavior_class,
    list_behavior_kinds,
    load_behaviors,
    register_behavior,
    sort_behaviors,
)
from reposcm.core.behaviors.changes import IgnoreChanges
from reposcm.core.behaviors.flags import (
    CurrentBranch,
    Depth,
    FetchSubmodules,
    ForceSync,
    Jobs,
    ManifestSubmodules,
    NoCloneBundle,
    NoTags,
    Quiet,
    Trace,
)
from reposcm.core.behaviors.manifest import (
    DestinationDirectory,
    LocalManifest,
    ManifestBranch,
    ManifestFile,
    ManifestGroup,
    ManifestPlatform,
    MirrorDir,
    RepoBranch,
    RepoUrl,
)
from reposcm.core.behaviors.pipeline import (
    BehaviorPipeline,
    Phase,
    PhaseResult,
    StepOutcome,
    StepResult,
)
from reposcm.core.behaviors.workspace import CleanFirst, ResetFirst

__all__ = [
    # Framework
    "Behavior",
    "BehaviorInfo",
    "BehaviorPipeline",
    "Capability",
    "CommandLine",
    "Phase",
    "PhaseContext",
    "PhaseResult",
    "StepOutcome",
    "StepResult",
    "create_behavior",
    "default_behaviors",
    "describe_behaviors",
    "get_behavior_class",
    "list_behavior_kinds",
    "load_behaviors",
    "register_behavior",
    "sort_behaviors",
    # Built-in behaviors
    "CleanFirst",
    "CurrentBranch",
    "Depth",
    "DestinationDirectory",
    "FetchSubmodules",
    "ForceSync",
    "IgnoreChanges",
    "Jobs",
    "LocalManifest",
    "ManifestBranch",
    "ManifestFile",
    "ManifestGroup",
    "ManifestPlatform",
    "ManifestSubmodules",
    "MirrorDir",
    "NoCloneBundle",
    "NoTags",
    "Quiet",
    "RepoBranch",
    "RepoUrl",
    "ResetFirst",
    "Trace",
]
