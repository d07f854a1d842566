"""
Data models for checkout and poll results and stored build records.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from reposcm.core.manifest import ChangeSet, ManifestSnapshot


class BuildResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class BuildRecord(BaseModel):
    """One completed checkout as persisted in builds.json."""

    number: int = Field(..., ge=1, description="Sequential build number")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the checkout finished",
    )
    snapshot: ManifestSnapshot = Field(..., description="Manifest state the checkout produced")
    result: BuildResult = Field(default=BuildResult.SUCCESS, description="Checkout result")


class BuildHistory(BaseModel):
    """On-disk layout of builds.json."""

    records: list[BuildRecord] = Field(default_factory=list)


class PollChange(str, Enum):
    """How a poll classifies the remote state."""

    NO_CHANGES = "no_changes"
    SIGNIFICANT = "significant"
    BUILD_NOW = "build_now"
    INCOMPARABLE = "incomparable"

    @property
    def should_build(self) -> bool:
        return self is not PollChange.NO_CHANGES


@dataclass(frozen=True)
class PollResult:
    """
    Outcome of comparing the remote manifest with a baseline.

    Attributes:
        change: Classification driving the build decision
        baseline: Snapshot compared against (None when there was none)
        current: Snapshot of the freshly synced manifest (None if unavailable)
        change_set: Differences between baseline and current
        reason: Human-readable explanation
    """

    change: PollChange
    baseline: ManifestSnapshot | None = None
    current: ManifestSnapshot | None = None
    change_set: ChangeSet | None = None
    reason: str = ""

    @property
    def should_build(self) -> bool:
        return self.change.should_build


@dataclass(frozen=True)
class CheckoutReport:
    """
    Everything a successful checkout produced.

    Attributes:
        record: Build record written to the revision store
        snapshot: Manifest state of the workspace after sync
        baseline: Previous state for the same branch, if any
        change_set: Differences against ``baseline`` (all added when absent)
        significant: Whether the change set passes the ignore filter
    """

    record: BuildRecord
    snapshot: ManifestSnapshot
    baseline: ManifestSnapshot | None
    change_set: ChangeSet
    significant: bool
