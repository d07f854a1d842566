"""Change-filtering behaviors."""

from __future__ import annotations

from pydantic import field_validator

from reposcm.core.behaviors.base import Behavior, Capability, register_behavior
from reposcm.core.change_filter import parse_ignore_projects


@register_behavior(
    "ignore_changes",
    ordinal=200,
    display_name="Ignore changes",
    capabilities={Capability.FILTERS_CHANGES},
)
class IgnoreChanges(Behavior):
    """
    Projects whose changes never trigger a build.

    ``ignore_projects`` holds server paths (the manifest ``name``
    attribute) separated by whitespace.
    """

    ignore_projects: str

    @field_validator("ignore_projects")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        if not v or not v.split():
            raise ValueError("ignore_projects may not be empty")
        return v

    def ignored_projects(self) -> frozenset[str]:
        return parse_ignore_projects(self.ignore_projects)
