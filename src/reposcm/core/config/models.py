"""
Configuration data models for reposcm.

These models define the structure of ``<job_dir>/.reposcm.json`` and
``~/.config/reposcm/config.json``, with validation via Pydantic.
"""

from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from reposcm.core.behaviors import Behavior, load_behaviors
from reposcm.core.change_filter import parse_ignore_projects

from .migration import CURRENT_CONFIG_VERSION, migrate_legacy_config, strip_legacy_fields


class ToolsConfig(BaseModel):
    """
    Paths to the external tools.

    Shared by every job and never modified after loading.
    """
    model_config = ConfigDict(frozen=True)

    repo_executable: str = Field(
        default="repo",
        min_length=1,
        description="Path or name of the repo executable"
    )
    git_executable: str = Field(
        default="git",
        min_length=1,
        description="Path or name of the git executable"
    )


class ScmConfig(BaseModel):
    """
    Per-job checkout configuration.

    Legacy flat fields are converted to ``behaviors`` when a job file
    without a behavior list is loaded.
    """
    manifest_repository_url: Optional[str] = Field(
        default=None,
        description="URL of the manifest repository passed to 'repo init -u'"
    )
    behaviors: list[Behavior] = Field(
        default_factory=list,
        description="Configured behaviors, ordered by ordinal"
    )
    ignore_projects: str = Field(
        default="",
        description="Whitespace-separated server paths whose changes never trigger a build"
    )
    quiet: bool = Field(
        default=False,
        description="Add -q to 'repo sync'"
    )
    force_sync: bool = Field(
        default=False,
        description="Add --force-sync to 'repo sync'"
    )
    jobs: int = Field(
        default=0,
        ge=0,
        description="Parallel sync jobs (0 leaves repo's default)"
    )
    fetch_submodules: bool = Field(
        default=False,
        description="Add --fetch-submodules to 'repo sync'"
    )
    extra_env_vars: dict[str, str] = Field(
        default_factory=dict,
        description="Environment variables layered over build parameters"
    )
    show_all_changes: bool = Field(
        default=False,
        description="List changes of ignored projects too"
    )
    browser_url: Optional[str] = Field(
        default=None,
        description="GitWeb base URL for commit links"
    )
    config_version: int = Field(
        default=CURRENT_CONFIG_VERSION,
        description="Configuration format version"
    )

    @model_validator(mode="before")
    @classmethod
    def migrate_legacy_fields(cls, data: Any) -> Any:
        """Convert legacy flat fields exactly once, when no behavior list exists."""
        if not isinstance(data, dict):
            return data
        if "behaviors" not in data:
            return migrate_legacy_config(data)
        return strip_legacy_fields(data)

    @field_validator("behaviors", mode="before")
    @classmethod
    def create_behaviors(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, (list, tuple)):
            return load_behaviors(v)
        return v

    @field_serializer("behaviors")
    def serialize_behaviors(self, behaviors: list[Behavior]) -> list[dict[str, Any]]:
        return [b.to_config() for b in behaviors]

    @property
    def ignore_set(self) -> frozenset[str]:
        return parse_ignore_projects(self.ignore_projects)


class StateConfig(BaseModel):
    """Where build records and event logs live."""
    state_dir: str = Field(
        default=".reposcm",
        description="State directory, relative to the job directory"
    )
    history_limit: int = Field(
        default=50,
        ge=1,
        description="Build records kept in builds.json"
    )


class RepoScmConfig(BaseModel):
    """
    Top-level reposcm configuration.

    Loaded from defaults, user config, job config, and env vars.

    Example:
        >>> config = RepoScmConfig(scm={"manifest_repository_url": "https://example.com/m.git"})
        >>> config.tools.repo_executable
        'repo'
    """
    tools: ToolsConfig = Field(
        default_factory=ToolsConfig,
        description="External tool paths"
    )
    scm: ScmConfig = Field(
        default_factory=ScmConfig,
        description="Checkout configuration"
    )
    state: StateConfig = Field(
        default_factory=StateConfig,
        description="Build record storage"
    )

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,
    )
