"""
Pytest configuration and shared fixtures.

Provides a scripted fake command runner standing in for repo/git, sample
manifests, isolated job directories and config, and other test utilities
used across the test suite.
"""

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from reposcm.core.behaviors import PhaseContext
from reposcm.core.config import clear_cache
from reposcm.core.process import CancelToken, ProcessResult

# ==============================================================================
# Sample Manifests
# ==============================================================================

BASE_MANIFEST = """<?xml version="1.0" encoding="UTF-8"?>
<manifest>
  <remote name="aosp" fetch=".." />
  <default revision="refs/heads/main" remote="aosp" sync-j="4" />
  <project path="build" name="platform/build" revision="abc" />
  <project path="foo" name="platform/foo" revision="abc" />
  <project path="docs" name="platform/docs" />
</manifest>
"""

CHANGED_FOO_MANIFEST = BASE_MANIFEST.replace(
    'name="platform/foo" revision="abc"', 'name="platform/foo" revision="def"'
)

CHANGED_DOCS_MANIFEST = BASE_MANIFEST.replace(
    'name="platform/docs" />', 'name="platform/docs" revision="d0c5" />'
)


@pytest.fixture
def base_manifest() -> str:
    """Manifest with platform/build, platform/foo at abc and platform/docs on main."""
    return BASE_MANIFEST


@pytest.fixture
def changed_foo_manifest() -> str:
    """BASE_MANIFEST with platform/foo moved to def."""
    return CHANGED_FOO_MANIFEST


@pytest.fixture
def changed_docs_manifest() -> str:
    """BASE_MANIFEST with platform/docs pinned to d0c5."""
    return CHANGED_DOCS_MANIFEST


# ==============================================================================
# Fake Command Runner
# ==============================================================================


@dataclass
class Call:
    """One recorded invocation."""

    command: list[str]
    cwd: Path
    env: dict[str, str] | None
    capture_output: bool


@dataclass
class _Rule:
    tokens: tuple[str, ...]
    exit_codes: list[int | None]
    stdout: str = ""
    stderr: str = ""
    raises: BaseException | None = None

    def matches(self, command: Sequence[str]) -> bool:
        return all(token in command for token in self.tokens)

    def next_exit_code(self) -> int | None:
        if len(self.exit_codes) > 1:
            return self.exit_codes.pop(0)
        return self.exit_codes[0]


@dataclass
class FakeRunner:
    """
    CommandRunner double scripted by command tokens.

    Rules registered later win. A rule matches when every token appears in
    the command. Exit codes are consumed in order; the last one repeats.
    Unmatched commands succeed with empty output.

    Example:
        runner = FakeRunner()
        runner.on("sync", exit_codes=[1, 0])
        runner.on("manifest", stdout=BASE_MANIFEST)
    """

    calls: list[Call] = field(default_factory=list)
    _rules: list[_Rule] = field(default_factory=list)

    def on(
        self,
        *tokens: str,
        exit_codes: Sequence[int | None] = (0,),
        stdout: str = "",
        stderr: str = "",
        raises: BaseException | None = None,
    ) -> "FakeRunner":
        self._rules.insert(
            0, _Rule(tuple(tokens), list(exit_codes), stdout, stderr, raises)
        )
        return self

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
        capture_output: bool = False,
        cancel: CancelToken | None = None,
    ) -> ProcessResult:
        args = [str(a) for a in command]
        self.calls.append(
            Call(args, Path(cwd), dict(env) if env is not None else None, capture_output)
        )
        if cancel is not None:
            cancel.raise_if_cancelled()

        for rule in self._rules:
            if rule.matches(args):
                if rule.raises is not None:
                    raise rule.raises
                exit_code = rule.next_exit_code()
                return ProcessResult(
                    command=args,
                    exit_code=exit_code,
                    stdout=rule.stdout if capture_output else "",
                    stderr=rule.stderr if capture_output else "",
                    error="could not start" if exit_code is None else None,
                )
        return ProcessResult(command=args, exit_code=0)

    def commands(self, *tokens: str) -> list[list[str]]:
        """Recorded commands containing every token."""
        return [c.command for c in self.calls if all(t in c.command for t in tokens)]


@pytest.fixture
def fake_runner() -> FakeRunner:
    """A FakeRunner whose ``repo manifest`` prints BASE_MANIFEST."""
    runner = FakeRunner()
    runner.on("manifest", "-o", stdout=BASE_MANIFEST)
    runner.on("rev-parse", "HEAD", stdout="0123abcd\n")
    return runner


# ==============================================================================
# Directory and Config Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user config, env overrides and the config cache out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    for var in (
        "REPOSCM_REPO_EXECUTABLE",
        "REPOSCM_GIT_EXECUTABLE",
        "REPOSCM_MANIFEST_URL",
        "REPOSCM_IGNORE_PROJECTS",
    ):
        monkeypatch.delenv(var, raising=False)
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def user_config_dir(tmp_path):
    """Provide the temporary XDG_CONFIG_HOME/reposcm directory."""
    config_dir = tmp_path / "xdg-config" / "reposcm"
    config_dir.mkdir(parents=True)
    return config_dir


def _write_job_config(job_dir: Path, data: dict[str, Any]) -> Path:
    path = job_dir / ".reposcm.json"
    path.write_text(json.dumps(data, indent=2))
    return path


@pytest.fixture
def write_job_config():
    """Return a helper writing ``data`` as the job's .reposcm.json."""
    return _write_job_config


@pytest.fixture
def job_dir(tmp_path):
    """
    Provide a job directory with a minimal .reposcm.json.

    No behaviors are configured and the workspace is the job directory.
    """
    job = tmp_path / "job"
    job.mkdir()
    _write_job_config(
        job,
        {
            "scm": {
                "manifest_repository_url": "https://android.example.com/platform/manifest",
                "behaviors": [],
            }
        },
    )
    return job


@pytest.fixture
def phase_context(tmp_path, fake_runner) -> PhaseContext:
    """PhaseContext over an empty ``ws`` workspace, running through ``fake_runner``."""
    workspace = tmp_path / "ws"
    workspace.mkdir()
    return PhaseContext(
        executable="repo",
        workspace=workspace,
        env={"BRANCH": "main"},
        runner=fake_runner,
    )
