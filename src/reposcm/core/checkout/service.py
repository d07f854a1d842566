"""
Checkout service: the API the CLI (or any other caller) uses.

Wires configuration, the behavior pipeline, the sync orchestrator, the
revision store and the change filter together. The service holds no
state between calls besides its collaborators, so one instance may serve
any number of checkouts and polls for the same job.

Usage:
    >>> service = CheckoutService.from_config(job_dir=Path("/jobs/android"))
    >>> report = service.checkout({"BRANCH": "main"})
    >>> report.significant
    True
    >>> service.poll().change
    <PollChange.NO_CHANGES: 'no_changes'>
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from reposcm.core.behaviors import BehaviorPipeline, DestinationDirectory, ManifestBranch
from reposcm.core.change_filter import is_significant
from reposcm.core.config import RepoScmConfig, load_config
from reposcm.core.errors import (
    CancellationError,
    CheckoutError,
    ExternalToolFailure,
    MalformedManifestError,
    ScmError,
)
from reposcm.core.manifest import ManifestSnapshot, diff, parse_manifest
from reposcm.core.process import CancelToken, CommandRunner, SubprocessRunner
from reposcm.utils.envvars import build_environment
from reposcm.utils.logging import EventLog

from .models import CheckoutReport, PollChange, PollResult
from .orchestrator import SyncOptions, SyncOrchestrator, SyncOutcome
from .store import RevisionStore

logger = logging.getLogger(__name__)


class CheckoutService:
    """
    Checkout and poll operations for one job.

    Attributes:
        config: Loaded configuration (read-only)
        job_dir: Directory holding the job config and state directory
        workspace: Checkout root before any destination directory
        runner: Command runner for repo/git
        store: Build record store
        events: Structured event log
        cancel: Cancellation token shared with in-flight processes
    """

    def __init__(
        self,
        config: RepoScmConfig,
        *,
        job_dir: Path,
        workspace: Path | None = None,
        runner: CommandRunner | None = None,
        store: RevisionStore | None = None,
        events: EventLog | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        self.config = config
        self.job_dir = Path(job_dir)
        self.workspace = Path(workspace) if workspace is not None else self.job_dir
        self.runner = runner or SubprocessRunner()

        state_dir = self.job_dir / config.state.state_dir
        self.store = store or RevisionStore(state_dir, history_limit=config.state.history_limit)
        self.events = events or EventLog.for_state_dir(state_dir)
        self.cancel = cancel or CancelToken()
        self.pipeline = BehaviorPipeline(config.scm.behaviors)

    @classmethod
    def from_config(cls, job_dir: Path | None = None, **kwargs: Any) -> CheckoutService:
        """Create a service from the layered configuration of ``job_dir``."""
        job_dir = job_dir or Path.cwd()
        return cls(load_config(job_dir), job_dir=job_dir, **kwargs)

    # ------------------------------------------------------------------
    # Derived settings
    # ------------------------------------------------------------------

    def environment(self, parameters: Mapping[str, str] | None = None) -> dict[str, str]:
        """Process env < build parameters < configured extra_env_vars."""
        return build_environment(parameters, self.config.scm.extra_env_vars)

    def resolve_workspace(self, env: Mapping[str, str]) -> Path:
        """Checkout root, honouring a destination directory; created if missing."""
        path = self.workspace
        destination = self.pipeline.find(DestinationDirectory)
        if isinstance(destination, DestinationDirectory):
            path = destination.resolve(self.workspace, env)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def target_branch(self, env: Mapping[str, str]) -> str | None:
        """Expanded manifest branch, or None when repo's default is used."""
        branch = self.pipeline.find(ManifestBranch)
        if isinstance(branch, ManifestBranch):
            # Snapshots store an empty branch as None; look them up the same way.
            return branch.expanded(env) or None
        return None

    def ignore_set(self) -> frozenset[str]:
        """Configured ignore list plus every change-filtering behavior."""
        return self.config.scm.ignore_set | self.pipeline.ignored_projects()

    def sync_options(self) -> SyncOptions:
        scm = self.config.scm
        return SyncOptions(
            quiet=scm.quiet,
            force_sync=scm.force_sync,
            jobs=scm.jobs,
            fetch_submodules=scm.fetch_submodules,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def checkout(self, parameters: Mapping[str, str] | None = None) -> CheckoutReport:
        """
        Init and sync the workspace, then record and diff its manifest.

        Args:
            parameters: Build parameters layered into the environment

        Returns:
            CheckoutReport for the recorded build

        Raises:
            CheckoutError: A phase failed; carries the phase and behavior
            CancellationError: The checkout was cancelled
            ScmError: No manifest repository URL is configured
        """
        started = time.monotonic()
        env = self.environment(parameters)
        workspace = self.resolve_workspace(env)
        self.events.log_checkout_start(workspace, self._manifest_url())

        try:
            outcome = self._sync(workspace, env)
            if not outcome.success:
                raise CheckoutError(
                    outcome.failed_phase or "sync",
                    outcome.message,
                    behavior=outcome.behavior,
                    cause=outcome.error,
                )

            branch = self.target_branch(env)
            try:
                snapshot = self.capture_snapshot(workspace, env, branch)
            except (ExternalToolFailure, MalformedManifestError) as e:
                raise CheckoutError("manifest", str(e), cause=e) from e
        except CheckoutError as e:
            self.events.log_checkout_end(
                success=False, duration_sec=time.monotonic() - started
            )
            self.events.log_error(str(e), {"phase": e.phase, "behavior": e.behavior})
            raise
        except CancellationError as e:
            self.events.log_checkout_end(
                success=False, duration_sec=time.monotonic() - started
            )
            self.events.log_error(str(e), {"cancelled": True})
            raise

        baseline = self.store.last_state(branch)
        record = self.store.record(snapshot)
        change_set = diff(baseline, snapshot)
        significant = is_significant(change_set, self.ignore_set())

        self.events.log_checkout_end(
            success=True,
            build_number=record.number,
            changes=len(change_set),
            duration_sec=time.monotonic() - started,
        )
        logger.info(
            "Checkout #%d recorded %d projects (%d changed)",
            record.number,
            len(snapshot.projects),
            len(change_set),
        )
        return CheckoutReport(
            record=record,
            snapshot=snapshot,
            baseline=baseline,
            change_set=change_set,
            significant=significant,
        )

    def poll(
        self,
        baseline: ManifestSnapshot | None = None,
        parameters: Mapping[str, str] | None = None,
    ) -> PollResult:
        """
        Decide whether the remote manifest warrants a build.

        Never writes a build record.

        Args:
            baseline: State to compare against; defaults to the newest
                recorded state for the target branch
            parameters: Build parameters layered into the environment

        Raises:
            CancellationError: The poll was cancelled
            ScmError: No manifest repository URL is configured
        """
        self._manifest_url()
        env = self.environment(parameters)
        branch = self.target_branch(env)

        if baseline is None:
            baseline = self.store.last_state(branch)
            if baseline is None:
                return self._poll_result(
                    PollResult(PollChange.BUILD_NOW, reason="No previous build for this branch")
                )

        workspace = self.resolve_workspace(env)
        outcome = self._sync(workspace, env)
        if not outcome.success:
            return self._poll_result(
                PollResult(
                    PollChange.INCOMPARABLE,
                    baseline=baseline,
                    reason=f"Sync failed in {outcome.failed_phase}: {outcome.message}",
                )
            )

        try:
            current = self.capture_snapshot(workspace, env, branch)
        except (ExternalToolFailure, MalformedManifestError) as e:
            return self._poll_result(
                PollResult(PollChange.INCOMPARABLE, baseline=baseline, reason=str(e))
            )

        change_set = diff(baseline, current)
        if change_set.is_empty:
            change, reason = PollChange.NO_CHANGES, "Manifest unchanged"
        elif is_significant(change_set, self.ignore_set()):
            change, reason = PollChange.SIGNIFICANT, f"{len(change_set)} project(s) changed"
        else:
            change, reason = PollChange.NO_CHANGES, "Only ignored projects changed"

        return self._poll_result(
            PollResult(
                change,
                baseline=baseline,
                current=current,
                change_set=change_set,
                reason=reason,
            )
        )

    def capture_snapshot(
        self,
        workspace: Path,
        env: Mapping[str, str],
        branch: str | None,
    ) -> ManifestSnapshot:
        """
        Read the synced workspace's static manifest into a snapshot.

        Raises:
            ExternalToolFailure: ``repo manifest`` failed
            MalformedManifestError: Its output is not a valid manifest
        """
        tools = self.config.tools
        command = [tools.repo_executable, "manifest", "-o", "-", "-r"]
        result = self.runner.run(
            command, cwd=workspace, env=env, capture_output=True, cancel=self.cancel
        )
        if not result.success:
            raise ExternalToolFailure(command, result.exit_code, result.error)

        return parse_manifest(
            result.stdout,
            revision=self._manifest_revision(workspace, env),
            branch=branch,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _manifest_url(self) -> str:
        url = self.config.scm.manifest_repository_url
        if not url:
            raise ScmError("No manifest repository URL configured")
        return url

    def _sync(self, workspace: Path, env: Mapping[str, str]) -> SyncOutcome:
        orchestrator = SyncOrchestrator(
            executable=self.config.tools.repo_executable,
            manifest_url=self._manifest_url(),
            pipeline=self.pipeline,
            runner=self.runner,
            workspace=workspace,
            env=env,
            options=self.sync_options(),
            cancel=self.cancel,
            events=self.events,
        )
        return orchestrator.run()

    def _manifest_revision(self, workspace: Path, env: Mapping[str, str]) -> str | None:
        command = [self.config.tools.git_executable, "rev-parse", "HEAD"]
        result = self.runner.run(
            command,
            cwd=workspace / ".repo" / "manifests",
            env=env,
            capture_output=True,
            cancel=self.cancel,
        )
        if not result.success:
            logger.warning("Could not read manifest revision: %s", result.error or result.stderr)
            return None
        return result.stdout.strip() or None

    def _poll_result(self, result: PollResult) -> PollResult:
        affected = sorted(result.change_set.affected_paths()) if result.change_set else None
        self.events.log_poll_result(result.change.value, result.reason, affected)
        logger.info("Poll: %s (%s)", result.change.value, result.reason)
        return result

