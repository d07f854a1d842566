"""
Init → sync → recover → retry state machine.

States and transitions:

    INIT ──► DECORATE_INIT ──(init exit 0)──► POST_INIT ──► SYNC ──(exit 0)──► DONE
                  │                              │            │
                  └──(phase fails / exit != 0)───┴──► FAILED  └──(exit != 0)──► RECOVER
                                                                                  │
                                       DONE ◄──(exit 0)── RETRY_SYNC ◄────────────┘
                                                             └──(exit != 0)──► FAILED

Recovery runs ``repo forall -c "git reset --hard"`` exactly once and
ignores its exit code; the retry reuses the already decorated sync command.
There is no second recovery.

Usage:
    >>> orchestrator = SyncOrchestrator(
    ...     executable="repo",
    ...     manifest_url="https://android.googlesource.com/platform/manifest",
    ...     pipeline=BehaviorPipeline(behaviors),
    ...     runner=SubprocessRunner(),
    ...     workspace=Path("/ws"),
    ...     env=env,
    ... )
    >>> outcome = orchestrator.run()
    >>> outcome.success
    True
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from reposcm.core.behaviors import BehaviorPipeline, CommandLine, Phase, PhaseContext, PhaseResult
from reposcm.core.errors import ExternalToolFailure, ScmError
from reposcm.core.process import CancelToken, CommandRunner, ProcessResult
from reposcm.utils.envvars import expand
from reposcm.utils.logging import EventLog

logger = logging.getLogger(__name__)

LEGACY_LOCAL_MANIFEST = "local_manifest.xml"
RECOVERY_COMMAND = "git reset --hard"


class SyncState(str, Enum):
    INIT = "init"
    DECORATE_INIT = "decorate-init"
    POST_INIT = "post-init"
    SYNC = "sync"
    RECOVER = "recover"
    RETRY_SYNC = "retry-sync"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncOptions:
    """Sync flags configured on the job itself rather than through behaviors."""

    quiet: bool = False
    force_sync: bool = False
    jobs: int = 0
    fetch_submodules: bool = False

    def flags(self) -> list[str]:
        flags: list[str] = []
        if self.quiet:
            flags.append("-q")
        if self.force_sync:
            flags.append("--force-sync")
        if self.jobs > 0:
            flags.append(f"--jobs={self.jobs}")
        if self.fetch_submodules:
            flags.append("--fetch-submodules")
        return flags


@dataclass
class SyncOutcome:
    """
    Result of one orchestrator run.

    Attributes:
        success: Whether the workspace ended up synced
        state: Final state (DONE or FAILED)
        failed_phase: Phase or step that failed ("decorate-init", "init", "sync", ...)
        behavior: Display name of the behavior responsible, if any
        message: Human-readable failure description
        transitions: Every state visited, in order
        sync_attempts: Number of sync processes launched (1 or 2)
        recovered: Whether the recovery step ran
        error: Underlying error (ExternalToolFailure or BehaviorApplicationError)
    """

    success: bool = False
    state: SyncState = SyncState.INIT
    failed_phase: str | None = None
    behavior: str | None = None
    message: str = ""
    transitions: list[SyncState] = field(default_factory=list)
    sync_attempts: int = 0
    recovered: bool = False
    error: ScmError | None = None


class SyncOrchestrator:
    """
    Drives ``repo init`` and ``repo sync`` through the behavior pipeline.

    One instance runs one checkout; it is not reusable across runs.
    CancellationError from the runner or a behavior propagates unchanged.
    """

    def __init__(
        self,
        *,
        executable: str,
        manifest_url: str,
        pipeline: BehaviorPipeline,
        runner: CommandRunner,
        workspace: Path,
        env: Mapping[str, str],
        options: SyncOptions | None = None,
        cancel: CancelToken | None = None,
        events: EventLog | None = None,
    ) -> None:
        self.executable = executable
        self.manifest_url = manifest_url
        self.pipeline = pipeline
        self.runner = runner
        self.workspace = workspace
        self.env = dict(env)
        self.options = options or SyncOptions()
        self.cancel = cancel
        self.events = events
        self._outcome = SyncOutcome()
        self._last_sync_exit: int | None = None

    @property
    def context(self) -> PhaseContext:
        return PhaseContext(
            executable=self.executable,
            workspace=self.workspace,
            env=self.env,
            runner=self.runner,
            cancel=self.cancel,
        )

    def run(self) -> SyncOutcome:
        """Run the state machine to DONE or FAILED."""
        self._outcome = SyncOutcome()
        self._enter(SyncState.INIT)

        init_command = self.build_init_command()
        self._enter(SyncState.DECORATE_INIT)
        decorated = self.pipeline.decorate(Phase.DECORATE_INIT, init_command, self.env)
        if not decorated.ok:
            return self._phase_failed(decorated)

        result = self._execute(init_command)
        if not result.success:
            return self._fail(
                "init",
                self._describe_exit("repo init", result),
                error=ExternalToolFailure(result.command, result.exit_code, result.error),
            )

        self._enter(SyncState.POST_INIT)
        try:
            self.prepare_local_manifests()
        except OSError as e:
            return self._fail("post-init", f"Could not reset local manifests: {e}")
        post_init = self.pipeline.run_side_effects(Phase.POST_INIT, self.context)
        if not post_init.ok:
            return self._phase_failed(post_init)

        self._enter(SyncState.SYNC)
        pre_sync = self.pipeline.run_side_effects(Phase.PRE_SYNC, self.context)
        if pre_sync.fatal is not None:
            return self._phase_failed(pre_sync)
        if not pre_sync.ok:
            logger.warning(
                "Pre-sync steps did not complete, syncing anyway: %s", pre_sync.describe()
            )

        sync_command = self.build_sync_command()
        decorated = self.pipeline.decorate(Phase.DECORATE_SYNC, sync_command, self.env)
        if not decorated.ok:
            return self._phase_failed(decorated)

        if self._sync(sync_command):
            return self._done()

        self._enter(SyncState.RECOVER)
        self.recover()

        self._enter(SyncState.RETRY_SYNC)
        if self.events:
            self.events.log_retry_sync()
        if self._sync(sync_command):
            return self._done()

        return self._fail(
            "sync",
            "Sync failed again after recovery",
            error=ExternalToolFailure(list(sync_command), self._last_sync_exit),
        )

    def build_init_command(self) -> CommandLine:
        """Base ``repo init -u <url>`` before decoration."""
        return CommandLine([self.executable, "init", "-u", expand(self.manifest_url, self.env) or ""])

    def build_sync_command(self) -> CommandLine:
        """Base ``repo sync -d`` plus job-level flags, before decoration."""
        command = CommandLine([self.executable, "sync", "-d"])
        command.append(*self.options.flags())
        return command

    def prepare_local_manifests(self) -> None:
        """
        Reset the overlay area after init.

        Deletes the legacy single-file overlay and empties (or creates)
        ``.repo/local_manifests``.
        """
        context = self.context
        legacy = context.dot_repo / LEGACY_LOCAL_MANIFEST
        legacy.unlink(missing_ok=True)

        overlays = context.local_manifests
        if overlays.is_dir():
            for child in overlays.iterdir():
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
        else:
            overlays.mkdir(parents=True, exist_ok=True)

    def recover(self) -> None:
        """Hard-reset every project. The exit code only produces a warning."""
        logger.warning("Sync failed. Resetting repository")
        result = self._execute(CommandLine([self.executable, "forall", "-c", RECOVERY_COMMAND]))
        self._outcome.recovered = True
        if not result.success:
            logger.warning("Recovery reset exited with %s; retrying sync anyway", result.exit_code)
        if self.events:
            self.events.log_recovery(result.exit_code)

    def _sync(self, command: CommandLine) -> bool:
        self._outcome.sync_attempts += 1
        result = self._execute(command)
        self._last_sync_exit = result.exit_code
        if result.success:
            return True
        logger.warning("%s", self._describe_exit("repo sync", result))
        if self.events:
            self.events.log_sync_failed(self._outcome.sync_attempts, result.exit_code)
        return False

    def _execute(self, command: CommandLine) -> ProcessResult:
        return self.runner.run(
            list(command),
            cwd=self.workspace,
            env=self.env,
            cancel=self.cancel,
        )

    @staticmethod
    def _describe_exit(what: str, result: ProcessResult) -> str:
        if result.exit_code is None:
            return f"{what} could not be started: {result.error}"
        return f"{what} exited with code {result.exit_code}"

    def _enter(self, state: SyncState) -> None:
        logger.debug("Sync state -> %s", state.value)
        self._outcome.state = state
        self._outcome.transitions.append(state)

    def _done(self) -> SyncOutcome:
        self._enter(SyncState.DONE)
        self._outcome.success = True
        return self._outcome

    def _phase_failed(self, result: PhaseResult) -> SyncOutcome:
        fatal = result.fatal
        behavior = fatal.behavior if fatal is not None else None
        if behavior is None and result.suppressed_by:
            behavior = result.suppressed_by[0]
        error = fatal.error if fatal is not None else None
        return self._fail(result.phase.value, result.describe(), behavior=behavior, error=error)

    def _fail(
        self,
        phase: str,
        message: str,
        behavior: str | None = None,
        error: ScmError | None = None,
    ) -> SyncOutcome:
        logger.error("Checkout failed in %s: %s", phase, message)
        if self.events:
            self.events.log_phase_failed(phase, message, behavior)
        self._outcome.failed_phase = phase
        self._outcome.behavior = behavior
        self._outcome.message = message
        self._outcome.error = error
        self._enter(SyncState.FAILED)
        return self._outcome
