"""
Blocking process execution for repo and git invocations.

This module provides:
- ProcessResult, the structured outcome of one invocation
- CancelToken, a thread-safe flag the caller flips to cancel work
- CommandRunner, the protocol the orchestrator and behaviors depend on
- SubprocessRunner, the real implementation on top of subprocess.Popen

Processes run in their own process group on Unix so that cancellation
terminates repo's child git processes too.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
import time
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from reposcm.core.errors import CancellationError

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"
IS_UNIX = not IS_WINDOWS

# How often a running process is checked for cancellation.
POLL_INTERVAL_SECONDS = 0.1


class ProcessResult(BaseModel):
    """Structured result from process execution."""

    command: list[str]
    """The argument list that was executed."""

    exit_code: int | None
    """Process exit code, or None if the process never started."""

    stdout: str = ""
    """Captured standard output (empty unless capture was requested)."""

    stderr: str = ""
    """Captured standard error (empty unless capture was requested)."""

    duration_ms: int = 0
    """Execution duration in milliseconds."""

    error: str | None = None
    """Error message if the process could not be started."""

    @property
    def success(self) -> bool:
        """Whether the process exited with code 0."""
        return self.exit_code == 0


class CancelToken:
    """
    Cancellation flag shared between the caller and in-flight processes.

    Example:
        >>> token = CancelToken()
        >>> token.cancelled
        False
        >>> token.cancel()
        >>> token.cancelled
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise CancellationError if cancellation was requested."""
        if self._event.is_set():
            raise CancellationError()


@runtime_checkable
class CommandRunner(Protocol):
    """
    Protocol for executing external commands.

    Implementations block until the process ends, and raise
    CancellationError when ``cancel`` fires while the process runs.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
        capture_output: bool = False,
        cancel: CancelToken | None = None,
    ) -> ProcessResult:
        """
        Run ``command`` in ``cwd`` with ``env`` layered over os.environ.

        Args:
            command: Executable and arguments
            cwd: Working directory
            env: Environment overrides
            capture_output: Capture stdout/stderr instead of inheriting them
            cancel: Optional cancellation token

        Returns:
            ProcessResult for the finished process

        Raises:
            CancellationError: If cancelled before or during execution
        """
        ...


class SubprocessRunner:
    """CommandRunner backed by subprocess.Popen."""

    def __init__(self, terminate_grace_seconds: float = 2.0) -> None:
        self.terminate_grace_seconds = terminate_grace_seconds

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
        if cancel is not None:
            cancel.raise_if_cancelled()

        process_env = None
        if env is not None:
            process_env = os.environ.copy()
            process_env.update(env)

        kwargs: dict[str, Any] = {
            "cwd": str(cwd),
            "env": process_env,
            "text": True,
        }
        if capture_output:
            kwargs["stdout"] = subprocess.PIPE
            kwargs["stderr"] = subprocess.PIPE
        if IS_UNIX:
            kwargs["start_new_session"] = True

        logger.debug("Running process in %s: %s", cwd, " ".join(args))
        started = time.monotonic()
        try:
            process = subprocess.Popen(args, **kwargs)
        except FileNotFoundError:
            return ProcessResult(
                command=args,
                exit_code=None,
                duration_ms=_elapsed_ms(started),
                error=f"Command not found: {args[0]}. Ensure it is installed and in PATH.",
            )
        except OSError as e:
            return ProcessResult(
                command=args,
                exit_code=None,
                duration_ms=_elapsed_ms(started),
                error=f"Failed to start {args[0]}: {e}",
            )

        stdout = ""
        stderr = ""
        try:
            while True:
                try:
                    out, err = process.communicate(timeout=POLL_INTERVAL_SECONDS)
                    stdout = out or ""
                    stderr = err or ""
                    break
                except subprocess.TimeoutExpired:
                    if cancel is not None and cancel.cancelled:
                        logger.warning("Cancelling process %d: %s", process.pid, args[0])
                        self._terminate(process)
                        raise CancellationError(
                            f"Cancelled while running: {' '.join(args)}", command=args
                        )
        finally:
            if process.poll() is None:
                self._terminate(process)

        return ProcessResult(
            command=args,
            exit_code=process.returncode,
            stdout=stdout,
            stderr=stderr,
            duration_ms=_elapsed_ms(started),
        )

    def _terminate(self, process: subprocess.Popen[str]) -> None:
        """
        Stop ``process`` and its process group.

        Escalates from SIGTERM to SIGKILL when the group does not exit
        within the grace period.
        """
        if process.poll() is not None:
            return
        try:
            if IS_UNIX:
                os.killpg(os.getpgid(process.pid), signal.SIGTERM)
            else:
                process.terminate()
        except (ProcessLookupError, OSError) as e:
            logger.debug("Terminate failed (process may be dead): %s", e)

        try:
            process.wait(timeout=self.terminate_grace_seconds)
            return
        except subprocess.TimeoutExpired:
            logger.debug("Process %d ignored SIGTERM, killing", process.pid)

        try:
            if IS_UNIX:
                os.killpg(os.getpgid(process.pid), signal.SIGKILL)
            else:
                process.kill()
            process.wait(timeout=self.terminate_grace_seconds)
        except (ProcessLookupError, OSError, subprocess.TimeoutExpired) as e:
            logger.warning("Error during process kill: %s", e)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
