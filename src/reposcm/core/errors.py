"""
Exceptions raised by checkout, polling and manifest handling.

Exception Hierarchy:
    ScmError (base)
    ├── MalformedManifestError (manifest text cannot become a snapshot)
    ├── ExternalToolFailure (repo/git exited non-zero)
    ├── BehaviorApplicationError (a behavior step failed)
    ├── CancellationError (caller interrupted an in-flight checkout)
    └── CheckoutError (checkout aborted, with phase/behavior attribution)

Example:
    >>> from reposcm.core.errors import BehaviorApplicationError
    >>> err = BehaviorApplicationError("Local manifest", cause=OSError("disk full"))
    >>> str(err)
    'Could not apply "Local manifest": disk full'
"""

from __future__ import annotations

from collections.abc import Sequence


class ScmError(Exception):
    """
    Base exception for all reposcm errors.

    Attributes:
        message: Human-readable error message
        context: Optional dictionary of additional context
    """

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class MalformedManifestError(ScmError):
    """
    Raised when manifest text is unparsable or structurally invalid.

    Polling treats this as "unknown state": the caller should build now.
    No partial snapshot is ever exposed alongside this error.
    """


class ExternalToolFailure(ScmError):
    """
    Raised when an external repo/git process exits non-zero.

    Attributes:
        command: The argument list that was executed
        exit_code: Process exit code, or None if it never started
    """

    def __init__(
        self,
        command: Sequence[str],
        exit_code: int | None,
        message: str | None = None,
        **context: object,
    ) -> None:
        self.command = list(command)
        self.exit_code = exit_code
        if message is None:
            message = f"Command exited with code {exit_code}: {' '.join(self.command)}"
        super().__init__(message, command=self.command, exit_code=exit_code, **context)


class BehaviorApplicationError(ScmError):
    """
    A behavior failed to decorate a command or run its side effect.

    Always carries the display name of the offending behavior so that
    failures stay attributable when several behaviors run in one phase.
    When built from an underlying error, that error's message is embedded.

    Attributes:
        behavior: Display name of the behavior that failed
        cause: The underlying exception, if any
    """

    def __init__(
        self,
        behavior: str,
        message: str | None = None,
        *,
        cause: BaseException | None = None,
    ) -> None:
        self.behavior = behavior
        self.cause = cause
        if message is None and cause is not None:
            text = f'Could not apply "{behavior}": {cause}'
        elif message is None:
            text = f'Could not apply "{behavior}"'
        else:
            text = f"{behavior}: {message}"
        super().__init__(text, behavior=behavior)
        if cause is not None:
            self.__cause__ = cause


class CancellationError(ScmError):
    """Raised when the caller cancels a checkout. Never retried."""

    def __init__(self, message: str = "Checkout cancelled", **context: object) -> None:
        super().__init__(message, **context)


class CheckoutError(ScmError):
    """
    A checkout aborted.

    Attributes:
        phase: Name of the phase that failed (e.g. "decorate-init", "sync")
        behavior: Display name of the responsible behavior, if any
        cause: Underlying error, if any
    """

    def __init__(
        self,
        phase: str,
        message: str,
        *,
        behavior: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.phase = phase
        self.behavior = behavior
        self.cause = cause
        super().__init__(message, phase=phase, behavior=behavior)

    def __str__(self) -> str:
        where = f"[{self.phase}]"
        if self.behavior:
            where = f"[{self.phase} / {self.behavior}]"
        return f"{where} {self.message}"


__all__ = [
    "ScmError",
    "MalformedManifestError",
    "ExternalToolFailure",
    "BehaviorApplicationError",
    "CancellationError",
    "CheckoutError",
]
