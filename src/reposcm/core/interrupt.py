"""
Signal handling that turns SIGINT/SIGTERM into checkout cancellation.

The handler implements a two-stage interrupt model:
1. First interrupt: cancels the shared CancelToken. The running repo/git
   process is terminated and the checkout fails with CancellationError.
2. Second interrupt: force exits with SystemExit(130)

Usage:
    >>> from reposcm.core.interrupt import InterruptHandler
    >>> from reposcm.core.process import CancelToken
    >>> token = CancelToken()
    >>> with InterruptHandler(token):
    ...     pass  # run checkout with cancel=token
"""

from __future__ import annotations

import signal
import sys
import threading
from types import TracebackType
from typing import Any

from reposcm.core.process import CancelToken


class InterruptHandler:
    """
    Routes SIGINT/SIGTERM to a CancelToken.

    Attributes:
        token: The token cancelled on the first interrupt
    """

    def __init__(self, token: CancelToken) -> None:
        self.token = token
        self._original_sigint: Any = None
        self._original_sigterm: Any = None

    @property
    def interrupted(self) -> bool:
        return self.token.cancelled

    def register(self) -> None:
        """
        Install the signal handlers.

        Signal handlers can only be installed from the main thread; elsewhere
        this is a no-op and cancellation must come from the caller.
        """
        if threading.current_thread() is not threading.main_thread():
            return
        self._original_sigint = signal.signal(signal.SIGINT, self._handle_signal)
        self._original_sigterm = signal.signal(signal.SIGTERM, self._handle_signal)

    def unregister(self) -> None:
        """Restore the signal handlers that were active before register()."""
        if self._original_sigint is not None:
            signal.signal(signal.SIGINT, self._original_sigint)
            self._original_sigint = None

        if self._original_sigterm is not None:
            signal.signal(signal.SIGTERM, self._original_sigterm)
            self._original_sigterm = None

    def __enter__(self) -> InterruptHandler:
        self.register()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.unregister()

    def _handle_signal(self, signum: int, frame: object) -> None:
        if self.token.cancelled:
            self._write_to_stderr("\n[Force exiting...]\n")
            raise SystemExit(130)

        self.token.cancel()
        self._write_to_stderr("\n[Interrupt received. Stopping checkout...]\n")

    @staticmethod
    def _write_to_stderr(message: str) -> None:
        """Write directly to stderr; Rich is not safe inside a signal handler."""
        sys.stderr.write(message)
        sys.stderr.flush()
