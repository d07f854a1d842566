"""
Standardized error handling and exit codes for the reposcm CLI.

Consistent error messages with actionable guidance, and exit codes that
CI systems can act on.
"""

from enum import IntEnum

from rich.console import Console

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for reposcm operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Checkout failed."""

    USER_ERROR = 2
    """User configuration or input error (actionable by user)."""

    SIGINT = 130
    """Cancelled by SIGINT/SIGTERM - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "No manifest repository URL configured",
        ...     solution="reposcm config show  # check scm.manifest_repository_url",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_missing_manifest_url_error() -> None:
    """Print error when a job has no manifest repository configured."""
    print_error(
        "No manifest repository URL configured",
        reason="Checkout and poll need scm.manifest_repository_url",
        solution="set it in .reposcm.json or export REPOSCM_MANIFEST_URL",
    )


def print_invalid_config_error(details: str) -> None:
    """Print error when the merged configuration fails validation."""
    print_error(
        "Invalid configuration",
        reason=details,
        solution="reposcm config show  # to inspect the merged configuration",
    )


def print_cancelled_error() -> None:
    print_error("Checkout cancelled", reason="Interrupted by signal")
