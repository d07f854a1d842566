"""
reposcm CLI - checkout and poll commands.
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from reposcm.cli.errors import (
    ExitCode,
    print_cancelled_error,
    print_error,
    print_invalid_config_error,
    print_missing_manifest_url_error,
)
from reposcm.core.browser import GitWebBrowser
from reposcm.core.checkout import CheckoutService
from reposcm.core.config import RepoScmConfig, load_config, load_layered_env
from reposcm.core.errors import CancellationError, CheckoutError, ScmError
from reposcm.core.interrupt import InterruptHandler
from reposcm.core.manifest import ChangeSet
from reposcm.utils.envvars import parse_assignments

logger = logging.getLogger(__name__)

console = Console()


def _load(job_dir: Path | None) -> RepoScmConfig:
    load_layered_env(job_dir=job_dir)
    try:
        return load_config(job_dir)
    except ValidationError as e:
        print_invalid_config_error(str(e))
        raise typer.Exit(ExitCode.USER_ERROR)


def _parameters(env: list[str] | None) -> dict[str, str]:
    try:
        return parse_assignments(env)
    except ValueError as e:
        print_error(str(e), solution="reposcm checkout -e BRANCH=main")
        raise typer.Exit(ExitCode.USER_ERROR)


def _make_service(job_dir: Path | None, workspace: Path | None) -> CheckoutService:
    config = _load(job_dir)
    if not config.scm.manifest_repository_url:
        print_missing_manifest_url_error()
        raise typer.Exit(ExitCode.USER_ERROR)
    return CheckoutService(config, job_dir=job_dir or Path.cwd(), workspace=workspace)


def _browser(config: RepoScmConfig) -> GitWebBrowser | None:
    if not config.scm.browser_url:
        return None
    try:
        return GitWebBrowser(config.scm.browser_url)
    except ValueError as e:
        logger.warning("Ignoring browser_url: %s", e)
        return None


def render_changes(
    change_set: ChangeSet,
    *,
    ignored: frozenset[str] = frozenset(),
    show_all: bool = True,
    browser: GitWebBrowser | None = None,
    title: str = "Changed projects",
) -> Table:
    """Table of added, removed and changed projects."""
    table = Table(title=title)
    table.add_column("Project", style="cyan")
    table.add_column("Change")
    table.add_column("Revision")
    if browser is not None:
        table.add_column("Link", style="dim")

    rows = (
        [("added", s) for s in change_set.added]
        + [("removed", s) for s in change_set.removed]
        + [("changed", s) for s in change_set.changed]
    )
    styles = {"added": "green", "removed": "red", "changed": "yellow"}
    for kind, state in rows:
        if not show_all and state.server_path in ignored:
            continue
        revision = state.revision
        if state.previous_revision is not None:
            revision = f"{state.previous_revision} → {state.revision}"
        cells = [state.server_path, f"[{styles[kind]}]{kind}[/{styles[kind]}]", revision]
        if browser is not None:
            if kind == "removed":
                cells.append("")
            else:
                cells.append(browser.changeset_link(state.server_path, state.revision))
        table.add_row(*cells)
    return table


def checkout(
    job_dir: Path | None = typer.Option(
        None,
        "--job-dir",
        "-j",
        help="Job directory holding .reposcm.json and the state directory (default: cwd)",
    ),
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Checkout root (default: the job directory)",
    ),
    env: list[str] | None = typer.Option(
        None,
        "--env",
        "-e",
        help="Build parameter KEY=VALUE (repeatable)",
    ),
) -> None:
    """
    Init and sync the workspace, then record its manifest state.

    Exit codes: 0 success, 1 checkout failure, 2 configuration error,
    130 cancelled.

    Examples:
        reposcm checkout
        reposcm checkout --workspace /ws -e BRANCH=android-14
    """
    parameters = _parameters(env)
    service = _make_service(job_dir, workspace)

    try:
        with InterruptHandler(service.cancel):
            report = service.checkout(parameters)
    except CancellationError:
        print_cancelled_error()
        raise typer.Exit(ExitCode.SIGINT)
    except CheckoutError as e:
        where = f"phase '{e.phase}'"
        if e.behavior:
            where += f", behavior '{e.behavior}'"
        print_error(f"Checkout failed in {where}", reason=e.message)
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except ScmError as e:
        print_error(str(e))
        raise typer.Exit(ExitCode.USER_ERROR)

    console.print(
        f"[green]Checkout #{report.record.number} complete:[/green] "
        f"{len(report.snapshot.projects)} projects"
        + (f" on {report.snapshot.branch}" if report.snapshot.branch else "")
    )
    if report.baseline is None:
        console.print("[dim]No previous build for this branch; every project is new[/dim]")
    elif report.change_set.is_empty:
        console.print("[dim]No project changes since the previous build[/dim]")
    else:
        console.print(
            render_changes(
                report.change_set,
                ignored=service.ignore_set(),
                show_all=service.config.scm.show_all_changes,
                browser=_browser(service.config),
            )
        )
        if not report.significant:
            console.print("[dim]All changes are in ignored projects[/dim]")


def poll(
    job_dir: Path | None = typer.Option(
        None,
        "--job-dir",
        "-j",
        help="Job directory holding .reposcm.json and the state directory (default: cwd)",
    ),
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Checkout root (default: the job directory)",
    ),
    env: list[str] | None = typer.Option(
        None,
        "--env",
        "-e",
        help="Build parameter KEY=VALUE (repeatable)",
    ),
) -> None:
    """
    Check whether the remote manifest changed since the last checkout.

    Prints the change class (no_changes, significant, build_now,
    incomparable) and the affected projects. Never records a build.
    """
    parameters = _parameters(env)
    service = _make_service(job_dir, workspace)

    try:
        with InterruptHandler(service.cancel):
            result = service.poll(parameters=parameters)
    except CancellationError:
        print_cancelled_error()
        raise typer.Exit(ExitCode.SIGINT)
    except ScmError as e:
        print_error(str(e))
        raise typer.Exit(ExitCode.USER_ERROR)

    style = "yellow" if result.should_build else "green"
    console.print(f"[{style}]{result.change.value}[/{style}] {result.reason}")
    if result.change_set:
        console.print(
            render_changes(
                result.change_set,
                ignored=service.ignore_set(),
                browser=_browser(service.config),
            )
        )
