"""
reposcm CLI - configuration and behavior commands.
"""

import json
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from reposcm.cli.errors import ExitCode, print_error, print_invalid_config_error
from reposcm.core.behaviors import describe_behaviors
from reposcm.core.config import (
    get_job_config_path,
    load_config,
    load_layered_env,
    load_raw_job_config,
    save_job_config,
)
from reposcm.core.config.models import ScmConfig

app = typer.Typer(
    name="config",
    help="Show and migrate job configuration",
    no_args_is_help=True,
)

console = Console()


@app.command()
def show(
    job_dir: Path | None = typer.Option(
        None,
        "--job-dir",
        "-j",
        help="Job directory (default: cwd)",
    ),
) -> None:
    """Print the merged configuration as JSON."""
    load_layered_env(job_dir=job_dir)
    try:
        config = load_config(job_dir, use_cache=False)
    except ValidationError as e:
        print_invalid_config_error(str(e))
        raise typer.Exit(ExitCode.USER_ERROR)

    console.print_json(config.model_dump_json(indent=2))


@app.command()
def migrate(
    job_dir: Path | None = typer.Option(
        None,
        "--job-dir",
        "-j",
        help="Job directory (default: cwd)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Print the migrated configuration without writing it",
    ),
) -> None:
    """
    Rewrite a job file from legacy flat fields to a behavior list.

    Files that already have a behavior list are left untouched.
    """
    path = get_job_config_path(job_dir)
    raw = load_raw_job_config(job_dir)
    if not raw:
        print_error(f"No job configuration at {path}")
        raise typer.Exit(ExitCode.USER_ERROR)

    scm_raw = raw.get("scm", {})
    if "behaviors" in scm_raw:
        console.print(f"[dim]{path} already uses behaviors; nothing to do[/dim]")
        return

    try:
        scm = ScmConfig.model_validate(scm_raw)
    except ValidationError as e:
        print_invalid_config_error(str(e))
        raise typer.Exit(ExitCode.USER_ERROR)

    migrated = {**raw, "scm": scm.model_dump(mode="json", exclude_defaults=False)}
    if dry_run:
        console.print(json.dumps(migrated, indent=2))
        return

    save_job_config(migrated, job_dir)
    kinds = ", ".join(b.kind for b in scm.behaviors) or "none"
    console.print(f"[green]Migrated {path}[/green] (behaviors: {kinds})")


def behaviors() -> None:
    """List the available behavior kinds in execution order."""
    table = Table(title="Behaviors")
    table.add_column("Kind", style="cyan")
    table.add_column("Ordinal", justify="right")
    table.add_column("Name")
    table.add_column("Capabilities")
    table.add_column("Default", justify="center")

    for info in describe_behaviors():
        table.add_row(
            info.kind,
            str(info.ordinal),
            info.display_name,
            ", ".join(info.capabilities) or "[dim]-[/dim]",
            "✓" if info.default else "",
        )

    console.print(table)
