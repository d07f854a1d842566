"""
reposcm CLI - offline manifest diff.
"""

import json
from pathlib import Path

import typer
from rich.console import Console

from reposcm.cli.checkout import render_changes
from reposcm.cli.errors import ExitCode, print_error
from reposcm.core.change_filter import is_significant, parse_ignore_projects
from reposcm.core.errors import MalformedManifestError
from reposcm.core.manifest import ManifestSnapshot, diff, parse_manifest

console = Console()


def _read_manifest(path: Path) -> ManifestSnapshot:
    try:
        return parse_manifest(path.read_text(encoding="utf-8"))
    except OSError as e:
        print_error(f"Cannot read {path}", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR)
    except MalformedManifestError as e:
        print_error(f"Malformed manifest: {path}", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR)


def diff_command(
    baseline: Path = typer.Argument(..., help="Baseline manifest XML"),
    current: Path = typer.Argument(..., help="Current manifest XML"),
    ignore: str = typer.Option(
        "",
        "--ignore",
        "-i",
        help="Whitespace-separated server paths whose changes are not significant",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Compare two manifests and decide whether the change is significant.

    Examples:
        reposcm diff old.xml new.xml
        reposcm diff old.xml new.xml --ignore "platform/docs tools/lint" --json
    """
    before = _read_manifest(baseline)
    after = _read_manifest(current)

    ignore_set = parse_ignore_projects(ignore)
    change_set = diff(before, after)
    significant = is_significant(change_set, ignore_set)

    if json_output:
        payload = change_set.to_dict()
        payload["significant"] = significant
        console.print(json.dumps(payload, indent=2))
        return

    if change_set.is_empty:
        console.print("[green]No changes[/green]")
        return

    console.print(render_changes(change_set, ignored=ignore_set))
    if significant:
        console.print(f"[yellow]Significant:[/yellow] {len(change_set)} project(s) changed")
    else:
        console.print("[dim]Not significant: only ignored projects changed[/dim]")
