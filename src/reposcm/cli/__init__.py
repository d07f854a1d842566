"""
reposcm CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys

import typer
from rich.console import Console

from reposcm import __version__
from reposcm.cli import checkout, config, manifest

# Help panel names for command grouping
PANEL_KEY = "Key Commands"
PANEL_INSPECT = "Inspect and Configure"

app = typer.Typer(
    name="reposcm",
    help="Check out repo manifests and detect source changes",
    no_args_is_help=True,
    add_completion=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def configure_logging(debug: bool) -> None:
    """
    Configure stdlib logging for the CLI.

    Args:
        debug: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    reposcm - repo manifest checkout and change detection.

    Quick Start:
        1. Create .reposcm.json with scm.manifest_repository_url
        2. reposcm checkout          # init + sync, record manifest state
        3. reposcm poll              # should the next build run?

    Documentation:
        reposcm --help               # This message
        reposcm <command> --help     # Help for specific command
    """
    configure_logging(debug)

    ctx.obj = {"debug": debug}


# =============================================================================
# Key Commands
# =============================================================================

app.command(name="checkout", rich_help_panel=PANEL_KEY)(checkout.checkout)
app.command(name="poll", rich_help_panel=PANEL_KEY)(checkout.poll)
app.command(name="diff", rich_help_panel=PANEL_KEY)(manifest.diff_command)


# =============================================================================
# Inspect and Configure
# =============================================================================

app.add_typer(config.app, name="config", rich_help_panel=PANEL_INSPECT)
app.command(name="behaviors", rich_help_panel=PANEL_INSPECT)(config.behaviors)


@app.command(rich_help_panel=PANEL_INSPECT)
def version() -> None:
    """Show reposcm version and exit."""
    console.print(f"reposcm version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
