"""
Coachwatch CLI - Command Line Interface

Analyzes one recorded match and prints a line for every coach caught using
the fixed spectator camera while the side they coach was still alive.

Usage:
    coachwatch path/to/match.dem
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from coachwatch import __version__
from coachwatch.analyzer import analyze_demo
from coachwatch.core.config import get_config
from coachwatch.core.schemas import ViolationRecord

app = typer.Typer(
    name="coachwatch",
    help="Detect coaches abusing the fixed spectator camera in CS demos",
    add_completion=False,
)
console = Console(highlight=False, emoji=False)
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    log_config = get_config().logging
    logging.basicConfig(level=log_config.level, format=log_config.format)
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"Coachwatch v{__version__}")
        raise typer.Exit()


def _print_violation(violation: ViolationRecord) -> None:
    console.print(violation.format_line(), markup=False, soft_wrap=True)


@app.command()
def analyze(
    demo_path: Path = typer.Argument(
        ...,
        help="Path to the .dem file to analyze",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable verbose output"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    ),
) -> None:
    """
    Analyze a demo file and report fixed-camera coaching violations.

    Prints one line per violation:
    Round: <N>, Busta: [<TEAM>]<name> (<steam id>)
    """
    _configure_logging(verbose)

    console.print(f"Analyze started: {demo_path}", markup=False, soft_wrap=True)

    try:
        analyze_demo(demo_path, on_violation=_print_violation)
    except Exception as e:
        err_console.print(f"[red]Error analyzing demo:[/red] {escape(str(e))}")
        err_console.print_exception()
        raise typer.Exit(1)

    console.print(f"Analyze ended: {demo_path}", markup=False, soft_wrap=True)


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
