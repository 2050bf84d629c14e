"""``find-primes``: search ranges for primes within a time budget."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from primeforge import __version__
from primeforge._internal.config import build_config
from primeforge._internal.errors import ConfigError
from primeforge.engine.orchestrator import OutcomeKind, run_search

if TYPE_CHECKING:
    from primeforge._internal.errors import RangeError
    from primeforge.engine.orchestrator import RunOutcome

console = Console()
err_console = Console(stderr=True)

_OUTCOME_STYLES = {
    OutcomeKind.COMPLETED: "green",
    OutcomeKind.TIMED_OUT: "yellow",
    OutcomeKind.CANCELLED: "yellow",
    OutcomeKind.WRITE_ERROR: "red",
}


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"primeforge {__version__}")
        raise typer.Exit


def _echo_range_error(text: str, error: RangeError) -> None:
    """Print a rejected range while the search goes on."""
    console.print(f"Error parsing range {text}: {error}", markup=False, highlight=False, soft_wrap=True)


def _print_summary(outcome: RunOutcome) -> None:
    """Print a per-range breakdown of the run to stderr.

    Args:
        outcome: Resolved run outcome.
    """
    table = Table(
        title="Prime Search",
        show_header=True,
        header_style="bold cyan",
        expand=True,
    )
    table.add_column("Range")
    table.add_column("Primes", justify="right")
    table.add_column("Status")

    for report in outcome.range_reports:
        if report.error is not None:
            status = f"[red]{report.error}[/red]"
        elif report.cancelled:
            status = "[yellow]stopped early[/yellow]"
        else:
            status = "[green]done[/green]"
        table.add_row(report.text, str(report.primes_emitted), status)

    table.add_row("[bold]Written[/bold]", str(outcome.primes_written), outcome.kind.name.lower())
    table.caption = f"Duration: {outcome.duration_seconds:.2f}s"
    err_console.print(table)


def search_cmd(
    output_file: Path = typer.Option(
        ...,
        "--file",
        "-f",
        help="Output file name (required).",
        dir_okay=False,
    ),
    timeout: int = typer.Option(
        ...,
        "--timeout",
        "-t",
        help="Timeout in seconds (required).",
        min=0,
    ),
    ranges: list[str] = typer.Option(
        ...,
        "--range",
        "-r",
        help="Number range in format start:end (required, repeatable).",
    ),
    summary: bool = typer.Option(
        False,
        "--summary",
        help="Print a per-range summary table after the run.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit structured JSON logs.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Find prime numbers in the given ranges and write them to a file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    try:
        config = build_config(
            output_file=output_file,
            timeout_seconds=timeout,
            ranges=ranges,
            log_level=log_level,
        )
    except ConfigError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    outcome = run_search(config, json_logs=json_logs, on_range_error=_echo_range_error)

    if summary:
        _print_summary(outcome)

    style = _OUTCOME_STYLES[outcome.kind]
    console.print(f"[{style}]{escape(outcome.message)}[/{style}]", highlight=False, soft_wrap=True)
