"""Main Typer application, entry point for the ``find-primes`` CLI."""

from __future__ import annotations

import typer

from primeforge.cli.search import search_cmd

app = typer.Typer(
    name="find-primes",
    help="Find prime numbers in given ranges and write them to a file.",
    add_completion=False,
    rich_markup_mode="rich",
)

app.command(
    "find-primes",
    help="A console utility to find prime numbers in specified ranges and output them to a file.",
)(search_cmd)
