"""End-to-end tests for the find-primes CLI."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from primeforge import __version__
from primeforge.cli import search as search_module
from primeforge.cli.app import app

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

runner = CliRunner()


# ---------------------------------------------------------------------------
# Tests: version and help
# ---------------------------------------------------------------------------


def test_version_flag():
    """--version prints version and exits 0."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_version_short_flag():
    """-V also prints version."""
    result = runner.invoke(app, ["-V"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_output():
    """--help lists the required flags."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "--file" in result.output
    assert "--timeout" in result.output
    assert "--range" in result.output


# ---------------------------------------------------------------------------
# Tests: flag validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "args",
    [
        ["-t", "5", "-r", "1:10"],
        ["-f", "out.txt", "-r", "1:10"],
        ["-f", "out.txt", "-t", "5"],
        [],
    ],
)
def test_missing_required_flag(args: list[str], tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Any missing required flag fails before work begins."""
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, args)
    assert result.exit_code != 0
    assert not (tmp_path / "out.txt").exists()


def test_negative_timeout_rejected(output_file: Path):
    """--timeout must be >= 0."""
    result = runner.invoke(app, ["-f", str(output_file), "-t", "-1", "-r", "1:10"])
    assert result.exit_code != 0
    assert not output_file.exists()


def test_non_integer_timeout_rejected(output_file: Path):
    """--timeout is whole seconds."""
    result = runner.invoke(app, ["-f", str(output_file), "-t", "1.5", "-r", "1:10"])
    assert result.exit_code != 0


# ---------------------------------------------------------------------------
# Tests: runs
# ---------------------------------------------------------------------------


def test_run_writes_primes(output_file: Path, read_primes: Callable[[Path], list[int]]):
    """A normal run reports completion and writes every prime once."""
    result = runner.invoke(
        app,
        ["--file", str(output_file), "--timeout", "10", "--range", "1:10", "--range", "10:20"],
    )
    assert result.exit_code == 0, result.output
    assert "All results processed and written" in result.output
    primes = read_primes(output_file)
    assert sorted(primes) == [2, 3, 5, 7, 11, 13, 17, 19]


def test_short_flags(output_file: Path, read_primes: Callable[[Path], list[int]]):
    """-f / -t / -r are accepted."""
    result = runner.invoke(app, ["-f", str(output_file), "-t", "10", "-r", "20:30"])
    assert result.exit_code == 0, result.output
    assert read_primes(output_file) == [23, 29]


def test_malformed_range_reported(output_file: Path, read_primes: Callable[[Path], list[int]]):
    """A bad range is reported while the others still run."""
    result = runner.invoke(
        app,
        ["-f", str(output_file), "-t", "10", "-r", "abc:5", "-r", "1:10"],
    )
    assert result.exit_code == 0, result.output
    assert "Error parsing range abc:5: invalid start number" in result.output
    assert "All results processed and written" in result.output
    assert sorted(read_primes(output_file)) == [2, 3, 5, 7]


def test_range_error_printed_before_the_run_resolves(output_file: Path, monkeypatch: pytest.MonkeyPatch):
    """A rejected range is echoed straight away, not after the deadline."""
    echoed_at: list[float] = []
    echo = search_module._echo_range_error

    def _timed_echo(text, error):
        echoed_at.append(time.monotonic())
        echo(text, error)

    monkeypatch.setattr(search_module, "_echo_range_error", _timed_echo)

    started = time.monotonic()
    result = runner.invoke(app, ["-f", str(output_file), "-t", "1", "-r", "x:1", "-r", "1:100000000000"])

    assert result.exit_code == 0, result.output
    assert len(echoed_at) == 1
    assert echoed_at[0] - started < 0.9
    assert time.monotonic() - started >= 1.0
    assert result.output.index("Error parsing range x:1: invalid start number") < result.output.index(
        "Operation timed out"
    )


def test_zero_timeout(output_file: Path):
    """timeout=0 is accepted and resolves without hanging."""
    result = runner.invoke(app, ["-f", str(output_file), "-t", "0", "-r", "1:1000000"])
    assert result.exit_code == 0, result.output
    assert "Operation timed out" in result.output or "All results processed" in result.output


def test_unwritable_output_reported(tmp_path: Path):
    """A file that cannot be created is reported as the run's error, exit 0."""
    target = tmp_path / "missing" / "primes.txt"
    result = runner.invoke(app, ["-f", str(target), "-t", "10", "-r", "1:10"])
    assert result.exit_code == 0, result.output
    assert "Error occurred: error writing results: error creating output file" in result.output


def test_summary_table(output_file: Path):
    """--summary prints a per-range table."""
    result = runner.invoke(
        app,
        ["-f", str(output_file), "-t", "10", "-r", "1:10", "-r", "5:3", "--summary"],
    )
    assert result.exit_code == 0, result.output
    assert "Prime Search" in result.output
    assert "1:10" in result.output


def test_json_logs(output_file: Path):
    """--json-logs does not change the outcome line."""
    result = runner.invoke(app, ["-f", str(output_file), "-t", "10", "-r", "1:10", "--json-logs", "-v"])
    assert result.exit_code == 0, result.output
    assert "All results processed and written" in result.output
