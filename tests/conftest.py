"""Shared test fixtures for the primeforge test suite."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from primeforge.engine.scanner import ScanPool

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator
    from pathlib import Path


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_primeforge_logger() -> Iterator[None]:
    """Undo ``setup_logging`` side effects between tests.

    The CLI binds a handler to whatever stderr is current, which the
    CliRunner swaps out per invocation.
    """
    yield
    logger = logging.getLogger("primeforge")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def output_file(tmp_path: Path) -> Path:
    """Path for a run's output file (not created)."""
    return tmp_path / "primes.txt"


@pytest.fixture
def read_primes() -> Callable[[Path], list[int]]:
    """Return a helper that reads an output file back as a list of ints."""

    def _read(path: Path) -> list[int]:
        text = path.read_text(encoding="utf-8")
        if text:
            assert text.endswith("\n"), "every line must be newline-terminated"
        return [int(line) for line in text.splitlines()]

    return _read


@pytest.fixture
async def scan_pool() -> AsyncIterator[ScanPool]:
    """Two-process scan pool, closed after the test."""
    pool = ScanPool(2)
    yield pool
    pool.close()
