"""Run configuration for primeforge."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from primeforge._internal.errors import ConfigError

DEFAULT_QUEUE_CAPACITY = 100
DEFAULT_CHUNK_SIZE = 256


@dataclass(frozen=True)
class SearchConfig:
    """Immutable configuration for one prime search run.

    Constructed once at startup (normally via :func:`build_config`) and
    passed explicitly into the orchestrator.

    Attributes:
        output_file: File the primes are written to. Truncated if present.
        timeout_seconds: Run-wide deadline, measured from the start of the run.
        ranges: Textual ``start:end`` ranges, one range worker each.
        queue_capacity: Bound of the result stream between workers and writer.
        chunk_size: Candidates per scan job handed to a scan process.
        scan_processes: Scan processes to spawn. None means one per CPU.
            Never more than there are ranges.
        log_level: Logging level for the ``primeforge`` namespace.
    """

    output_file: Path
    timeout_seconds: float
    ranges: tuple[str, ...]
    queue_capacity: int = DEFAULT_QUEUE_CAPACITY
    chunk_size: int = DEFAULT_CHUNK_SIZE
    scan_processes: int | None = None
    log_level: int = logging.INFO

    @property
    def pool_size(self) -> int:
        """Return how many scan processes a run spawns."""
        wanted = self.scan_processes if self.scan_processes is not None else os.cpu_count() or 1
        return max(1, min(wanted, len(self.ranges)))


def build_config(
    output_file: str | Path,
    timeout_seconds: float,
    ranges: list[str] | tuple[str, ...],
    *,
    queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    scan_processes: int | None = None,
    log_level: int = logging.INFO,
) -> SearchConfig:
    """Validate inputs and build a :class:`SearchConfig`.

    Range texts are kept verbatim; malformed ranges are a per-range failure
    reported by the worker, not a configuration error.

    Args:
        output_file: Output file path.
        timeout_seconds: Run deadline in seconds. Zero yields an
            already-expired deadline.
        ranges: At least one ``start:end`` text.
        queue_capacity: Result stream bound. Must be >= 1.
        chunk_size: Candidates per scan job. Must be >= 1.
        scan_processes: Scan process count, or None for one per CPU.
            Must be >= 1 when given.
        log_level: Logging level.

    Returns:
        Populated SearchConfig instance.

    Raises:
        ConfigError: If any value is out of its accepted range.
    """
    if not str(output_file):
        msg = "output file must not be empty"
        raise ConfigError(msg)

    if timeout_seconds < 0:
        msg = f"timeout must be >= 0 seconds, got: {timeout_seconds}"
        raise ConfigError(msg)

    if not ranges:
        msg = "at least one range is required"
        raise ConfigError(msg)

    if queue_capacity < 1:
        msg = f"queue capacity must be >= 1, got: {queue_capacity}"
        raise ConfigError(msg)

    if chunk_size < 1:
        msg = f"chunk size must be >= 1, got: {chunk_size}"
        raise ConfigError(msg)

    if scan_processes is not None and scan_processes < 1:
        msg = f"scan processes must be >= 1, got: {scan_processes}"
        raise ConfigError(msg)

    return SearchConfig(
        output_file=Path(output_file),
        timeout_seconds=timeout_seconds,
        ranges=tuple(ranges),
        queue_capacity=queue_capacity,
        chunk_size=chunk_size,
        scan_processes=scan_processes,
        log_level=log_level,
    )
