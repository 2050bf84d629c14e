"""primeforge: find primes across ranges, concurrently, within a time budget."""

from __future__ import annotations

from primeforge._internal.config import SearchConfig, build_config
from primeforge.engine.cancellation import CancellationToken
from primeforge.engine.orchestrator import OutcomeKind, PrimeSearch, RunOutcome, run_search
from primeforge.search.primality import is_prime
from primeforge.search.ranges import Range, parse_range

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "OutcomeKind",
    "PrimeSearch",
    "Range",
    "RunOutcome",
    "SearchConfig",
    "build_config",
    "is_prime",
    "parse_range",
    "run_search",
]
