"""Primality testing and range parsing for primeforge.

Both components are pure: no I/O, no shared state. The engine drives them
from range workers and spawned scan processes.
"""

from __future__ import annotations

from primeforge.search.primality import is_prime, primes_between
from primeforge.search.ranges import Range, parse_range

__all__ = [
    "Range",
    "is_prime",
    "parse_range",
    "primes_between",
]
