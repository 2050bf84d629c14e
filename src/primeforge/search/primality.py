"""Trial-division primality test."""

from __future__ import annotations

import math


def is_prime(n: int) -> bool:
    """Return True iff ``n`` is prime.

    Trial-divides by every integer from 2 up to ``int(math.sqrt(n))``
    inclusive. The bound is taken from the floating point square root on
    purpose so results match the reference output exactly, including at
    magnitudes where the float is not exact.

    Args:
        n: Candidate integer. Values <= 1 are never prime.

    Returns:
        True if no divisor was found, False otherwise.
    """
    if n <= 1:
        return False
    limit = int(math.sqrt(n))
    for i in range(2, limit + 1):
        if n % i == 0:
            return False
    return True


def primes_between(start: int, end: int) -> list[int]:
    """Return the primes in ``[start, end]`` in ascending order."""
    return [n for n in range(start, end + 1) if is_prime(n)]
