"""Parsing of textual ``start:end`` ranges."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from primeforge._internal.errors import (
    RangeEndError,
    RangeFormatError,
    RangeOrderError,
    RangeStartError,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from primeforge._internal.types import Bounds

# Signed 64-bit limits of the integers a range may hold.
INT_MIN = -(2**63)
INT_MAX = 2**63 - 1

_DECIMAL = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class Range:
    """An inclusive integer interval, ``start <= end``.

    Attributes:
        start: First value of the interval.
        end: Last value of the interval.
    """

    start: int
    end: int

    @property
    def size(self) -> int:
        """Return the number of values in the range."""
        return self.end - self.start + 1

    def chunks(self, size: int) -> Iterator[Bounds]:
        """Split the range into consecutive inclusive pieces of ``size`` values.

        Pieces come in ascending order; the last one may be shorter.

        Args:
            size: Values per piece. Must be >= 1.

        Raises:
            ValueError: If size is not positive.
        """
        if size < 1:
            msg = f"chunk size must be >= 1, got {size}"
            raise ValueError(msg)
        low = self.start
        while low <= self.end:
            high = min(low + size - 1, self.end)
            yield low, high
            low = high + 1

    def __str__(self) -> str:
        return f"{self.start}:{self.end}"


def _parse_int(text: str) -> int | None:
    """Parse a signed base-10 integer, or return None.

    Stricter than ``int()``: no surrounding whitespace, no digit
    separators, no non-ASCII digits, and the value must fit in 64 bits.
    """
    if _DECIMAL.fullmatch(text) is None:
        return None
    value = int(text)
    if not INT_MIN <= value <= INT_MAX:
        return None
    return value


def parse_range(text: str) -> Range:
    """Parse ``"start:end"`` into a :class:`Range`.

    Args:
        text: Range text with exactly one colon between two integers.

    Returns:
        The parsed range.

    Raises:
        RangeFormatError: If the text does not split into exactly two parts.
        RangeStartError: If the start is not a valid integer.
        RangeEndError: If the end is not a valid integer.
        RangeOrderError: If start > end.
    """
    parts = text.split(":")
    if len(parts) != 2:
        msg = "invalid range format"
        raise RangeFormatError(msg)

    start = _parse_int(parts[0])
    if start is None:
        msg = "invalid start number"
        raise RangeStartError(msg)

    end = _parse_int(parts[1])
    if end is None:
        msg = "invalid end number"
        raise RangeEndError(msg)

    if start > end:
        msg = "start number must be less than or equal to end number"
        raise RangeOrderError(msg)

    return Range(start=start, end=end)
