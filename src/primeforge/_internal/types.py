"""Shared type aliases for primeforge."""

from __future__ import annotations

from collections.abc import Callable

from primeforge._internal.errors import RangeError

# Inclusive (start, end) bounds of a parsed range.
Bounds = tuple[int, int]

# Invoked by the writer with each prime after it is written.
WriteCallback = Callable[[int], None]

# Invoked with a range's text and parse error when a worker rejects it.
RangeErrorCallback = Callable[[str, RangeError], None]
