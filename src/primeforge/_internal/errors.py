"""Custom exception hierarchy for primeforge."""

from __future__ import annotations


class PrimeForgeError(Exception):
    """Base exception for all primeforge errors.

    All custom exceptions in primeforge inherit from this class, making it
    easy to catch any primeforge-specific error with a single except clause.
    """


class ConfigError(PrimeForgeError):
    """Raised when the run configuration is invalid.

    Examples:
        - No ranges were supplied.
        - The timeout is negative.
        - The result queue capacity is not positive.
    """


class RangeError(PrimeForgeError):
    """Raised when a textual ``start:end`` range cannot be parsed."""


class RangeFormatError(RangeError):
    """The range text does not split into exactly two parts on ``:``."""


class RangeStartError(RangeError):
    """The start of the range is not a valid base-10 integer."""


class RangeEndError(RangeError):
    """The end of the range is not a valid base-10 integer."""


class RangeOrderError(RangeError):
    """The start of the range is greater than its end."""


class OutputError(PrimeForgeError):
    """Raised when the output file cannot be created, written or closed."""


class ResultWriteError(PrimeForgeError):
    """Run-level error escalated when the result writer fails."""


class StreamClosedError(PrimeForgeError):
    """Raised on a send to, or a second close of, a closed result stream."""


class ScanProcessError(PrimeForgeError):
    """Raised when a scan process is unavailable or dies mid-job."""


class RunCancelledError(PrimeForgeError):
    """Raised by blocking operations once the run's token is cancelled.

    Cancellation is an expected terminal condition, not an application
    error; callers treat it as a signal to stop.
    """


class DeadlineExceededError(RunCancelledError):
    """The run's deadline expired."""


class RunAbortedError(RunCancelledError):
    """The run was cancelled explicitly (signal or ``cancel()`` call)."""
