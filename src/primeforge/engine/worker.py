"""Range worker: scans one range and emits its primes onto the result stream."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from primeforge._internal.config import DEFAULT_CHUNK_SIZE
from primeforge._internal.errors import RangeError, RunCancelledError, ScanProcessError
from primeforge._internal.logging import get_logger
from primeforge.search.ranges import parse_range

if TYPE_CHECKING:
    from primeforge.engine.cancellation import CancellationToken
    from primeforge.engine.channels import ResultStream
    from primeforge.engine.scanner import ScanPool
    from primeforge.search.ranges import Range

logger = get_logger("engine.worker")


@dataclass(frozen=True)
class RangeReport:
    """What one range worker did.

    Attributes:
        text: The range text as supplied.
        range: Parsed range, or None if parsing failed.
        primes_emitted: Primes handed to the result stream.
        error: Parse error for this range, if any.
        cancelled: True if the worker stopped before exhausting the range.
    """

    text: str
    range: Range | None = None
    primes_emitted: int = 0
    error: RangeError | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        """Return True if the range parsed."""
        return self.error is None


async def process_range(
    token: CancellationToken,
    text: str,
    stream: ResultStream,
    pool: ScanPool,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> RangeReport:
    """Scan ``text``'s range in ascending order and send each prime.

    The range is scanned ``chunk_size`` candidates at a time in ``pool``;
    chunks run one after another, so primes reach the stream in ascending
    order. The token is checked before each chunk and cancels a chunk in
    flight, after which nothing more is sent.

    A malformed range is logged and reported, never raised: it only ends
    this worker. A cancellation mid-range is not an error either; the
    worker returns with ``cancelled=True``.

    Args:
        token: Run token shared with every other task.
        text: ``start:end`` range text.
        stream: Result stream; sends block while it is full.
        pool: Scan processes doing the primality tests.
        chunk_size: Candidates per scan job.

    Returns:
        A RangeReport for this range.
    """
    try:
        bounds = parse_range(text)
    except RangeError as exc:
        logger.warning("Error parsing range %s: %s", text, exc, extra={"range": text})
        return RangeReport(text=text, error=exc)

    logger.debug("Scanning range %s (%d candidates)", bounds, bounds.size, extra={"range": text})

    emitted = 0
    for low, high in bounds.chunks(chunk_size):
        try:
            if token.is_cancelled():
                raise token.error()
            for prime in await pool.scan(low, high, token):
                await stream.send(prime, token)
                emitted += 1
        except RunCancelledError:
            logger.debug("Range %s cancelled at chunk %d:%d", bounds, low, high, extra={"range": text})
            return RangeReport(text=text, range=bounds, primes_emitted=emitted, cancelled=True)
        except ScanProcessError as exc:
            logger.error("Range %s stopped: %s", bounds, exc, extra={"range": text})
            return RangeReport(text=text, range=bounds, primes_emitted=emitted, cancelled=True)

    logger.debug("Range %s done: %d prime(s)", bounds, emitted, extra={"range": text})
    return RangeReport(text=text, range=bounds, primes_emitted=emitted)
