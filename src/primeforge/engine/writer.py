"""Result writer: the single consumer of the result stream and the only file mutator."""

from __future__ import annotations

from typing import IO, TYPE_CHECKING

from primeforge._internal.errors import OutputError
from primeforge._internal.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

    from primeforge._internal.types import WriteCallback
    from primeforge.engine.cancellation import CancellationToken
    from primeforge.engine.channels import ResultStream

logger = get_logger("engine.writer")


def _open_output(path: Path) -> IO[str]:
    """Create or truncate the output file."""
    return path.open("w", encoding="utf-8")


def _close_output(handle: IO[str]) -> OutputError | None:
    """Close ``handle`` and return the failure instead of raising it."""
    try:
        handle.close()
    except OSError as exc:
        error = OutputError(f"error closing output file: {exc}")
        error.__cause__ = exc
        return error
    return None


async def write_results(
    token: CancellationToken,
    stream: ResultStream,
    path: Path,
    *,
    on_write: WriteCallback | None = None,
) -> int:
    """Drain ``stream`` into ``path``, one decimal integer per line.

    Returns normally once the stream is closed and drained. On token
    cancellation the file is left as far as it was written.

    The file is closed on every exit path. A close failure after a
    successful drain is raised as an :class:`OutputError`; a close failure
    after an earlier error is raised together with it in an
    ``ExceptionGroup``.

    Args:
        token: Run token.
        stream: Result stream to drain.
        path: Output file, created or truncated.
        on_write: Optional callback invoked with each prime once written.

    Returns:
        Number of lines written.

    Raises:
        OutputError: If the file cannot be created, written or closed.
        RunCancelledError: If the token is cancelled before the stream ends.
    """
    try:
        handle = _open_output(path)
    except OSError as exc:
        msg = f"error creating output file: {exc}"
        raise OutputError(msg) from exc

    logger.debug("Writing results to %s", path)

    try:
        written = await _drain(token, stream, handle, on_write)
    except Exception as exc:
        close_error = _close_output(handle)
        if close_error is None:
            raise
        raise ExceptionGroup("output failed and could not be closed", [exc, close_error]) from None
    except BaseException:
        # Task cancellation: still release the file
        _close_output(handle)
        raise

    close_error = _close_output(handle)
    if close_error is not None:
        raise close_error

    logger.debug("Wrote %d prime(s) to %s", written, path)
    return written


async def _drain(
    token: CancellationToken,
    stream: ResultStream,
    handle: IO[str],
    on_write: WriteCallback | None,
) -> int:
    written = 0
    while True:
        if token.is_cancelled():
            raise token.error()

        prime = await stream.receive(token)
        if prime is None:
            return written

        try:
            handle.write(f"{prime}\n")
        except OSError as exc:
            msg = f"error writing to file: {exc}"
            raise OutputError(msg) from exc

        written += 1
        if on_write is not None:
            on_write(prime)
