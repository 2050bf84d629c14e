"""Run orchestration: fan out range workers, fan in to one writer, resolve one outcome."""

from __future__ import annotations

import asyncio
import contextlib
import random
import signal
import sys
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

from primeforge._internal.errors import ResultWriteError, RunCancelledError
from primeforge._internal.logging import get_logger, setup_logging
from primeforge.engine.cancellation import CancellationToken, CancelReason
from primeforge.engine.channels import FirstErrorSlot, ProducerGroup, ResultStream
from primeforge.engine.scanner import ScanPool
from primeforge.engine.worker import RangeReport, process_range
from primeforge.engine.writer import write_results

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from primeforge._internal.config import SearchConfig
    from primeforge._internal.errors import RangeError
    from primeforge._internal.types import RangeErrorCallback, WriteCallback

logger = get_logger("engine.orchestrator")

# Seconds background tasks get to wind down after the outcome is known.
SHUTDOWN_GRACE_SECONDS = 5.0

_CANCEL_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class RunState(Enum):
    """State machine for a prime search run."""

    CREATED = auto()
    STARTING = auto()
    RUNNING = auto()
    RESOLVED = auto()


class OutcomeKind(Enum):
    """Terminal classification of a run."""

    TIMED_OUT = auto()
    CANCELLED = auto()
    WRITE_ERROR = auto()
    COMPLETED = auto()


@dataclass(frozen=True)
class RunOutcome:
    """The single terminal result of a run.

    Attributes:
        kind: Which trigger resolved the run.
        error: The escalated writer error for WRITE_ERROR, else None.
        primes_written: Lines the writer had written by the end of the run.
        duration_seconds: Wall-clock time from start to resolution.
        range_reports: One report per input range, in input order.
    """

    kind: OutcomeKind
    error: BaseException | None = None
    primes_written: int = 0
    duration_seconds: float = 0.0
    range_reports: tuple[RangeReport, ...] = field(default_factory=tuple)

    @property
    def message(self) -> str:
        """Return the human-readable outcome line."""
        if self.kind is OutcomeKind.TIMED_OUT:
            return "Operation timed out"
        if self.kind is OutcomeKind.CANCELLED:
            return "Operation was cancelled"
        if self.kind is OutcomeKind.WRITE_ERROR:
            return f"Error occurred: {self.error}"
        return "All results processed and written"

    @property
    def range_errors(self) -> list[tuple[str, RangeError]]:
        """Return ``(range text, parse error)`` for every malformed range."""
        return [(r.text, r.error) for r in self.range_reports if r.error is not None]




class PrimeSearch:
    """Runs one prime search over the configured ranges.

    Spawns one result writer and one range worker per range, all sharing
    a deadline-bound :class:`CancellationToken`. Range workers hand their
    primality tests to a :class:`ScanPool`, so the event loop only moves
    primes and watches the clock. Two supervisory tasks turn group
    completion into signals: one closes the result stream once every
    worker has finished, the other raises the completion signal once the
    writer has drained it. The run resolves on whichever of deadline
    expiry or cancellation, a writer error, or completion happens first.

    State machine: CREATED -> STARTING -> RUNNING -> RESOLVED
    """

    def __init__(
        self,
        config: SearchConfig,
        *,
        handle_signals: bool = True,
        on_write: WriteCallback | None = None,
        on_range_error: RangeErrorCallback | None = None,
    ) -> None:
        """Initialize the search.

        Args:
            config: Run configuration.
            handle_signals: Install SIGINT/SIGTERM handlers that cancel the
                run while it is in progress.
            on_write: Optional callback invoked with each prime once written.
            on_range_error: Optional callback invoked with the range text
                and parse error as soon as a range worker rejects its range.
        """
        self._config = config
        self._handle_signals = handle_signals
        self._on_write = on_write
        self._on_range_error = on_range_error

        self._state = RunState.CREATED
        self._token: CancellationToken | None = None
        self._reports: dict[int, RangeReport] = {}
        self._primes_written = 0

    @property
    def state(self) -> RunState:
        """Return the current run state."""
        return self._state

    def cancel(self) -> None:
        """Cancel a running search. The run resolves as CANCELLED."""
        if self._token is not None:
            logger.info("Cancellation requested")
            self._token.cancel()

    async def run(self) -> RunOutcome:
        """Execute the run and return its outcome.

        Returns:
            The RunOutcome. Timeouts, cancellations and writer errors are
            outcomes, not exceptions.
        """
        config = self._config
        self._state = RunState.STARTING
        logger.info(
            "Starting prime search: ranges=%d, timeout=%ss, output=%s",
            len(config.ranges),
            config.timeout_seconds,
            config.output_file,
        )

        start_time = time.monotonic()
        token = CancellationToken.with_timeout(config.timeout_seconds)
        self._token = token
        stream = ResultStream(config.queue_capacity)
        errors = FirstErrorSlot()
        completed = asyncio.Event()
        producers = ProducerGroup(len(config.ranges))
        pool = ScanPool(config.pool_size)

        signals = _cancel_on_signals(self) if self._handle_signals else contextlib.nullcontext()
        tasks: list[asyncio.Task[Any]] = []
        with signals:
            try:
                writer = asyncio.create_task(
                    self._run_writer(token, stream, errors),
                    name="result-writer",
                )
                tasks.append(writer)
                tasks.append(
                    asyncio.create_task(
                        self._signal_completion(writer, completed),
                        name="completion-supervisor",
                    )
                )
                for index, text in enumerate(config.ranges):
                    tasks.append(
                        asyncio.create_task(
                            self._run_worker(index, text, token, stream, pool, producers),
                            name=f"range-worker-{index}",
                        )
                    )
                tasks.append(
                    asyncio.create_task(
                        self._close_when_producers_done(producers, stream, token),
                        name="stream-supervisor",
                    )
                )

                self._state = RunState.RUNNING
                kind, error = await self._resolve(token, errors, completed)
                self._state = RunState.RESOLVED
                duration = time.monotonic() - start_time
                logger.debug(
                    "Resolved as %s with %d range worker(s) still running and %d item(s) queued",
                    kind.name,
                    producers.outstanding,
                    stream.qsize(),
                )
            finally:
                # Release everything still gated on the token
                token.cancel()
                try:
                    await _shutdown_tasks(tasks)
                finally:
                    pool.close()
                    token.close()

        outcome = RunOutcome(
            kind=kind,
            error=error,
            primes_written=self._primes_written,
            duration_seconds=duration,
            range_reports=tuple(self._reports[i] for i in sorted(self._reports)),
        )
        logger.info(
            "Prime search resolved: outcome=%s, primes_written=%d, duration=%.2fs",
            kind.name,
            outcome.primes_written,
            duration,
        )
        return outcome

    async def _resolve(
        self,
        token: CancellationToken,
        errors: FirstErrorSlot,
        completed: asyncio.Event,
    ) -> tuple[OutcomeKind, BaseException | None]:
        """Block until the first trigger fires and classify it.

        When several triggers are ready at once one is picked at random;
        there is no priority among them.
        """
        waiters = {
            asyncio.ensure_future(token.wait()): "token",
            asyncio.ensure_future(errors.wait()): "error",
            asyncio.ensure_future(completed.wait()): "completed",
        }
        try:
            done, _pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

        trigger = random.choice(sorted(waiters[w] for w in done))  # noqa: S311

        if trigger == "token":
            if token.reason is CancelReason.DEADLINE_EXCEEDED:
                return OutcomeKind.TIMED_OUT, None
            return OutcomeKind.CANCELLED, None
        if trigger == "error":
            return OutcomeKind.WRITE_ERROR, errors.error
        return OutcomeKind.COMPLETED, None

    async def _run_writer(
        self,
        token: CancellationToken,
        stream: ResultStream,
        errors: FirstErrorSlot,
    ) -> bool:
        """Run the writer and escalate its failure.

        Returns:
            True if the writer drained the stream to its end.
        """
        try:
            await write_results(token, stream, self._config.output_file, on_write=self._record_write)
        except RunCancelledError as exc:
            logger.debug("Writer stopped: %s", exc)
            return False
        except Exception as exc:
            logger.error("Result writer failed: %s", exc)
            error = ResultWriteError(f"error writing results: {exc}")
            error.__cause__ = exc
            errors.report(error)
            return False
        return True

    async def _signal_completion(
        self,
        writer: asyncio.Task[bool],
        completed: asyncio.Event,
    ) -> None:
        """Raise the completion signal once the writer has drained the stream."""
        if await writer:
            completed.set()

    async def _run_worker(
        self,
        index: int,
        text: str,
        token: CancellationToken,
        stream: ResultStream,
        pool: ScanPool,
        producers: ProducerGroup,
    ) -> None:
        try:
            report = await process_range(token, text, stream, pool, chunk_size=self._config.chunk_size)
            self._reports[index] = report
            if report.error is not None and self._on_range_error is not None:
                self._on_range_error(text, report.error)
        finally:
            producers.done()

    async def _close_when_producers_done(
        self,
        producers: ProducerGroup,
        stream: ResultStream,
        token: CancellationToken,
    ) -> None:
        """Close the result stream once every range worker has finished."""
        await producers.wait()
        try:
            await stream.close(token)
        except RunCancelledError:
            logger.debug("Run cancelled before the result stream could be closed")

    def _record_write(self, prime: int) -> None:
        self._primes_written += 1
        if self._on_write is not None:
            self._on_write(prime)


@contextlib.contextmanager
def _cancel_on_signals(search: PrimeSearch) -> Iterator[None]:
    """Cancel ``search`` on SIGINT or SIGTERM while the block runs.

    Prefers the running loop's signal handlers. Where the loop has none
    (the Windows proactor loop) plain ``signal.signal`` handlers are used
    and hop onto the loop thread. Whatever was installed before is
    restored on exit.
    """
    loop = asyncio.get_running_loop()

    def _on_signal(signum: int) -> None:
        logger.info("Received %s, cancelling run", signal.Signals(signum).name)
        search.cancel()

    on_loop: list[signal.Signals] = []
    replaced: dict[signal.Signals, Any] = {}
    for sig in _CANCEL_SIGNALS:
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
        except NotImplementedError:
            replaced[sig] = signal.signal(sig, lambda signum, _frame: loop.call_soon_threadsafe(_on_signal, signum))
        else:
            on_loop.append(sig)

    try:
        yield
    finally:
        for sig in on_loop:
            loop.remove_signal_handler(sig)
        for sig, previous in replaced.items():
            signal.signal(sig, previous)


async def _shutdown_tasks(tasks: list[asyncio.Task[Any]]) -> None:
    """Wait for background tasks to finish, cancelling stragglers.

    Args:
        tasks: Tasks started for the run.
    """
    if not tasks:
        return

    _done, pending = await asyncio.wait(tasks, timeout=SHUTDOWN_GRACE_SECONDS)
    for task in pending:
        task.cancel()
    if pending:
        logger.warning("Cancelled %d task(s) that outlived the run", len(pending))
        await asyncio.wait(pending, timeout=2.0)

    for task in tasks:
        if task.done() and not task.cancelled() and task.exception() is not None:
            logger.error("Task %s failed", task.get_name(), exc_info=task.exception())
    logger.debug("All run tasks shut down")


def _event_loop_factory() -> Callable[[], asyncio.AbstractEventLoop] | None:
    """Return uvloop's loop factory if available.

    Falls back to the default asyncio event loop on Windows or if uvloop
    is not installed.
    """
    if sys.platform == "win32":
        return None

    try:
        import uvloop
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")
        return None

    logger.debug("Using uvloop event loop")
    return uvloop.new_event_loop


def run_search(
    config: SearchConfig,
    *,
    json_logs: bool = False,
    handle_signals: bool = True,
    on_range_error: RangeErrorCallback | None = None,
) -> RunOutcome:
    """Execute a prime search in the current process.

    Sets up logging, starts an event loop (uvloop when available) and runs
    a :class:`PrimeSearch` to its outcome.

    Args:
        config: Run configuration.
        json_logs: Emit structured JSON logs.
        handle_signals: Let SIGINT/SIGTERM cancel the run.
        on_range_error: Called as soon as a range is rejected.

    Returns:
        The run's outcome.
    """
    setup_logging(level=config.log_level, json_format=json_logs)

    search = PrimeSearch(config, handle_signals=handle_signals, on_range_error=on_range_error)
    with asyncio.Runner(loop_factory=_event_loop_factory()) as runner:
        return runner.run(search.run())
