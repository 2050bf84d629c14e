"""Scan processes: primality tests run in spawned processes, off the event loop."""

from __future__ import annotations

import asyncio
import contextlib
import multiprocessing
import multiprocessing.process
import signal
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

from primeforge._internal.errors import ScanProcessError
from primeforge._internal.logging import get_logger
from primeforge.search.primality import primes_between

if TYPE_CHECKING:
    from multiprocessing.connection import Connection

    from primeforge.engine.cancellation import CancellationToken

logger = get_logger("engine.scanner")

# Seconds an idle scan process gets to exit before it is terminated.
JOIN_TIMEOUT_SECONDS = 2.0


def run_scan_process(conn: Connection) -> None:
    """Entry point for a spawned scan process.

    Answers each ``(start, end)`` job on ``conn`` with the ascending list
    of primes in that interval. Exits on a None job or once the parent's
    end of the pipe is gone.

    Args:
        conn: Child end of the pipe shared with the pool.
    """
    # Ctrl-C reaches the whole process group; only the parent acts on it
    signal.signal(signal.SIGINT, signal.SIG_IGN)

    with conn, contextlib.suppress(EOFError, BrokenPipeError):
        while (job := conn.recv()) is not None:
            start, end = job
            conn.send(primes_between(start, end))


@dataclass(eq=False)
class _Slot:
    process: multiprocessing.process.BaseProcess
    conn: Connection


class ScanPool:
    """Fixed set of spawned processes that run range scans.

    A single trial division can take seconds for 64-bit candidates, so
    none run on the event loop thread. Each process serves one job at a
    time: :meth:`scan` hands a job to an idle process and awaits the answer
    under the run token, which keeps the deadline live however long the
    job takes. A job abandoned on cancellation leaves its process busy
    until :meth:`close` terminates it.

    Processes are started on the first scan, so runs that never scan
    (every range malformed, deadline already expired) spawn nothing.

    Attributes:
        size: Number of scan processes.
    """

    def __init__(self, size: int) -> None:
        """Initialize the pool.

        Args:
            size: Number of scan processes. Must be >= 1.

        Raises:
            ValueError: If size is not positive.
        """
        if size < 1:
            msg = f"size must be >= 1, got {size}"
            raise ValueError(msg)

        self.size = size
        self._ctx = multiprocessing.get_context("spawn")
        self._slots: list[_Slot] = []
        self._idle: asyncio.Queue[_Slot] = asyncio.Queue()
        # Blocking pipe reads happen here, one thread per process
        self._readers = ThreadPoolExecutor(max_workers=size, thread_name_prefix="scan-reader")
        self._started = False
        self._closed = False

    def _start(self) -> None:
        for i in range(self.size):
            parent_conn, child_conn = self._ctx.Pipe()
            process = self._ctx.Process(
                target=run_scan_process,
                args=(child_conn,),
                name=f"primeforge-scan-{i}",
                daemon=True,
            )
            process.start()
            # The child holds its own copy; ours would hide EOF on its death
            child_conn.close()

            slot = _Slot(process=process, conn=parent_conn)
            self._slots.append(slot)
            self._idle.put_nowait(slot)
            logger.debug("Started scan process: pid=%d, name=%s", process.pid or 0, process.name)

        self._started = True
        logger.debug("Started %d scan process(es)", self.size)

    async def scan(self, start: int, end: int, token: CancellationToken) -> list[int]:
        """Return the primes in ``[start, end]`` in ascending order.

        Waits for an idle process if all are busy.

        Args:
            start: First candidate.
            end: Last candidate, ``>= start``.
            token: Run token; cancelling it abandons the wait at once.

        Returns:
            The primes found.

        Raises:
            RunCancelledError: If the token is cancelled before the answer.
            ScanProcessError: If the pool is closed or the process died.
        """
        if self._closed:
            msg = "scan pool is closed"
            raise ScanProcessError(msg)
        if not self._started:
            self._start()

        slot = await token.guard(self._idle.get())
        loop = asyncio.get_running_loop()
        try:
            slot.conn.send((start, end))
            primes: list[int] = await token.guard(loop.run_in_executor(self._readers, slot.conn.recv))
        except (EOFError, OSError) as exc:
            msg = f"scan process {slot.process.name} exited unexpectedly"
            raise ScanProcessError(msg) from exc

        self._idle.put_nowait(slot)
        return primes

    def close(self) -> None:
        """Stop every scan process. Busy ones are terminated. Idempotent."""
        if self._closed:
            return
        self._closed = True

        idle: set[_Slot] = set()
        while not self._idle.empty():
            idle.add(self._idle.get_nowait())

        for slot in self._slots:
            if slot in idle:
                with contextlib.suppress(OSError):
                    slot.conn.send(None)
            else:
                logger.debug("Terminating busy scan process %s", slot.process.name)
                slot.process.terminate()

        for slot in self._slots:
            slot.process.join(timeout=JOIN_TIMEOUT_SECONDS)
            if slot.process.is_alive():
                logger.warning("Scan process %s did not exit in time, terminating", slot.process.name)
                slot.process.terminate()
                slot.process.join(timeout=JOIN_TIMEOUT_SECONDS)

        # Every child is gone, so pending reads have hit EOF
        self._readers.shutdown(wait=True)
        for slot in self._slots:
            slot.conn.close()

        if self._slots:
            logger.debug("All %d scan process(es) stopped", len(self._slots))
