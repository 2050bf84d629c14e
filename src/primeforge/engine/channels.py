"""Signalling primitives between range workers, the writer and the orchestrator.

- :class:`ResultStream`: bounded multi-producer / single-consumer queue of
  primes, closed exactly once.
- :class:`ProducerGroup`: join barrier counting outstanding producers.
- :class:`FirstErrorSlot`: single-slot error notification, first error wins.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from primeforge._internal.config import DEFAULT_QUEUE_CAPACITY
from primeforge._internal.errors import StreamClosedError
from primeforge._internal.logging import get_logger

if TYPE_CHECKING:
    from primeforge.engine.cancellation import CancellationToken

logger = get_logger("engine.channels")

# End-of-input marker; the last item ever put on the queue.
_CLOSED = object()


class ResultStream:
    """Bounded stream of primes from many range workers to one writer.

    Once ``capacity`` values are queued, :meth:`send` blocks until the
    writer makes room or the token is cancelled (backpressure). Values
    sent by one producer are received in the order they were sent; values
    from different producers interleave arbitrarily.

    Attributes:
        capacity: Maximum number of queued values.
    """

    def __init__(self, capacity: int = DEFAULT_QUEUE_CAPACITY) -> None:
        """Initialize the stream.

        Args:
            capacity: Queue bound. Must be >= 1.

        Raises:
            ValueError: If capacity is not positive.
        """
        if capacity < 1:
            msg = f"capacity must be >= 1, got {capacity}"
            raise ValueError(msg)

        self.capacity = capacity
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self._drained = False

    def qsize(self) -> int:
        """Return the number of items currently queued."""
        return self._queue.qsize()

    async def send(self, value: int, token: CancellationToken) -> None:
        """Queue ``value``, blocking while the stream is full.

        Args:
            value: Prime to hand to the writer.
            token: Run token; cancelling it unblocks a waiting send.

        Raises:
            StreamClosedError: If the stream is already closed.
            RunCancelledError: If the token is cancelled before the value
                could be queued.
        """
        if self._closed:
            msg = "send on closed result stream"
            raise StreamClosedError(msg)

        try:
            self._queue.put_nowait(value)
        except asyncio.QueueFull:
            await token.guard(self._queue.put(value))

    async def receive(self, token: CancellationToken) -> int | None:
        """Return the next value, or None once the stream is closed and drained.

        Args:
            token: Run token; cancelling it unblocks a waiting receive.

        Raises:
            RunCancelledError: If the token is cancelled while waiting.
        """
        if self._drained:
            return None

        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            item = await token.guard(self._queue.get())

        if item is _CLOSED:
            self._drained = True
            return None
        return item  # type: ignore[return-value]

    async def close(self, token: CancellationToken) -> None:
        """Mark end-of-input. Values already queued are still delivered.

        The marker takes a queue slot, so closing a full stream waits for
        the writer like any other send.

        Args:
            token: Run token; cancelling it abandons a waiting close.

        Raises:
            StreamClosedError: If the stream was already closed.
            RunCancelledError: If the token is cancelled while waiting.
        """
        if self._closed:
            msg = "result stream already closed"
            raise StreamClosedError(msg)
        self._closed = True

        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            await token.guard(self._queue.put(_CLOSED))
        logger.debug("Result stream closed")


class ProducerGroup:
    """Join barrier over a fixed number of producers.

    Each producer calls :meth:`done` exactly once; :meth:`wait` returns
    once the outstanding count reaches zero.
    """

    def __init__(self, count: int) -> None:
        """Initialize the barrier.

        Args:
            count: Number of producers to wait for. Must be >= 0.

        Raises:
            ValueError: If count is negative.
        """
        if count < 0:
            msg = f"count must be >= 0, got {count}"
            raise ValueError(msg)

        self._outstanding = count
        self._event = asyncio.Event()
        if count == 0:
            self._event.set()

    @property
    def outstanding(self) -> int:
        """Return the number of producers that have not finished."""
        return self._outstanding

    def done(self) -> None:
        """Record one finished producer.

        Raises:
            RuntimeError: If called more times than there are producers.
        """
        if self._outstanding == 0:
            msg = "done() called more times than there are producers"
            raise RuntimeError(msg)
        self._outstanding -= 1
        if self._outstanding == 0:
            self._event.set()

    async def wait(self) -> None:
        """Block until every producer has finished."""
        await self._event.wait()


class FirstErrorSlot:
    """Single-slot error notification. The first reported error wins."""

    def __init__(self) -> None:
        self._future: asyncio.Future[BaseException] = asyncio.get_running_loop().create_future()

    @property
    def error(self) -> BaseException | None:
        """Return the kept error, or None if nothing was reported."""
        if self._future.done():
            return self._future.result()
        return None

    def report(self, error: BaseException) -> bool:
        """Offer ``error`` to the slot without blocking.

        Args:
            error: Error to escalate.

        Returns:
            True if the error was kept, False if the slot was already taken.
        """
        if self._future.done():
            logger.debug("Dropping secondary error: %s", error)
            return False
        self._future.set_result(error)
        return True

    async def wait(self) -> BaseException:
        """Block until an error is reported and return it."""
        return await asyncio.shield(self._future)
