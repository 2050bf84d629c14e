"""Deadline-bound cancellation token shared by every task of a run."""

from __future__ import annotations

import asyncio
import time
from enum import Enum, auto
from typing import TYPE_CHECKING, TypeVar

from primeforge._internal.errors import (
    DeadlineExceededError,
    RunAbortedError,
    RunCancelledError,
)
from primeforge._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable

logger = get_logger("engine.cancellation")

T = TypeVar("T")


class CancelReason(Enum):
    """Why a token was cancelled."""

    DEADLINE_EXCEEDED = auto()
    CANCELLED = auto()


class CancellationToken:
    """Cooperative cancellation signal with an optional wall-clock deadline.

    Exposes two views of the same state:

    - :meth:`is_cancelled` is a non-blocking check for use between loop
      iterations.
    - :meth:`wait` is awaitable and completes once the token is cancelled,
      so it can be raced against other awaitables (see :meth:`guard`).

    Cancellation is one-shot; the first reason recorded wins. Must be
    created inside a running event loop.
    """

    def __init__(self, deadline: float | None = None) -> None:
        """Initialize the token.

        Args:
            deadline: Absolute ``time.monotonic()`` value after which the
                token counts as expired, or None for no deadline.
        """
        self._deadline = deadline
        self._reason: CancelReason | None = None
        self._event = asyncio.Event()
        self._timer: asyncio.TimerHandle | None = None

        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._expire()
            else:
                loop = asyncio.get_running_loop()
                self._timer = loop.call_later(remaining, self._expire)

    @classmethod
    def with_timeout(cls, seconds: float) -> CancellationToken:
        """Create a token that expires ``seconds`` from now.

        Args:
            seconds: Time budget. Zero or less yields an expired token.

        Returns:
            A new CancellationToken.
        """
        return cls(deadline=time.monotonic() + seconds)

    @property
    def reason(self) -> CancelReason | None:
        """Return why the token was cancelled, or None while still live."""
        return self._reason

    def is_cancelled(self) -> bool:
        """Return True once the token is cancelled or past its deadline.

        The deadline is checked against the clock directly, so a worker
        that has not yielded since the deadline passed still observes it.
        """
        if self._reason is None and self._deadline is not None and time.monotonic() >= self._deadline:
            self._expire()
        return self._reason is not None

    def cancel(self) -> None:
        """Cancel the token explicitly.

        A no-op if the token is already cancelled or expired.
        """
        self._set(CancelReason.CANCELLED)

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    def error(self) -> RunCancelledError:
        """Return the exception describing the cancellation.

        Raises:
            RuntimeError: If the token has not been cancelled.
        """
        if self._reason is CancelReason.DEADLINE_EXCEEDED:
            return DeadlineExceededError("run deadline exceeded")
        if self._reason is CancelReason.CANCELLED:
            return RunAbortedError("run cancelled")
        msg = "token is not cancelled"
        raise RuntimeError(msg)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token is cancelled first.

        Races the awaitable against :meth:`wait`. If the awaitable finishes
        first (or at the same time) its result is returned; otherwise it is
        cancelled and the token's error is raised.

        Args:
            awaitable: The operation to race, e.g. a queue put or get.

        Returns:
            The awaitable's result.

        Raises:
            RunCancelledError: If the token was cancelled first.
        """
        operation = asyncio.ensure_future(awaitable)
        if self.is_cancelled():
            operation.cancel()
            raise self.error()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({operation, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not operation.done():
                operation.cancel()

        if operation.done() and not operation.cancelled():
            return operation.result()
        raise self.error()

    def close(self) -> None:
        """Release the deadline timer without cancelling the token."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self) -> None:
        self._set(CancelReason.DEADLINE_EXCEEDED)

    def _set(self, reason: CancelReason) -> None:
        if self._reason is not None:
            return
        self._reason = reason
        self._event.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        logger.debug("Token cancelled: %s", reason.name)
