"""Cooperative cancellation shared by one session's loop, workers and client calls."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

from autoclaim.main.exceptions import SessionCancelledException

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation signal with a reason.

    Every suspension point of a session waits on the same token: the poll
    interval sleep, the scheduler's queue put, retry backoff, and list calls.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "stop_requested") -> bool:
        """Set the signal. Returns False if it was already set (first reason wins)."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise SessionCancelledException(self.reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to ``seconds``. Returns True if woken by cancellation."""
        if self.cancelled:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(seconds, 0))
        except asyncio.TimeoutError:
            return False
        return True

    async def backoff_sleep(self, seconds: float) -> None:
        """Retry backoff that gives up as soon as the session is cancelled."""
        if await self.sleep(seconds):
            raise SessionCancelledException(self.reason or "cancelled")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` with the token as a deadline.

        Raises SessionCancelledException, after cancelling the inner task,
        if the token fires first.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise SessionCancelledException(self.reason or "cancelled")

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            if not task.done() and not self.cancelled:
                # The caller itself was cancelled
                task.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise SessionCancelledException(self.reason or "cancelled")
