"""Bounded pool of claim workers for one session.

The poll loop submits matched clues; ``concurrent_claims`` workers claim them.
The queue between the two is small so a slow claim path stalls the poll loop
instead of buffering a whole poll cycle.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from autoclaim.clue_queue.clue import ClaimOutcome, Clue
from autoclaim.clue_queue.clue_queue_client import ClueQueueClient
from autoclaim.main.config import Settings, get_settings
from autoclaim.main.exceptions import (
    AuthenticationException,
    RemoteRejectedException,
    SessionCancelledException,
    TransientNetworkException,
)
from autoclaim.main.logging import get_logger
from autoclaim.sessions.session_state import ErrorKind, SessionState, StopReason
from autoclaim.worker.cancellation import CancellationToken

logger = get_logger(__name__)


class ClaimScheduler:
    def __init__(
        self,
        client: ClueQueueClient,
        state: SessionState,
        cancellation: CancellationToken,
        request_stop: Callable[[str], None],
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.client = client
        self.state = state
        self.cancellation = cancellation
        self.request_stop = request_stop
        self.task_type = state.config.task_type
        self.worker_count = state.config.concurrent_claims
        self.queue_size = self.worker_count * settings.claim_queue_size_per_worker

        self._queue: asyncio.Queue[Optional[Clue]] = asyncio.Queue(maxsize=self.queue_size)
        self._attempted: set[int] = set()
        self._workers: list[asyncio.Task] = []
        self._closed = False
        self._in_flight = 0
        self.peak_in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def start(self) -> None:
        if self._workers:
            return
        for index in range(self.worker_count):
            self._workers.append(
                asyncio.create_task(self._worker(index), name=f"claim-worker-{index}")
            )

    async def submit(self, clue: Clue) -> bool:
        """Queue a claim attempt. Returns False when the clue was dropped.

        Blocks while the queue is full, until a worker frees a slot or the
        session is cancelled.
        """
        if self._closed or self.cancellation.cancelled or self.state.limit_reached:
            return False

        claim_id = clue.claim_id(self.task_type)
        if claim_id in self._attempted:
            return False

        # Queued clues hold no reservation yet; do not queue past the headroom
        if self._queue.qsize() >= self.state.remaining_headroom():
            return False

        self._attempted.add(claim_id)
        try:
            await self.cancellation.run(self._queue.put(clue))
        except SessionCancelledException:
            self._attempted.discard(claim_id)
            return False
        return True

    async def shutdown(self) -> None:
        """Drop queued clues and wait for in-flight claims to finish."""
        self._closed = True

        dropped = 0
        while True:
            try:
                clue = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
            if clue is not None:
                dropped += 1

        for _ in self._workers:
            await self._queue.put(None)
        await asyncio.gather(*self._workers, return_exceptions=True)

        logger.info(
            "Claim scheduler stopped",
            extra={"dropped_clues": dropped, "peak_in_flight": self.peak_in_flight},
        )

    async def _worker(self, index: int) -> None:
        while True:
            clue = await self._queue.get()
            try:
                if clue is None:
                    return
                if self.cancellation.cancelled:
                    continue
                await self._attempt(clue)
            except Exception as exc:
                # One broken claim must not take the worker down with it
                logger.exception(
                    f"Claim worker {index} failed unexpectedly",
                    extra={"error": str(exc)},
                )
            finally:
                self._queue.task_done()

    async def _attempt(self, clue: Clue) -> None:
        claim_id = clue.claim_id(self.task_type)

        if not self.state.try_reserve_claim():
            # Headroom is taken by in-flight claims; a later cycle may retry
            self._attempted.discard(claim_id)
            return

        self._in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
        fatal = False
        try:
            outcome = await self.client.claim_clue(
                self.task_type, claim_id, cancellation=self.cancellation
            )
        except AuthenticationException as exc:
            fatal = True
            outcome = ClaimOutcome(claim_id=claim_id, success=False, error=str(exc))
        except (TransientNetworkException, RemoteRejectedException) as exc:
            outcome = ClaimOutcome(claim_id=claim_id, success=False, error=str(exc))
        except SessionCancelledException:
            # Stopped while backing off between retries
            self.state.release_claim(failed=False)
            return
        except Exception as exc:
            self.state.release_claim()
            self.state.record_error(ErrorKind.CLAIM, f"Claim clue {claim_id}: {exc}")
            raise
        finally:
            self._in_flight -= 1

        self._record(clue, outcome)

        if fatal:
            self.request_stop(StopReason.AUTHENTICATION_FAILED.value)

    def _record(self, clue: Clue, outcome: ClaimOutcome) -> None:
        if outcome.success:
            total = self.state.commit_claim()
            logger.info(
                f"Claimed clue {outcome.claim_id} ({total}/{self.state.config.claim_limit})",
                extra={
                    "clue_id": outcome.claim_id,
                    "successful_claims": total,
                    "subject": clue.subject_name,
                },
            )
            if total >= self.state.config.claim_limit:
                logger.info(
                    "Claim limit reached, stopping session",
                    extra={"claim_limit": self.state.config.claim_limit},
                )
                self.request_stop(StopReason.CLAIM_LIMIT_REACHED.value)
            return

        self.state.release_claim()
        self.state.record_error(ErrorKind.CLAIM, outcome.error or "Claim failed")
        logger.warning(
            f"Claim of clue {outcome.claim_id} failed: {outcome.error}",
            extra={"clue_id": outcome.claim_id},
        )
