"""Poll Loop - pages through the clue queue and feeds the claim scheduler.

One loop runs per session. Each cycle walks pages 1..N of the list endpoint
(the page cursor lives here, not in the client), filters every clue through
the matcher and submits the matches. Between cycles the loop sleeps for the
poll interval on the session's cancellation token, so a stop wakes it at once.
"""

from __future__ import annotations

from typing import Callable, Optional

from autoclaim.clue_queue.clue import ClueListPage
from autoclaim.clue_queue.clue_queue_client import ClueQueueClient
from autoclaim.clues.clue_matcher import ClueFilters, matches
from autoclaim.main.config import Settings, get_settings
from autoclaim.main.exceptions import (
    AuthenticationException,
    RemoteRejectedException,
    SessionCancelledException,
    TransientNetworkException,
)
from autoclaim.main.logging import get_logger
from autoclaim.main.session_context import clear_session_context, set_session_context
from autoclaim.sessions.session_state import ErrorKind, SessionState, StopReason
from autoclaim.worker.cancellation import CancellationToken
from autoclaim.worker.claim_scheduler import ClaimScheduler

logger = get_logger(__name__)


class PollLoop:
    def __init__(
        self,
        client: ClueQueueClient,
        state: SessionState,
        cancellation: CancellationToken,
        request_stop: Callable[[str], None],
        scheduler: Optional[ClaimScheduler] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.client = client
        self.state = state
        self.config = state.config
        self.cancellation = cancellation
        self.request_stop = request_stop
        self.filters = ClueFilters.from_config(self.config)
        self.scheduler = scheduler or ClaimScheduler(
            client=client,
            state=state,
            cancellation=cancellation,
            request_stop=request_stop,
            settings=self.settings,
        )
        self.cycles = 0
        self._consecutive_list_failures = 0

    def _should_stop(self) -> bool:
        return self.cancellation.cancelled or self.state.limit_reached

    async def run(self) -> None:
        set_session_context(
            session_id=str(self.state.session_id),
            task_type=self.config.task_type.value,
        )
        logger.info("Auto-claim session started", extra=self.config.describe())

        self.scheduler.start()
        try:
            while not self._should_stop():
                await self._run_cycle()
                if self._should_stop():
                    break
                if await self.cancellation.sleep(self.config.poll_interval.total_seconds()):
                    break
        except SessionCancelledException:
            pass
        except AuthenticationException as exc:
            self.state.record_error(ErrorKind.POLL, str(exc))
            logger.error("Clue queue rejected the credential, stopping session")
            self.request_stop(StopReason.AUTHENTICATION_FAILED.value)
        except Exception as exc:
            self.state.record_error(ErrorKind.POLL, f"Poll loop crashed: {exc}")
            logger.exception("Poll loop crashed, stopping session")
            self.request_stop(StopReason.LOOP_CRASHED.value)
        finally:
            await self.scheduler.shutdown()
            snapshot = self.state.snapshot()
            logger.info(
                "Auto-claim session finished",
                extra={
                    "cycles": self.cycles,
                    "successful_claims": snapshot.successful_claims,
                    "claim_limit": snapshot.claim_limit,
                    "stop_reason": self.cancellation.reason,
                },
            )
            clear_session_context()

    async def _fetch_page(self, page: int) -> Optional[ClueListPage]:
        """Fetch one page; None when the call failed and the cycle should end."""
        try:
            result = await self.client.list_clues(
                self.config.task_type,
                self.config.filter_ids,
                page=page,
                cancellation=self.cancellation,
            )
        except AuthenticationException:
            raise
        except (TransientNetworkException, RemoteRejectedException) as exc:
            self._consecutive_list_failures += 1
            self.state.record_error(ErrorKind.POLL, str(exc))
            logger.warning(
                f"Listing clues failed ({self._consecutive_list_failures} in a row): {exc}",
                extra={"page": page},
            )
            if self._consecutive_list_failures >= self.settings.max_consecutive_list_failures:
                logger.error(
                    "Too many consecutive list failures, stopping session",
                    extra={"failures": self._consecutive_list_failures},
                )
                self.request_stop(StopReason.LIST_FAILURES.value)
            return None

        self._consecutive_list_failures = 0
        self.state.clear_error(ErrorKind.POLL)
        return result

    async def _run_cycle(self) -> None:
        self.cycles += 1
        logger.debug(
            f"Poll cycle #{self.cycles} started",
            extra={
                "successful_claims": self.state.successful_claims,
                "claim_limit": self.config.claim_limit,
            },
        )

        page = 1
        listed = 0
        matched_count = 0
        while not self._should_stop():
            result = await self._fetch_page(page)
            if result is None:
                return
            if not result.clues:
                break

            matched = [clue for clue in result.clues if matches(clue, self.filters)]
            listed += len(result.clues)
            matched_count += len(matched)
            submitted = 0
            for clue in matched:
                if self._should_stop():
                    break
                if await self.scheduler.submit(clue):
                    submitted += 1

            logger.info(
                f"Filtered clues: {len(matched)}/{len(result.clues)} "
                f"({'keywords + publish time' if self.filters.uses_time_window else 'keywords'})",
                extra={"page": page, "submitted": submitted, "cycle": self.cycles},
            )

            if not result.has_more:
                break
            if self.config.max_pages and page >= self.config.max_pages:
                break
            page += 1

        if self._should_stop():
            return
        if listed == 0:
            logger.info("Clue pool is empty", extra={"cycle": self.cycles})
        elif matched_count == 0:
            logger.info(
                f"No clue matched the filters ({listed} listed)",
                extra={"cycle": self.cycles},
            )
