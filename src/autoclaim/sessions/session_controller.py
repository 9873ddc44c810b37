from __future__ import annotations

import asyncio
from typing import Callable, Optional

from autoclaim.clue_queue.clue_queue_client import ClueQueueClient
from autoclaim.main.config import Settings, get_settings
from autoclaim.main.exceptions import AlreadyRunningException
from autoclaim.main.logging import get_logger
from autoclaim.sessions.session_config import SessionConfig
from autoclaim.sessions.session_state import (
    SessionPhase,
    SessionSnapshot,
    SessionState,
    StopReason,
)
from autoclaim.worker.cancellation import CancellationToken
from autoclaim.worker.poll_loop import PollLoop

logger = get_logger(__name__)

ClientFactory = Callable[[SessionConfig], ClueQueueClient]


def default_client_factory(config: SessionConfig) -> ClueQueueClient:
    return ClueQueueClient(credential=config.credential.get_secret_value())


class SessionController:
    """Owner of the one auto-claim session the process may run.

    ``start`` is the only idle -> running transition. Stop, the claim limit
    and fatal errors move running -> stopping through ``request_stop``; the
    poll loop task finishing moves stopping -> idle. Status reads take a
    snapshot and never wait for the loop.
    """

    def __init__(
        self,
        client_factory: ClientFactory = default_client_factory,
        settings: Optional[Settings] = None,
    ):
        self.client_factory = client_factory
        self._settings = settings
        self._state: Optional[SessionState] = None
        self._cancellation: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[PollLoop] = None

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def phase(self) -> SessionPhase:
        if self._state is None:
            return SessionPhase.IDLE
        return self._state.phase

    @property
    def poll_loop(self) -> Optional[PollLoop]:
        return self._loop

    def start(self, config: SessionConfig) -> SessionSnapshot:
        """Launch a session in the background and return without waiting for it."""
        phase = self.phase
        if phase is SessionPhase.RUNNING:
            raise AlreadyRunningException("Auto-claiming is already running")
        if phase is SessionPhase.STOPPING:
            raise AlreadyRunningException("Previous session is still stopping, try again shortly")

        state = SessionState(config)
        cancellation = CancellationToken()

        def request_stop(reason: str) -> None:
            self._request_stop(state, cancellation, reason)

        loop = PollLoop(
            client=self.client_factory(config),
            state=state,
            cancellation=cancellation,
            request_stop=request_stop,
            settings=self.settings,
        )

        state.mark_running()
        self._state = state
        self._cancellation = cancellation
        self._loop = loop
        self._task = asyncio.create_task(loop.run(), name=f"poll-loop-{state.session_id}")
        self._task.add_done_callback(lambda task: self._on_loop_done(state, task))

        logger.info(
            "Auto-claim session launched",
            extra={"session_id": str(state.session_id), **config.describe()},
        )
        return state.snapshot()

    def stop(self, reason: str = StopReason.STOP_REQUESTED.value) -> bool:
        """Signal the running session to stop. Returns False if none was running."""
        if self._state is None or self._cancellation is None:
            return False
        return self._request_stop(self._state, self._cancellation, reason)

    def status(self) -> SessionSnapshot:
        if self._state is None:
            return SessionSnapshot.idle()
        return self._state.snapshot()

    async def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait for the current loop task to finish. Returns False on timeout."""
        task = self._task
        if task is None or task.done():
            return True
        done, _ = await asyncio.wait({task}, timeout=timeout)
        return bool(done)

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        self.stop(StopReason.SHUTDOWN.value)
        if not await self.wait_until_idle(timeout):
            logger.warning("Session did not drain before shutdown timeout, cancelling it")
            if self._task is not None:
                self._task.cancel()
                await asyncio.gather(self._task, return_exceptions=True)

    @staticmethod
    def _request_stop(state: SessionState, cancellation: CancellationToken, reason: str) -> bool:
        if not state.mark_stopping(reason):
            return False
        cancellation.cancel(reason)
        logger.info(
            f"Stopping auto-claim session ({reason})",
            extra={"session_id": str(state.session_id), "stop_reason": reason},
        )
        return True

    def _on_loop_done(self, state: SessionState, task: asyncio.Task) -> None:
        # A loop that ends without a stop request still passes through stopping
        if state.phase is SessionPhase.RUNNING:
            if task.cancelled():
                reason = StopReason.SHUTDOWN
            elif state.limit_reached:
                reason = StopReason.CLAIM_LIMIT_REACHED
            else:
                reason = StopReason.LOOP_CRASHED
            state.mark_stopping(reason.value)

        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Poll loop task ended with an error",
                extra={"session_id": str(state.session_id), "error": str(task.exception())},
            )
        state.mark_idle()


session_controller = SessionController()
