"""Shared, lock-guarded state of one auto-claim session."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from autoclaim.sessions.session_config import SessionConfig


class SessionPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"


class ErrorKind(str, Enum):
    POLL = "poll"
    CLAIM = "claim"


class StopReason(str, Enum):
    STOP_REQUESTED = "stop_requested"
    CLAIM_LIMIT_REACHED = "claim_limit_reached"
    AUTHENTICATION_FAILED = "authentication_failed"
    LIST_FAILURES = "repeated_list_failures"
    LOOP_CRASHED = "loop_crashed"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    session_id: Optional[UUID]
    phase: SessionPhase
    successful_claims: int
    claim_limit: int
    in_flight_claims: int
    attempted_claims: int
    failed_claims: int
    last_error: str
    stop_reason: Optional[str]
    started_at: Optional[datetime]
    stopped_at: Optional[datetime]

    @property
    def is_active(self) -> bool:
        return self.phase is SessionPhase.RUNNING

    @classmethod
    def idle(cls) -> SessionSnapshot:
        return cls(
            session_id=None,
            phase=SessionPhase.IDLE,
            successful_claims=0,
            claim_limit=0,
            in_flight_claims=0,
            attempted_claims=0,
            failed_claims=0,
            last_error="",
            stop_reason=None,
            started_at=None,
            stopped_at=None,
        )


class SessionState:
    """Counters and error slot mutated by the poll loop and claim workers.

    The controller is the only writer of the phase. The claim headroom check
    is a single reserve step under the lock: a worker reserves a slot before
    its claim request and then commits (success) or releases (failure) it, so
    ``successful_claims + reserved`` never exceeds the claim limit.
    """

    def __init__(self, config: SessionConfig, session_id: Optional[UUID] = None):
        self.config = config
        self.session_id = session_id or uuid4()
        self._lock = threading.Lock()
        self._phase = SessionPhase.IDLE
        self._successful_claims = 0
        self._reserved_claims = 0
        self._attempted_claims = 0
        self._failed_claims = 0
        self._last_error = ""
        self._last_error_kind: Optional[ErrorKind] = None
        self._stop_reason: Optional[str] = None
        self._started_at: Optional[datetime] = None
        self._stopped_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Phase (controller only)
    # ------------------------------------------------------------------
    @property
    def phase(self) -> SessionPhase:
        with self._lock:
            return self._phase

    def mark_running(self) -> None:
        with self._lock:
            self._phase = SessionPhase.RUNNING
            self._started_at = datetime.now(timezone.utc)

    def mark_stopping(self, reason: str) -> bool:
        """Running -> stopping. Returns False if the session was not running."""
        with self._lock:
            if self._phase is not SessionPhase.RUNNING:
                return False
            self._phase = SessionPhase.STOPPING
            self._stop_reason = reason
            return True

    def mark_idle(self) -> None:
        with self._lock:
            self._phase = SessionPhase.IDLE
            self._stopped_at = datetime.now(timezone.utc)

    # ------------------------------------------------------------------
    # Claim accounting
    # ------------------------------------------------------------------
    @property
    def successful_claims(self) -> int:
        with self._lock:
            return self._successful_claims

    @property
    def limit_reached(self) -> bool:
        with self._lock:
            return self._successful_claims >= self.config.claim_limit

    def remaining_headroom(self) -> int:
        """Claims that may still be started: limit - successful - in flight."""
        with self._lock:
            return max(
                self.config.claim_limit - self._successful_claims - self._reserved_claims,
                0,
            )

    def try_reserve_claim(self) -> bool:
        with self._lock:
            if self._successful_claims + self._reserved_claims >= self.config.claim_limit:
                return False
            self._reserved_claims += 1
            self._attempted_claims += 1
            return True

    def commit_claim(self) -> int:
        """Turn a reservation into a counted claim. Returns the new total."""
        with self._lock:
            if self._reserved_claims <= 0:
                raise RuntimeError("commit_claim without a reservation")
            self._reserved_claims -= 1
            self._successful_claims += 1
            if self._last_error_kind is ErrorKind.CLAIM:
                self._last_error = ""
                self._last_error_kind = None
            return self._successful_claims

    def release_claim(self, failed: bool = True) -> None:
        with self._lock:
            if self._reserved_claims <= 0:
                raise RuntimeError("release_claim without a reservation")
            self._reserved_claims -= 1
            if failed:
                self._failed_claims += 1

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------
    def record_error(self, kind: ErrorKind, message: str) -> None:
        with self._lock:
            self._last_error = message
            self._last_error_kind = kind

    def clear_error(self, kind: ErrorKind) -> None:
        """Clear the error slot if it holds an error of the same kind."""
        with self._lock:
            if self._last_error_kind is kind:
                self._last_error = ""
                self._last_error_kind = None

    @property
    def last_error(self) -> str:
        with self._lock:
            return self._last_error

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                session_id=self.session_id,
                phase=self._phase,
                successful_claims=self._successful_claims,
                claim_limit=self.config.claim_limit,
                in_flight_claims=self._reserved_claims,
                attempted_claims=self._attempted_claims,
                failed_claims=self._failed_claims,
                last_error=self._last_error,
                stop_reason=self._stop_reason,
                started_at=self._started_at,
                stopped_at=self._stopped_at,
            )
