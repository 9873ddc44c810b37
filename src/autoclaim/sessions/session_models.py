from datetime import timedelta
from typing import Literal, Optional

from pydantic import Field

from autoclaim.main.config import Settings
from autoclaim.main.logging import get_logger
from autoclaim.main.models import CamelModel
from autoclaim.sessions.session_config import SessionConfig

logger = get_logger(__name__)


class StartAutoClaimRequest(CamelModel):
    """Options accepted from the settings UI.

    This is the only place poll-interval units are handled: the engine gets a
    single ``timedelta``.
    """

    task_type: Optional[str] = Field(default=None, examples=["audittask", "produce"])
    step_id: int = 0
    subject_id: int = 0
    clue_type_id: int = 0
    claim_limit: Optional[int] = None
    interval: Optional[float] = Field(default=None, examples=[1.0, 500])
    interval_unit: Literal["s", "ms"] = "s"
    max_pages: int = 0
    concurrent_claims: Optional[int] = None
    include_keywords: list[str] = Field(default_factory=list)
    exclude_keywords: list[str] = Field(default_factory=list)
    start_time: Optional[str] = Field(default=None, examples=["2024-01-01 00:00:00"])
    end_time: Optional[str] = Field(default=None, examples=["2024-01-01 23:59:59"])
    credential: str = ""

    def poll_interval(self, settings: Settings) -> timedelta:
        if self.interval is None:
            seconds = settings.default_poll_interval_seconds
        elif self.interval_unit == "ms":
            seconds = self.interval / 1000
        else:
            seconds = self.interval

        if 0 < seconds < settings.minimum_poll_interval_seconds:
            logger.warning(
                "Poll interval below minimum, using the minimum",
                extra={
                    "requested_seconds": seconds,
                    "minimum_seconds": settings.minimum_poll_interval_seconds,
                },
            )
            seconds = settings.minimum_poll_interval_seconds
        return timedelta(seconds=seconds)

    def to_session_config(self, settings: Settings) -> SessionConfig:
        publish_window = None
        if (self.start_time or "").strip() or (self.end_time or "").strip():
            publish_window = {"start": self.start_time, "end": self.end_time}

        return SessionConfig.create(
            task_type=self.task_type or settings.default_task_type,
            step_id=self.step_id,
            subject_id=self.subject_id,
            clue_type_id=self.clue_type_id,
            claim_limit=(
                settings.default_claim_limit if self.claim_limit is None else self.claim_limit
            ),
            poll_interval=self.poll_interval(settings),
            max_pages=self.max_pages,
            concurrent_claims=(
                settings.default_concurrent_claims
                if self.concurrent_claims is None
                else self.concurrent_claims
            ),
            include_keywords=self.include_keywords,
            exclude_keywords=self.exclude_keywords,
            publish_window=publish_window,
            credential=self.credential,
        )


class AutoClaimResponse(CamelModel):
    success: bool
    message: str
    task_id: Optional[str] = None


class AutoClaimStatusResponse(CamelModel):
    success: bool
    message: str
    is_active: bool
    successful_claims: int
    last_error: str
    phase: str = "idle"
    claim_limit: int = 0
    in_flight_claims: int = 0
    stop_reason: Optional[str] = None
