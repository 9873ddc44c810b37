import asyncio
from datetime import datetime, timedelta
from typing import Iterable, Optional

from autoclaim.clue_queue.clue import ClaimOutcome, Clue, ClueListPage, TaskType
from autoclaim.sessions.session_config import SessionConfig

TEST_CREDENTIAL = "BDUSS=unit-test-cookie"


def make_clue(
    task_id: int,
    brief: str = "",
    clue_id: Optional[int] = None,
    dispatch_time: Optional[datetime] = None,
    subject_name: str = "数学",
) -> Clue:
    return Clue(
        task_id=task_id,
        clue_id=clue_id if clue_id is not None else task_id + 1000,
        brief=brief,
        subject_name=subject_name,
        dispatch_time=dispatch_time,
    )


def make_config(**overrides) -> SessionConfig:
    values = {
        "task_type": "audittask",
        "claim_limit": 3,
        "poll_interval": timedelta(milliseconds=20),
        "concurrent_claims": 2,
        "credential": TEST_CREDENTIAL,
    }
    values.update(overrides)
    return SessionConfig.create(**values)


class FakeClueQueue:
    """In-memory clue queue with the list/claim surface of ClueQueueClient.

    Claimed clues leave the pool, as they do on the real queue.
    """

    def __init__(
        self,
        clues: Iterable[Clue] = (),
        page_size: int = 20,
        claim_delay: float = 0.0,
        list_errors: Iterable[Exception] = (),
        claim_errors: Optional[dict[int, Exception]] = None,
        refused: Iterable[int] = (),
    ):
        self.clues = list(clues)
        self.page_size = page_size
        self.claim_delay = claim_delay
        self.list_errors = list(list_errors)
        self.claim_errors = claim_errors or {}
        self.refused = set(refused)

        self.list_calls: list[int] = []
        self.claim_attempts: list[int] = []
        self.claimed: list[int] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def list_clues(self, task_type: TaskType, filter_ids, page: int, cancellation=None):
        self.list_calls.append(page)
        await asyncio.sleep(0)
        if self.list_errors:
            raise self.list_errors.pop(0)

        available = [clue for clue in self.clues if clue.claim_id(task_type) not in self.claimed]
        start = (page - 1) * self.page_size
        return ClueListPage(
            clues=available[start : start + self.page_size],
            total=len(available),
            page=page,
            page_size=self.page_size,
        )

    async def claim_clue(self, task_type: TaskType, claim_id: int, cancellation=None):
        self.claim_attempts.append(claim_id)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.claim_delay)
            if claim_id in self.claim_errors:
                raise self.claim_errors[claim_id]
            if claim_id in self.refused or claim_id in self.claimed:
                return ClaimOutcome(claim_id=claim_id, success=False, error="already taken")
            self.claimed.append(claim_id)
            return ClaimOutcome(claim_id=claim_id, success=True)
        finally:
            self.in_flight -= 1
