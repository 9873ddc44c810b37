import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import aiohttp
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from autoclaim.clue_queue.clue import ClaimOutcome, Clue, ClueListPage, TaskType
from autoclaim.clue_queue.task_label import TaskLabelResponse, UserInfoResponse
from autoclaim.libs.clients import BaseClient
from autoclaim.main.aiohttp_client import aiohttp_client
from autoclaim.main.config import Settings, get_settings
from autoclaim.main.exceptions import (
    AuthenticationException,
    RemoteRejectedException,
    TransientNetworkException,
)
from autoclaim.main.logging import get_logger
from autoclaim.worker.cancellation import CancellationToken

logger = get_logger(__name__)

T = TypeVar("T")

AUTH_STATUS_CODES = {401, 403}
RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


@dataclass(frozen=True, slots=True)
class ClueFilterIds:
    """Numeric filter ids of the list endpoint, 0 meaning "any"."""

    step_id: int = 0
    subject_id: int = 0
    clue_type_id: int = 0

    def as_params(self) -> Dict[str, int]:
        return {
            "clueType": self.clue_type_id,
            "step": self.step_id,
            "subject": self.subject_id,
        }


def _translate_error(exc: BaseException, action: str) -> Exception:
    """Map transport errors onto the session error taxonomy."""
    if isinstance(exc, aiohttp.ClientResponseError):
        if exc.status in AUTH_STATUS_CODES:
            return AuthenticationException(
                f"{action}: credential rejected (HTTP {exc.status})",
                status_code=exc.status,
            )
        if exc.status in RETRYABLE_STATUS_CODES:
            return TransientNetworkException(f"{action}: HTTP {exc.status}")
        return RemoteRejectedException(
            f"{action}: HTTP {exc.status} {exc.message}".strip(),
            status_code=exc.status,
        )
    if isinstance(exc, (aiohttp.ClientConnectionError, asyncio.TimeoutError)):
        return TransientNetworkException(f"{action}: {type(exc).__name__} {exc}".strip())
    if isinstance(exc, ValueError):
        return RemoteRejectedException(f"{action}: malformed response ({exc})")
    return TransientNetworkException(f"{action}: {exc}")


class ClueQueueClient(BaseClient):
    """Stateless adapter for the education platform's clue queue.

    The client knows nothing about sessions: paging state lives in the poll
    loop and the identity is bound at construction. Transient failures are
    retried with exponential backoff; everything else surfaces immediately.
    """

    def __init__(
        self,
        credential: str,
        settings: Optional[Settings] = None,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp_client,
    ):
        self.settings = settings or get_settings()
        super().__init__(self.settings.queue_base_url, session_factory=session_factory)
        self.headers = {
            "Cookie": credential,
            "User-Agent": self.settings.queue_user_agent,
        }

    def _retrying(self, cancellation: Optional[CancellationToken]) -> AsyncRetrying:
        kwargs: Dict[str, Any] = {}
        if cancellation is not None:
            kwargs["sleep"] = cancellation.backoff_sleep

        return AsyncRetrying(
            wait=wait_random_exponential(
                multiplier=self.settings.queue_retry_min_wait_seconds,
                min=self.settings.queue_retry_min_wait_seconds,
                max=self.settings.queue_retry_max_wait_seconds,
            ),
            stop=stop_after_attempt(self.settings.queue_retry_attempts),
            retry=retry_if_exception_type(TransientNetworkException),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
            **kwargs,
        )

    async def _call(
        self,
        action: str,
        request: Callable[[], Awaitable[T]],
        cancellation: Optional[CancellationToken] = None,
        deadline: bool = True,
    ) -> T:
        async def attempt() -> T:
            try:
                if cancellation is not None and deadline:
                    return await cancellation.run(request())
                return await request()
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
                raise _translate_error(exc, action) from exc

        return await self._retrying(cancellation)(attempt)

    @staticmethod
    def _check_errno(payload: Any, action: str) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            raise RemoteRejectedException(f"{action}: malformed response")
        errno = payload.get("errno", 0)
        if errno != 0:
            raise RemoteRejectedException(
                f"{action}: {payload.get('errmsg') or 'rejected'} (errno {errno})",
                errno=errno,
            )
        return payload

    async def list_clues(
        self,
        task_type: TaskType,
        filter_ids: ClueFilterIds,
        page: int,
        cancellation: Optional[CancellationToken] = None,
    ) -> ClueListPage:
        page_size = self.settings.queue_page_size
        params = {
            "pn": page,
            "rn": page_size,
            "clueID": "",
            **filter_ids.as_params(),
        }

        payload = await self._call(
            "List clues",
            lambda: self.client.get(
                f"edushop/question/{task_type.value}/list",
                params=params,
                headers=self.headers,
            ),
            cancellation,
        )
        data = self._check_errno(payload, "List clues").get("data") or {}

        try:
            clues = [Clue.model_validate(item) for item in data.get("list") or []]
        except ValidationError as exc:
            raise RemoteRejectedException(f"List clues: malformed clue ({exc.error_count()} errors)") from exc

        logger.debug(
            "Listed clue page",
            extra={"page": page, "count": len(clues), "total": data.get("total", 0)},
        )
        return ClueListPage(
            clues=clues,
            total=data.get("total") or 0,
            page=page,
            page_size=page_size,
        )

    async def claim_clue(
        self,
        task_type: TaskType,
        claim_id: int,
        cancellation: Optional[CancellationToken] = None,
    ) -> ClaimOutcome:
        """Claim one clue.

        A remote refusal (taken by someone else, quota exhausted) is returned
        as a failed outcome. Authentication failures and exhausted retries
        raise. An in-flight request is not aborted by cancellation, only the
        retries after it.
        """
        body = {task_type.claim_field: [claim_id]}
        payload = await self._call(
            "Claim clue",
            lambda: self.client.post(
                f"edushop/question/{task_type.commit_type}/claim",
                json=body,
                headers=self.headers,
            ),
            cancellation,
            deadline=False,
        )

        if not isinstance(payload, dict):
            return ClaimOutcome(claim_id=claim_id, success=False, error="Claim clue: malformed response")

        errno = payload.get("errno", 0)
        if errno != 0:
            return ClaimOutcome(
                claim_id=claim_id,
                success=False,
                error=f"Claim clue {claim_id}: {payload.get('errmsg') or 'rejected'} (errno {errno})",
            )

        data = payload.get("data")
        claimed = 0
        if isinstance(data, dict):
            try:
                claimed = int(data.get("success") or 0)
            except (TypeError, ValueError):
                claimed = 0

        if claimed < 1:
            return ClaimOutcome(
                claim_id=claim_id,
                success=False,
                error=f"Claim clue {claim_id}: accepted but nothing was assigned",
            )

        return ClaimOutcome(claim_id=claim_id, success=True)

    async def get_task_labels(self, task_type: TaskType) -> TaskLabelResponse:
        payload = await self._call(
            "Get task labels",
            lambda: self.client.get(
                f"edushop/question/{task_type.value}/getlabel",
                headers=self.headers,
            ),
        )
        self._check_errno(payload, "Get task labels")
        return TaskLabelResponse.model_validate(payload)

    async def get_user_info(self) -> UserInfoResponse:
        payload = await self._call(
            "Get user info",
            lambda: self.client.get("edushop/user/common/info", headers=self.headers),
        )
        if not isinstance(payload, dict):
            raise RemoteRejectedException("Get user info: malformed response")
        return UserInfoResponse.model_validate(payload)
