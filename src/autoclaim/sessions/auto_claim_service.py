from typing import Callable, Optional

from autoclaim.clue_queue.clue import TaskType
from autoclaim.clue_queue.clue_queue_client import ClueQueueClient
from autoclaim.clue_queue.task_label import TaskLabelResponse, UserInfoResponse
from autoclaim.main.config import Settings, get_settings
from autoclaim.main.exceptions import (
    AlreadyRunningException,
    AuthenticationException,
    InvalidConfigException,
)
from autoclaim.main.logging import get_logger
from autoclaim.sessions.session_controller import SessionController, session_controller
from autoclaim.sessions.session_models import (
    AutoClaimResponse,
    AutoClaimStatusResponse,
    StartAutoClaimRequest,
)

logger = get_logger(__name__)


def default_lookup_client_factory(credential: str) -> ClueQueueClient:
    return ClueQueueClient(credential=credential)


class AutoClaimService:
    """The engine's public surface, as consumed by the settings UI.

    Start, stop and status never raise: failures come back as
    ``success=False`` with a readable message. Label and user-info lookups
    raise the error taxonomy and leave the mapping to the caller.
    """

    def __init__(
        self,
        controller: SessionController = session_controller,
        lookup_client_factory: Callable[[str], ClueQueueClient] = default_lookup_client_factory,
        settings: Optional[Settings] = None,
    ):
        self.controller = controller
        self.lookup_client_factory = lookup_client_factory
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    async def start_auto_claiming(self, request: StartAutoClaimRequest) -> AutoClaimResponse:
        try:
            config = request.to_session_config(self.settings)
            snapshot = self.controller.start(config)
        except InvalidConfigException as exc:
            logger.info("Rejected auto-claim start: invalid config", extra={"fields": exc.fields})
            return AutoClaimResponse(success=False, message=str(exc))
        except AlreadyRunningException as exc:
            logger.info("Rejected auto-claim start: session already running")
            return AutoClaimResponse(success=False, message=str(exc))

        return AutoClaimResponse(
            success=True,
            message="Auto-claiming started",
            task_id=str(snapshot.session_id),
        )

    async def stop_auto_claiming(self) -> AutoClaimResponse:
        if self.controller.stop():
            return AutoClaimResponse(success=True, message="Auto-claiming is stopping")
        return AutoClaimResponse(success=True, message="No auto-claim session is running")

    async def get_auto_claim_status(self) -> AutoClaimStatusResponse:
        snapshot = self.controller.status()
        return AutoClaimStatusResponse(
            success=True,
            message="No session has run yet" if snapshot.session_id is None else "Status retrieved",
            is_active=snapshot.is_active,
            successful_claims=snapshot.successful_claims,
            last_error=snapshot.last_error,
            phase=snapshot.phase.value,
            claim_limit=snapshot.claim_limit,
            in_flight_claims=snapshot.in_flight_claims,
            stop_reason=snapshot.stop_reason,
        )

    async def get_task_labels(self, task_type: str, credential: str) -> TaskLabelResponse:
        try:
            resolved_type = TaskType(task_type or self.settings.default_task_type)
        except ValueError as exc:
            raise InvalidConfigException(
                ["task_type"], f"Unknown task type: {task_type}"
            ) from exc
        client = self.lookup_client_factory(credential)
        return await client.get_task_labels(resolved_type)

    async def get_user_info(self, credential: str) -> UserInfoResponse:
        client = self.lookup_client_factory(credential)
        response = await client.get_user_info()
        if response.errno != 0:
            raise AuthenticationException(
                f"User info rejected: {response.errmsg or 'not logged in'} (errno {response.errno})",
                errno=response.errno,
            )
        return response


auto_claim_service = AutoClaimService()


def get_auto_claim_service() -> AutoClaimService:
    return auto_claim_service
