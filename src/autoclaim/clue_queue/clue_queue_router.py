from fastapi import APIRouter, Depends, Header, Query

from autoclaim.clue_queue.task_label import TaskLabelResponse, UserInfoResponse
from autoclaim.server.protocol import responses
from autoclaim.sessions.auto_claim_service import AutoClaimService, get_auto_claim_service

router = APIRouter()

CREDENTIAL_HEADER = "X-Queue-Credential"


@router.get(
    "/task-labels",
    response_model=TaskLabelResponse,
    responses=responses.get_responses([400, 401, 502, 503]),
    summary="Filter labels of a task type",
)
async def get_task_labels(
    task_type: str = Query(default="", examples=["audittask", "producetask"]),
    credential: str = Header(alias=CREDENTIAL_HEADER),
    service: AutoClaimService = Depends(get_auto_claim_service),
):
    return await service.get_task_labels(task_type, credential)


@router.get(
    "/user-info",
    response_model=UserInfoResponse,
    responses=responses.get_responses([401, 502, 503]),
    summary="Account behind a queue credential",
)
async def get_user_info(
    credential: str = Header(alias=CREDENTIAL_HEADER),
    service: AutoClaimService = Depends(get_auto_claim_service),
):
    return await service.get_user_info(credential)
