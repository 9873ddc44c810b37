from fastapi import APIRouter, Depends

from autoclaim.sessions.auto_claim_service import AutoClaimService, get_auto_claim_service
from autoclaim.sessions.session_models import (
    AutoClaimResponse,
    AutoClaimStatusResponse,
    StartAutoClaimRequest,
)

router = APIRouter()


@router.post(
    "/start",
    response_model=AutoClaimResponse,
    summary="Start auto-claiming",
    description=(
        "Validates the options and launches a background session. Returns at once;"
        " a rejected start (invalid options, session already running) comes back"
        " with `success: false` and a readable message."
    ),
)
async def start_auto_claiming(
    request: StartAutoClaimRequest,
    service: AutoClaimService = Depends(get_auto_claim_service),
):
    return await service.start_auto_claiming(request)


@router.post("/stop", response_model=AutoClaimResponse, summary="Stop auto-claiming")
async def stop_auto_claiming(service: AutoClaimService = Depends(get_auto_claim_service)):
    return await service.stop_auto_claiming()


@router.get(
    "/status",
    response_model=AutoClaimStatusResponse,
    summary="Current session status",
    description="Counters stay visible after a session ends, until the next start.",
)
async def get_auto_claim_status(service: AutoClaimService = Depends(get_auto_claim_service)):
    return await service.get_auto_claim_status()
