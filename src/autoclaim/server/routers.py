from fastapi import APIRouter

from autoclaim.clue_queue.clue_queue_router import router as clue_queue_router
from autoclaim.sessions.session_router import router as session_router

router = APIRouter()

router.include_router(session_router, prefix="/auto-claim", tags=["auto-claim"])
router.include_router(clue_queue_router, tags=["clue-queue"])
