"""
POST /api/admin/clear-queue — empty the line (shared-secret protected).
POST /api/debug/reset       — wipe all state, including session records.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import get_scheduler, http_error
from app.turns import TurnError, TurnScheduler
from app.turns.snapshot import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter()


class ClearQueueRequest(BaseModel):
    secret: str | None = None


class ClearQueueResponse(CamelModel):
    message: str
    cleared_users: int


class ResetResponse(CamelModel):
    message: str
    previous_state: dict[str, Any]


@router.post("/api/admin/clear-queue", response_model=ClearQueueResponse)
async def clear_queue(
    payload: ClearQueueRequest,
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> ClearQueueResponse:
    """
    Empty the waiting line and end the running turn.  Session records are kept.

    - **403** — wrong or missing secret; nothing is changed.
    """
    try:
        cleared = await scheduler.admin_clear(payload.secret)
    except TurnError as exc:
        raise http_error(exc) from exc

    return ClearQueueResponse(
        message="Queue cleared successfully", cleared_users=cleared
    )


@router.post("/api/debug/reset", response_model=ResetResponse)
async def debug_reset(
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> ResetResponse:
    """Reset everything.  Connected observers stay subscribed."""
    previous_state = await scheduler.reset()
    return ResetResponse(
        message="System reset successfully", previous_state=previous_state
    )
