"""
GET /api/health — liveness and diagnostic snapshot.
GET /           — plain-text banner.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from app.api.deps import get_scheduler
from app.turns import DeviceStatus, TurnScheduler
from app.turns.snapshot import CamelModel

router = APIRouter()
logger = logging.getLogger(__name__)


class HealthResponse(CamelModel):
    status: str
    timestamp: datetime
    active_clients: int
    queue_length: int
    current_user: str | None
    robot_status: DeviceStatus
    turn_start_time: datetime | None
    time_remaining: int | None
    active_sessions: int
    uptime: float
    queue: list[str]
    session_emails: list[str]


@router.get("/api/health", response_model=HealthResponse)
async def get_health(
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> HealthResponse:
    """
    Returns the scheduler's live state.

    - **activeClients**: connected SSE / WebSocket observers.
    - **uptime**: seconds since the scheduler was created.
    - **queue** / **sessionEmails**: first few entries only.
    """
    return HealthResponse(**scheduler.health())


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "Robot Queue Live Backend API"
