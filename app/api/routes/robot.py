"""
Robot control endpoints.

POST /api/robot/start   — status becomes ``active``.
POST /api/robot/stop    — status becomes ``stopped``.
POST /api/robot/reboot  — status becomes ``rebooting``; the current turn ends
                          shortly afterwards.

Body: ``{"email": "..."}`` (optional).  When an email is supplied it must be the
holder of the current turn; when it is omitted the command is accepted as long
as somebody holds a turn.

- **403** — ``NoActiveTurn`` / ``NotYourTurn``.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import get_scheduler, http_error
from app.turns import DeviceIntent, TurnError, TurnScheduler

logger = logging.getLogger(__name__)

router = APIRouter()


class RobotCommandRequest(BaseModel):
    email: str | None = None


class RobotCommandResponse(BaseModel):
    status: str
    message: str


async def _dispatch(
    intent: DeviceIntent,
    payload: RobotCommandRequest | None,
    scheduler: TurnScheduler,
) -> RobotCommandResponse:
    email = payload.email if payload is not None else None
    try:
        message = await scheduler.device_intent(intent, email)
    except TurnError as exc:
        raise http_error(exc) from exc
    return RobotCommandResponse(status="success", message=message)


@router.post("/api/robot/start", response_model=RobotCommandResponse)
async def start_robot(
    payload: RobotCommandRequest | None = None,
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> RobotCommandResponse:
    return await _dispatch(DeviceIntent.START, payload, scheduler)


@router.post("/api/robot/stop", response_model=RobotCommandResponse)
async def stop_robot(
    payload: RobotCommandRequest | None = None,
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> RobotCommandResponse:
    return await _dispatch(DeviceIntent.STOP, payload, scheduler)


@router.post("/api/robot/reboot", response_model=RobotCommandResponse)
async def reboot_robot(
    payload: RobotCommandRequest | None = None,
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> RobotCommandResponse:
    """
    Reboot the robot.  Observers see ``rebooting`` immediately; the turn is
    ended after ``reboot_delay_seconds`` regardless of the time left.
    """
    return await _dispatch(DeviceIntent.REBOOT, payload, scheduler)
