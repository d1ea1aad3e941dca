"""
Waiting-line endpoints.

POST /api/queue/join              — join (or re-join at the tail of) the line.
POST /api/queue/leave             — leave the line; ends the turn if it was yours.
GET  /api/queue/position/{email}  — 1-based position and estimated wait.
GET  /api/queue/status/{email}    — personal status (always 200).
GET  /api/queue/can-join/{email}  — whether a join would be accepted.
GET  /api/queue/status            — global snapshot with a short line preview.
GET  /api/queue/updates           — Server-Sent Events stream of snapshots.

Estimated waits are in minutes and count the people ahead of you, so the
identity at the head of the line always sees ``0``.

Errors are returned as
    {"detail": {"status": "error", "error": "<Kind>", "message": "..."}}
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from app.api.deps import get_scheduler, http_error
from app.events import ObserverConnection, QueueSink
from app.turns import InvalidIdentity, TurnError, TurnScheduler, is_valid_identity
from app.turns.snapshot import CamelModel, Snapshot

logger = logging.getLogger(__name__)

router = APIRouter()

# Seconds of silence before the SSE stream emits a keep-alive comment
_KEEPALIVE_SECONDS: float = 15.0


# ── Pydantic models ───────────────────────────────────────────────────────────


class IdentityRequest(BaseModel):
    email: str | None = None


class JoinResponse(CamelModel):
    queue_count: int
    position: int
    estimated_wait_time: int
    success: bool = True


class LeaveResponse(CamelModel):
    queue_count: int
    message: str


class PositionResponse(CamelModel):
    position: int
    queue_count: int
    estimated_wait_time: int
    is_current_turn: bool


class PersonalStatusResponse(CamelModel):
    email: str
    is_in_queue: bool
    is_current_turn: bool
    position: int | None
    queue_count: int
    estimated_wait_time: int | None
    has_session: bool
    last_activity: datetime | None
    turn_count: int


class CanJoinResponse(CamelModel):
    email: str
    can_join: bool
    is_in_queue: bool
    is_current_turn: bool
    reason: str | None


class QueueStatusResponse(Snapshot):
    active_sessions: int


# ── Routes ────────────────────────────────────────────────────────────────────


@router.post("/api/queue/join", response_model=JoinResponse)
async def join_queue(
    payload: IdentityRequest,
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> JoinResponse:
    """
    Append the caller to the waiting line.

    Joining an empty line starts your turn immediately.  Joining again while
    already waiting moves you to the back of the line.

    - **400** — missing / malformed email, or it is already your turn.
    """
    try:
        result = await scheduler.join(payload.email)
    except TurnError as exc:
        raise http_error(exc) from exc

    return JoinResponse(
        queue_count=result.queue_count,
        position=result.position,
        estimated_wait_time=result.estimated_wait_time,
    )


@router.post("/api/queue/leave", response_model=LeaveResponse)
async def leave_queue(
    payload: IdentityRequest,
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> LeaveResponse:
    """
    Remove the caller from the waiting line.

    If the caller holds the current turn, the turn ends and the next person in
    line gets the robot after the cooldown.

    - **400** — missing email.
    - **404** — the email is not in the line (malformed emails never are).
    """
    try:
        queue_count = await scheduler.leave(payload.email)
    except TurnError as exc:
        raise http_error(exc) from exc

    return LeaveResponse(queue_count=queue_count, message="Successfully left queue")


@router.get("/api/queue/position/{email}", response_model=PositionResponse)
async def get_position(
    email: str,
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> PositionResponse:
    """- **404** — the email is not in the line."""
    try:
        info = scheduler.position(email)
    except TurnError as exc:
        raise http_error(exc) from exc

    return PositionResponse(
        position=info.position,
        queue_count=info.queue_count,
        estimated_wait_time=info.estimated_wait_time,
        is_current_turn=info.is_current_turn,
    )


@router.get("/api/queue/status/{email}", response_model=PersonalStatusResponse)
async def get_personal_status(
    email: str,
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> PersonalStatusResponse:
    status = scheduler.personal_status(email)
    return PersonalStatusResponse(
        email=status.email,
        is_in_queue=status.is_in_queue,
        is_current_turn=status.is_current_turn,
        position=status.position,
        queue_count=status.queue_count,
        estimated_wait_time=status.estimated_wait_time,
        has_session=status.has_session,
        last_activity=status.last_activity,
        turn_count=status.turn_count,
    )


@router.get("/api/queue/can-join/{email}", response_model=CanJoinResponse)
async def can_join(
    email: str,
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> CanJoinResponse:
    """- **400** — malformed email."""
    if not is_valid_identity(email):
        raise http_error(InvalidIdentity())

    result = scheduler.can_join(email)
    return CanJoinResponse(
        email=result.email,
        can_join=result.can_join,
        is_in_queue=result.is_in_queue,
        is_current_turn=result.is_current_turn,
        reason=result.reason,
    )


@router.get("/api/queue/status", response_model=QueueStatusResponse)
async def get_queue_status(
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> QueueStatusResponse:
    """
    Global snapshot.  Only the first ``status_preview_size`` waiting emails are
    listed.
    """
    snapshot = scheduler.snapshot(preview_size=scheduler.status_preview_size)
    return QueueStatusResponse(
        **snapshot.model_dump(),
        active_sessions=len(scheduler.sessions),
    )


# ── Server-Sent Events ────────────────────────────────────────────────────────


def format_event(snapshot: dict[str, Any]) -> str:
    """Encode one snapshot as an SSE ``data:`` frame."""
    return f"data: {json.dumps(snapshot, separators=(',', ':'))}\n\n"


async def _event_stream(
    request: Request,
    scheduler: TurnScheduler,
    sink: QueueSink | None = None,
) -> AsyncIterator[str]:
    """
    Subscribe, then yield SSE frames until the client disconnects or the hub
    drops the connection.  Always unsubscribes on the way out; nothing is
    registered until the body starts streaming.
    """
    if sink is None:
        sink = QueueSink()
    conn: ObserverConnection | None = None
    try:
        conn = await scheduler.subscribe(sink, transport="sse")
        while True:
            if await request.is_disconnected():
                logger.debug("SSE client %s went away", conn.id)
                break
            try:
                snapshot = await sink.receive(timeout=_KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            if snapshot is None:
                break
            yield format_event(snapshot)
    finally:
        sink.close()
        if conn is not None:
            await scheduler.unsubscribe(conn.id)


@router.get("/api/queue/updates")
async def queue_updates(
    request: Request,
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> StreamingResponse:
    """
    Persistent ``text/event-stream``.  The first event is the current snapshot;
    one more follows every state change.
    """
    return StreamingResponse(
        _event_stream(request, scheduler),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
