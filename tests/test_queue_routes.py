"""
Tests for the /api/queue/* endpoints and the SSE stream.
"""

import json
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.api.routes.queue import _event_stream, format_event, queue_updates
from app.events import QueueSink
from conftest import COOLDOWN

A = "alice@example.com"
B = "bob@example.com"
C = "carol@example.com"


def _join(client, email):
    return client.post("/api/queue/join", json={"email": email})


# ── Join ──────────────────────────────────────────────────────────────────────


def test_join_returns_position_and_starts_turn(client, scheduler):
    response = _join(client, A)

    assert response.status_code == 200
    assert response.json() == {
        "queueCount": 1,
        "position": 1,
        "estimatedWaitTime": 0,
        "success": True,
    }
    assert scheduler.active_identity == A


def test_join_second_user_waits(client):
    _join(client, A)
    body = _join(client, B).json()
    assert body["position"] == 2
    assert body["queueCount"] == 2
    assert body["estimatedWaitTime"] == 4


def test_join_missing_email_returns_400(client):
    response = client.post("/api/queue/join", json={})
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "MissingIdentity"


def test_join_invalid_email_returns_400(client):
    response = _join(client, "not-an-email")
    assert response.status_code == 400
    assert response.json()["detail"] == {
        "status": "error",
        "error": "InvalidIdentity",
        "message": "Invalid email format",
    }


def test_join_while_active_returns_400(client):
    _join(client, A)
    response = _join(client, A)
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "AlreadyActive"


# ── Leave ─────────────────────────────────────────────────────────────────────


def test_leave_returns_remaining_count(client):
    _join(client, A)
    _join(client, B)
    response = client.post("/api/queue/leave", json={"email": B})
    assert response.status_code == 200
    assert response.json() == {"queueCount": 1, "message": "Successfully left queue"}


def test_leave_unknown_returns_404(client):
    response = client.post("/api/queue/leave", json={"email": A})
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "NotInLine"


def test_leave_missing_email_returns_400(client):
    response = client.post("/api/queue/leave", json={})
    assert response.status_code == 400


def test_leave_malformed_email_returns_404(client):
    _join(client, A)
    response = client.post("/api/queue/leave", json={"email": "bob"})
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "NotInLine"


def test_active_leave_hands_over_after_cooldown(client, scheduler):
    _join(client, A)
    _join(client, B)

    client.post("/api/queue/leave", json={"email": A})
    status = client.get("/api/queue/status").json()
    assert status["currentTurn"] is None
    assert status["queueCount"] == 1

    time.sleep(COOLDOWN * 6)
    assert client.get("/api/queue/status").json()["currentTurn"] == B


# ── Position / status / can-join ──────────────────────────────────────────────


def test_position(client):
    _join(client, A)
    _join(client, B)

    first = client.get(f"/api/queue/position/{A}").json()
    second = client.get(f"/api/queue/position/{B}").json()

    assert first == {
        "position": 1,
        "queueCount": 2,
        "estimatedWaitTime": 0,
        "isCurrentTurn": True,
    }
    assert second["position"] == 2
    assert second["isCurrentTurn"] is False


def test_position_not_in_line_returns_404(client):
    response = client.get(f"/api/queue/position/{A}")
    assert response.status_code == 404


def test_personal_status_always_200(client):
    response = client.get(f"/api/queue/status/{C}")
    assert response.status_code == 200
    body = response.json()
    assert body["isInQueue"] is False
    assert body["position"] is None
    assert body["hasSession"] is False
    assert body["lastActivity"] is None
    assert body["turnCount"] == 0


def test_personal_status_for_turn_holder(client):
    _join(client, A)
    body = client.get(f"/api/queue/status/{A}").json()
    assert body["isInQueue"] is True
    assert body["isCurrentTurn"] is True
    assert body["position"] == 1
    assert body["hasSession"] is True
    assert body["turnCount"] == 1


def test_can_join(client):
    _join(client, A)
    _join(client, B)

    assert client.get(f"/api/queue/can-join/{A}").json()["reason"] == "Already your turn"
    assert client.get(f"/api/queue/can-join/{B}").json()["reason"] == "Already in queue"
    fresh = client.get(f"/api/queue/can-join/{C}").json()
    assert fresh == {
        "email": C,
        "canJoin": True,
        "isInQueue": False,
        "isCurrentTurn": False,
        "reason": None,
    }


def test_can_join_invalid_email_returns_400(client):
    response = client.get("/api/queue/can-join/nobody")
    assert response.status_code == 400


def test_global_status_preview_is_capped(client):
    for i in range(12):
        _join(client, f"user{i}@example.com")

    body = client.get("/api/queue/status").json()

    assert body["queueCount"] == 12
    assert len(body["queue"]) == 10
    assert body["currentTurn"] == "user0@example.com"
    assert body["robotStatus"] == "idle"
    assert body["timeRemaining"] == 240
    assert body["activeSessions"] == 12


def test_three_user_scenario(client):
    for email in (A, B, C):
        _join(client, email)
    status = client.get("/api/queue/status").json()
    assert status["queueCount"] == 3
    assert status["currentTurn"] == A

    client.post("/api/queue/leave", json={"email": B})
    status = client.get("/api/queue/status").json()
    assert status["queueCount"] == 2
    assert status["queue"] == [A, C]
    assert status["currentTurn"] == A

    assert client.post("/api/robot/stop", json={"email": A}).status_code == 200
    client.post("/api/queue/leave", json={"email": A})

    time.sleep(COOLDOWN * 6)
    assert client.get("/api/queue/status").json()["currentTurn"] == C


# ── SSE ───────────────────────────────────────────────────────────────────────


def _connected_request() -> MagicMock:
    request = MagicMock()
    request.is_disconnected = AsyncMock(return_value=False)
    return request


def test_format_event_is_single_data_frame():
    frame = format_event({"queueCount": 1, "currentTurn": None})
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    assert frame.count("\n") == 2
    assert json.loads(frame[len("data: "):]) == {"queueCount": 1, "currentTurn": None}


@pytest.mark.asyncio
async def test_updates_stream_initial_snapshot_then_changes(scheduler):
    response = await queue_updates(_connected_request(), scheduler)

    assert response.media_type == "text/event-stream"
    assert response.headers["cache-control"] == "no-cache"

    stream = response.body_iterator
    first = json.loads((await stream.__anext__())[len("data: "):])
    assert first["queueCount"] == 0
    assert first["currentTurn"] is None
    assert len(scheduler.hub) == 1

    await scheduler.join(A)
    joined = json.loads((await stream.__anext__())[len("data: "):])
    started = json.loads((await stream.__anext__())[len("data: "):])
    assert joined["queueCount"] == 1
    assert started["currentTurn"] == A

    await stream.aclose()
    assert len(scheduler.hub) == 0


@pytest.mark.asyncio
async def test_updates_stream_not_registered_until_iterated(scheduler):
    response = await queue_updates(_connected_request(), scheduler)
    assert len(scheduler.hub) == 0

    await response.body_iterator.aclose()

    assert len(scheduler.hub) == 0
    assert scheduler.health()["activeClients"] == 0


@pytest.mark.asyncio
async def test_stream_ends_when_client_disconnects(scheduler):
    request = MagicMock()
    request.is_disconnected = AsyncMock(side_effect=[False, True])
    sink = QueueSink()

    frames = [frame async for frame in _event_stream(request, scheduler, sink)]

    assert len(frames) == 1
    assert len(scheduler.hub) == 0
    assert sink.closed


@pytest.mark.asyncio
async def test_stream_ends_when_hub_drops_observer(scheduler):
    stream = _event_stream(_connected_request(), scheduler)
    await stream.__anext__()
    assert len(scheduler.hub) == 1

    await scheduler.close()

    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()
    assert len(scheduler.hub) == 0
