"""
WebSocket endpoint for real-time queue snapshots.

WebSocket /ws
-------------
Same feed as ``GET /api/queue/updates``, for clients that prefer WebSockets.
No authentication: queue state is public.

Message format
--------------
On connect, and after every state change:
    {"type": "snapshot", "data": {"queueCount": 2, "currentTurn": "...", ...}}

After 30 s without a change the server sends ``{"type": "ping"}`` so that dead
connections are noticed.

Usage
-----
    import json

    import websockets

    async with websockets.connect("ws://localhost:3000/ws") as ws:
        while True:
            message = json.loads(await ws.recv())
            if message["type"] == "snapshot":
                print(message["data"]["queueCount"])
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.api.deps import get_scheduler
from app.events import ObserverConnection, QueueSink
from app.turns import TurnScheduler

logger = logging.getLogger(__name__)
router = APIRouter()

_IDLE_PING_SECONDS: float = 30.0


async def _watch_disconnect(websocket: WebSocket, sink: QueueSink) -> None:
    """Close *sink* as soon as the client hangs up; inbound messages are ignored."""
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        sink.close()


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    scheduler: TurnScheduler = Depends(get_scheduler),
) -> None:
    """Stream snapshots until the client goes away or falls too far behind."""
    await websocket.accept()

    conn: ObserverConnection | None = None
    sink = QueueSink()
    watcher = asyncio.create_task(_watch_disconnect(websocket, sink))

    try:
        conn = await scheduler.subscribe(sink, transport="websocket")

        while True:
            try:
                snapshot = await sink.receive(timeout=_IDLE_PING_SECONDS)
            except asyncio.TimeoutError:
                await websocket.send_json({"type": "ping"})
                continue

            if snapshot is None:
                if not watcher.done():
                    logger.info("Observer %s dropped by hub, closing socket", conn.id)
                    await websocket.close(code=1011, reason="Observer dropped")
                break

            await websocket.send_json({"type": "snapshot", "data": snapshot})

    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
    except Exception as exc:
        logger.error("WebSocket error: %s", exc)
    finally:
        watcher.cancel()
        sink.close()
        if conn is not None:
            await scheduler.unsubscribe(conn.id)
