"""
Broadcast hub for real-time snapshot push.

Keeps the set of live observer connections (SSE streams and WebSockets) and
fans every state snapshot out to all of them.

Delivery never blocks: each connection owns a bounded ``QueueSink`` that its
transport drains at its own pace.  A sink that refuses a snapshot (buffer full
or any other error) is dropped from the hub and closed, and the remaining
connections still receive the snapshot.  Sinks their transport already closed
are dropped quietly.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_MAX_QUEUE_SIZE: int = 100


class SnapshotSink(Protocol):
    """Anything that can accept a snapshot payload without blocking."""

    closed: bool

    def deliver(self, snapshot: dict[str, Any]) -> None: ...

    def close(self) -> None: ...


class SinkClosed(Exception):
    pass


class QueueSink:
    """
    Sink backed by a bounded ``asyncio.Queue``.

    ``deliver`` raises ``asyncio.QueueFull`` when the reader has fallen too far
    behind; ``receive`` returns ``None`` once the sink has been closed.
    """

    def __init__(self, maxsize: int = _MAX_QUEUE_SIZE) -> None:
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue(
            maxsize=maxsize
        )
        self.closed = False

    def deliver(self, snapshot: dict[str, Any]) -> None:
        if self.closed:
            raise SinkClosed("sink already closed")
        self._queue.put_nowait(snapshot)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Make room for the end-of-stream marker.
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    def pending(self) -> int:
        return self._queue.qsize()

    async def receive(self, timeout: float | None = None) -> dict[str, Any] | None:
        """
        Wait for the next snapshot.

        Raises ``asyncio.TimeoutError`` if nothing arrives within *timeout*.
        """
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)


@dataclass(frozen=True)
class ObserverConnection:
    """A registered observer."""

    sink: SnapshotSink
    transport: str = "sse"
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class BroadcastHub:
    """
    Registry of live observers.

    Not locked on its own: the turn scheduler calls it while holding its state
    lock, so registrations and broadcasts are already serialised.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ObserverConnection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, conn_id: object) -> bool:
        return conn_id in self._connections

    def subscribe(
        self,
        sink: SnapshotSink,
        snapshot: dict[str, Any],
        transport: str = "sse",
    ) -> ObserverConnection:
        """Register *sink* and hand it *snapshot* straight away."""
        conn = ObserverConnection(sink=sink, transport=transport)
        self._connections[conn.id] = conn
        logger.info(
            "Observer connected: %s via %s (total: %d)",
            conn.id,
            transport,
            len(self._connections),
        )
        self._deliver(conn, snapshot)
        return conn

    def unsubscribe(self, conn_id: str) -> bool:
        """Remove a connection; returns False if it was already gone."""
        conn = self._connections.pop(conn_id, None)
        if conn is None:
            return False
        conn.sink.close()
        logger.info(
            "Observer disconnected: %s (remaining: %d)",
            conn_id,
            len(self._connections),
        )
        return True

    def broadcast(self, snapshot: dict[str, Any]) -> int:
        """Deliver *snapshot* to every observer; returns how many accepted it."""
        delivered = 0
        for conn in list(self._connections.values()):
            if self._deliver(conn, snapshot):
                delivered += 1
        return delivered

    def _deliver(self, conn: ObserverConnection, snapshot: dict[str, Any]) -> bool:
        if conn.sink.closed:
            logger.debug("Observer %s already closed - removing", conn.id)
            self._connections.pop(conn.id, None)
            return False
        try:
            conn.sink.deliver(snapshot)
            return True
        except Exception as exc:
            logger.warning(
                "Failed to deliver to %s: %r - removing observer", conn.id, exc
            )
            self._drop(conn)
            return False

    def _drop(self, conn: ObserverConnection) -> None:
        self._connections.pop(conn.id, None)
        try:
            conn.sink.close()
        except Exception as exc:
            logger.debug("Error closing sink %s: %s", conn.id, exc)

    def close_all(self) -> None:
        """Close every sink; used on shutdown."""
        for conn in list(self._connections.values()):
            self._drop(conn)
