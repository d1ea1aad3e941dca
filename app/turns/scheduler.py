"""
Turn scheduler — the single owner of all queue / turn / device / session state.

State machine
-------------
    Idle ──(line non-empty)──▶ Active ──(expiry | leave | reboot)──▶ Idle
      ▲                                                              │
      └──────────────── cooldown, then next head ◀──────────────────┘

- The active identity is never stored on its own: it is the head of the waiting
  line whenever a turn start timestamp is set.  The head stays in the line for
  its whole turn and is popped when the turn ends, so the two can't drift.
- Every public operation runs under one ``asyncio.Lock``.  No ``await`` happens
  while the lock is held apart from acquiring it, and broadcasts only push into
  per-observer buffers.
- Deferred transitions (reboot → end turn, end turn → cooldown → next turn) are
  tasks that record the turn *version* they were scheduled against.  When they
  fire they take the lock and do nothing if the version has moved on.
"""

import asyncio
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from app.events import BroadcastHub, ObserverConnection, SnapshotSink
from app.turns.device import DeviceIntent, DeviceStatus, authorize_intent
from app.turns.errors import AlreadyActive, MissingIdentity, NotInLine, Unauthorized
from app.turns.identity import require_identity
from app.turns.sessions import SessionRegistry, utcnow
from app.turns.snapshot import Snapshot
from app.turns.waiting_line import WaitingLine

logger = logging.getLogger(__name__)


# ── Result types ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class JoinResult:
    queue_count: int
    position: int
    estimated_wait_time: int


@dataclass(frozen=True)
class PositionInfo:
    position: int
    queue_count: int
    estimated_wait_time: int
    is_current_turn: bool


@dataclass(frozen=True)
class PersonalStatus:
    email: str
    is_in_queue: bool
    is_current_turn: bool
    position: int | None
    queue_count: int
    estimated_wait_time: int | None
    has_session: bool
    last_activity: datetime | None
    turn_count: int


@dataclass(frozen=True)
class CanJoinResult:
    email: str
    can_join: bool
    is_in_queue: bool
    is_current_turn: bool
    reason: str | None


# ── Scheduler ─────────────────────────────────────────────────────────────────


class TurnScheduler:
    def __init__(
        self,
        hub: BroadcastHub | None = None,
        *,
        turn_duration_seconds: float = 240.0,
        cooldown_seconds: float = 2.0,
        reboot_delay_seconds: float = 0.5,
        session_ttl_seconds: float = 24 * 60 * 60,
        snapshot_preview_size: int = 5,
        status_preview_size: int = 10,
        admin_secret: str = "admin123",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.hub = hub if hub is not None else BroadcastHub()
        self.turn_duration_seconds = turn_duration_seconds
        self.cooldown_seconds = cooldown_seconds
        self.reboot_delay_seconds = reboot_delay_seconds
        self.snapshot_preview_size = snapshot_preview_size
        self.status_preview_size = status_preview_size
        self._admin_secret = admin_secret
        self._clock = clock

        self._line = WaitingLine()
        self._sessions = SessionRegistry(session_ttl_seconds, clock=clock)
        self._device_status = DeviceStatus.IDLE
        self._turn_started_at: datetime | None = None
        self._version = 0

        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()
        self.started_at = clock()

    # ── Read-only views (no lock needed: nothing awaits mid-mutation) ────────

    @property
    def active_identity(self) -> str | None:
        if self._turn_started_at is None:
            return None
        return self._line.head

    @property
    def device_status(self) -> DeviceStatus:
        return self._device_status

    @property
    def turn_started_at(self) -> datetime | None:
        return self._turn_started_at

    @property
    def version(self) -> int:
        return self._version

    @property
    def queue_count(self) -> int:
        return len(self._line)

    @property
    def sessions(self) -> SessionRegistry:
        return self._sessions

    def waiting(self) -> list[str]:
        return list(self._line)

    def remaining_time(self) -> int | None:
        """Whole seconds left in the running turn, or None when idle."""
        if self._turn_started_at is None or self.active_identity is None:
            return None
        elapsed = (self._clock() - self._turn_started_at).total_seconds()
        return max(0, round(self.turn_duration_seconds - elapsed))

    def estimated_wait(self, index: int) -> int:
        """Minutes until the identity at zero-based *index* gets the robot."""
        return round(index * self.turn_duration_seconds / 60)

    def snapshot(self, preview_size: int | None = None) -> Snapshot:
        limit = self.snapshot_preview_size if preview_size is None else preview_size
        return Snapshot(
            queue_count=len(self._line),
            current_turn=self.active_identity,
            robot_status=self._device_status,
            turn_start_time=self._turn_started_at,
            time_remaining=self.remaining_time(),
            queue=self._line.preview(limit),
            timestamp=self._clock(),
        )

    def position(self, identity: str) -> PositionInfo:
        index = self._line.index(identity)
        if index is None:
            raise NotInLine()
        return PositionInfo(
            position=index + 1,
            queue_count=len(self._line),
            estimated_wait_time=self.estimated_wait(index),
            is_current_turn=identity == self.active_identity,
        )

    def personal_status(self, identity: str) -> PersonalStatus:
        index = self._line.index(identity)
        session = self._sessions.get(identity)
        return PersonalStatus(
            email=identity,
            is_in_queue=index is not None,
            is_current_turn=identity == self.active_identity,
            position=None if index is None else index + 1,
            queue_count=len(self._line),
            estimated_wait_time=None if index is None else self.estimated_wait(index),
            has_session=session is not None,
            last_activity=session.last_activity if session else None,
            turn_count=session.turn_count if session else 0,
        )

    def can_join(self, identity: str) -> CanJoinResult:
        is_in_queue = identity in self._line
        is_current_turn = identity == self.active_identity
        reason = None
        if is_current_turn:
            reason = "Already your turn"
        elif is_in_queue:
            reason = "Already in queue"
        return CanJoinResult(
            email=identity,
            can_join=reason is None,
            is_in_queue=is_in_queue,
            is_current_turn=is_current_turn,
            reason=reason,
        )

    def health(self) -> dict[str, Any]:
        preview = self.snapshot_preview_size
        return {
            "status": "healthy",
            "timestamp": self._clock(),
            "activeClients": len(self.hub),
            "queueLength": len(self._line),
            "currentUser": self.active_identity,
            "robotStatus": self._device_status.value,
            "turnStartTime": self._turn_started_at,
            "timeRemaining": self.remaining_time(),
            "activeSessions": len(self._sessions),
            "uptime": (self._clock() - self.started_at).total_seconds(),
            "queue": self._line.preview(preview),
            "sessionEmails": self._sessions.identities(preview),
        }

    # ── Waiting line operations ──────────────────────────────────────────────

    async def join(self, identity: str | None) -> JoinResult:
        identity = require_identity(identity)
        async with self._lock:
            if identity == self.active_identity:
                raise AlreadyActive()

            was_empty = len(self._line) == 0
            position = self._line.append(identity)
            self._sessions.touch(identity)
            logger.info(
                "%s joined the queue at position %d (queue: %d)",
                identity,
                position,
                len(self._line),
            )
            result = JoinResult(
                queue_count=len(self._line),
                position=position,
                estimated_wait_time=self.estimated_wait(position - 1),
            )
            self._broadcast()

            if was_empty and self._turn_started_at is None:
                self._start_next_turn()
            return result

    async def leave(self, identity: str | None) -> int:
        """
        Remove *identity* from the line; returns the new line length.

        Only presence is checked: a malformed identity simply is not in line.
        """
        if not identity:
            raise MissingIdentity()
        async with self._lock:
            if identity not in self._line:
                raise NotInLine()

            self._sessions.mark_activity(identity)
            if identity == self.active_identity:
                logger.info("%s left during their turn", identity)
                self._end_current_turn(reason="left")
            else:
                self._line.remove(identity)
                logger.info(
                    "%s left the queue (queue: %d)", identity, len(self._line)
                )
                self._broadcast()
            return len(self._line)

    # ── Device proxy ─────────────────────────────────────────────────────────

    async def device_intent(
        self, intent: DeviceIntent, identity: str | None = None
    ) -> str:
        """
        Apply *intent* on behalf of *identity* and return a human-readable
        message.  A reboot also ends the running turn after
        ``reboot_delay_seconds``.
        """
        async with self._lock:
            owner = authorize_intent(self.active_identity, identity)
            self._device_status = intent.target_status
            self._sessions.mark_activity(owner)
            logger.info("Robot %s requested by %s", intent.value, owner)
            self._broadcast()

            if intent is DeviceIntent.REBOOT:
                self._defer(
                    self.reboot_delay_seconds,
                    lambda: self._end_current_turn(reason="reboot"),
                    "reboot",
                )
            return intent.message

    # ── Admin / diagnostics ──────────────────────────────────────────────────

    async def admin_clear(self, secret: str | None) -> int:
        """Empty the line and end any turn; returns how many were waiting."""
        if not secret or not hmac.compare_digest(
            secret.encode(), self._admin_secret.encode()
        ):
            logger.warning("Admin clear rejected: bad secret")
            raise Unauthorized()

        async with self._lock:
            previous = self._line.clear()
            previous_user = self._clear_turn()
            logger.info(
                "Queue cleared by admin (%d cleared, active was %s)",
                len(previous),
                previous_user,
            )
            self._broadcast()
            return len(previous)

    async def reset(self) -> dict[str, Any]:
        """Wipe line, turn, device status and sessions; observers stay connected."""
        async with self._lock:
            previous_state = {
                "queueLength": len(self._line),
                "currentUser": self.active_identity,
                "robotStatus": self._device_status.value,
                "clientCount": len(self.hub),
                "sessionCount": len(self._sessions),
            }
            self._line.clear()
            self._clear_turn()
            self._sessions.clear()
            logger.info("State reset: %s", previous_state)
            self._broadcast()
            return previous_state

    # ── Observers ────────────────────────────────────────────────────────────

    async def subscribe(
        self, sink: SnapshotSink, transport: str = "sse"
    ) -> ObserverConnection:
        async with self._lock:
            return self.hub.subscribe(sink, self.snapshot().payload(), transport)

    async def unsubscribe(self, conn_id: str) -> bool:
        async with self._lock:
            return self.hub.unsubscribe(conn_id)

    # ── Maintenance ──────────────────────────────────────────────────────────

    async def expire_turn(self) -> bool:
        """End the running turn if its budget is used up; True if it was ended."""
        async with self._lock:
            remaining = self.remaining_time()
            if remaining is None or remaining > 0:
                return False
            logger.info("Turn of %s expired", self.active_identity)
            self._end_current_turn(reason="expired")
            return True

    async def evict_stale_sessions(self) -> int:
        async with self._lock:
            evicted = self._sessions.evict_stale()
            if evicted:
                logger.info("Evicted %d stale session(s)", len(evicted))
            return len(evicted)

    async def close(self) -> None:
        """Cancel pending deferred transitions and drop every observer."""
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        for task in pending:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.hub.close_all()

    # ── Transitions (call with the lock held) ────────────────────────────────

    def _start_next_turn(self) -> None:
        self._version += 1
        head = self._line.head
        if head is None:
            self._turn_started_at = None
            self._device_status = DeviceStatus.IDLE
            logger.info("Queue empty, robot idle")
            self._broadcast()
            return

        self._turn_started_at = self._clock()
        self._device_status = DeviceStatus.IDLE
        self._sessions.record_turn_start(head)
        logger.info(
            "Turn started for %s (%d waiting behind)", head, len(self._line) - 1
        )
        self._broadcast()

    def _end_current_turn(self, reason: str = "ended") -> None:
        if self._turn_started_at is None or not self._line:
            logger.debug("No active turn to end (%s)", reason)
            return

        ended = self._line.pop_head()
        self._version += 1
        self._turn_started_at = None
        self._device_status = DeviceStatus.IDLE
        logger.info(
            "Turn of %s ended (%s), %d waiting", ended, reason, len(self._line)
        )
        self._broadcast()

        if self._line:
            self._defer(self.cooldown_seconds, self._start_next_turn, "cooldown")

    def _clear_turn(self) -> str | None:
        previous_user = self.active_identity
        self._version += 1
        self._turn_started_at = None
        self._device_status = DeviceStatus.IDLE
        return previous_user

    def _broadcast(self) -> None:
        self.hub.broadcast(self.snapshot().payload())

    # ── Deferred transitions ─────────────────────────────────────────────────

    def _defer(self, delay: float, action: Callable[[], None], label: str) -> None:
        task = asyncio.get_running_loop().create_task(
            self._run_deferred(delay, action, self._version, label),
            name=f"turn_{label}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_deferred(
        self,
        delay: float,
        action: Callable[[], None],
        version: int,
        label: str,
    ) -> None:
        await asyncio.sleep(delay)
        async with self._lock:
            if version != self._version:
                logger.debug(
                    "Skipping stale %s transition (version %d, now %d)",
                    label,
                    version,
                    self._version,
                )
                return
            try:
                action()
            except Exception as exc:
                logger.error(
                    "Deferred %s transition failed: %s", label, exc, exc_info=True
                )
