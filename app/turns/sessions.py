"""
Per-identity session bookkeeping.

Records are purely observational: they feed the status and health payloads and
are never consulted when deciding who may join or whose turn it is.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionRecord:
    joined_at: datetime
    last_activity: datetime
    turn_count: int = 0


class SessionRegistry:
    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._records: dict[str, SessionRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, identity: object) -> bool:
        return identity in self._records

    def get(self, identity: str) -> SessionRecord | None:
        return self._records.get(identity)

    def identities(self, limit: int | None = None) -> list[str]:
        keys = list(self._records)
        return keys if limit is None else keys[:limit]

    def touch(self, identity: str) -> SessionRecord:
        """Create the record on first sight, otherwise refresh last_activity."""
        now = self._clock()
        record = self._records.get(identity)
        if record is None:
            record = SessionRecord(joined_at=now, last_activity=now)
            self._records[identity] = record
            logger.debug("New session for %s", identity)
        else:
            record.last_activity = now
        return record

    def mark_activity(self, identity: str) -> None:
        """Refresh last_activity for a known identity; unknown ones are ignored."""
        record = self._records.get(identity)
        if record is not None:
            record.last_activity = self._clock()

    def record_turn_start(self, identity: str) -> None:
        record = self._records.get(identity)
        if record is not None:
            record.turn_count += 1
            record.last_activity = self._clock()

    def evict_stale(self) -> list[str]:
        """Drop every record idle for longer than the TTL; return their keys."""
        cutoff = self._clock() - self._ttl
        stale = [
            identity
            for identity, record in self._records.items()
            if record.last_activity < cutoff
        ]
        for identity in stale:
            del self._records[identity]
        return stale

    def clear(self) -> int:
        count = len(self._records)
        self._records.clear()
        return count
