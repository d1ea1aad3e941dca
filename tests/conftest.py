"""
Shared fixtures: a controllable clock, a scheduler with short timers, and a
TestClient wired to that scheduler.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from app.api.deps import set_scheduler
from app.main import app
from app.turns import TurnScheduler

# Short enough to keep the suite fast, long enough to observe the gap.
COOLDOWN = 0.05
REBOOT_DELAY = 0.05


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingSink:
    """Sink that keeps every snapshot it is handed."""

    def __init__(self) -> None:
        self.snapshots: list[dict[str, Any]] = []
        self.closed = False

    def deliver(self, snapshot: dict[str, Any]) -> None:
        self.snapshots.append(snapshot)

    def close(self) -> None:
        self.closed = True

    @property
    def last(self) -> dict[str, Any]:
        return self.snapshots[-1]


class FailingSink(RecordingSink):
    def deliver(self, snapshot: dict[str, Any]) -> None:
        raise ConnectionResetError("observer went away")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> TurnScheduler:
    return TurnScheduler(
        cooldown_seconds=COOLDOWN,
        reboot_delay_seconds=REBOOT_DELAY,
        clock=clock,
    )


@pytest.fixture
def client(scheduler: TurnScheduler):
    set_scheduler(scheduler)
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        set_scheduler(None)
