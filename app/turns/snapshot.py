"""
Point-in-time summary of the turn state, as pushed to observers and returned by
``GET /api/queue/status``.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.turns.device import DeviceStatus


class CamelModel(BaseModel):
    """Base model whose JSON keys are camelCase (``queue_count`` -> ``queueCount``)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Snapshot(CamelModel):
    queue_count: int
    current_turn: str | None
    robot_status: DeviceStatus
    turn_start_time: datetime | None
    time_remaining: int | None
    queue: list[str]
    timestamp: datetime

    def payload(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")
