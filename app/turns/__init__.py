# Turn-scheduling core
from app.turns.device import DeviceIntent, DeviceStatus
from app.turns.errors import (
    AlreadyActive,
    InvalidIdentity,
    MissingIdentity,
    NoActiveTurn,
    NotInLine,
    NotYourTurn,
    TurnError,
    Unauthorized,
)
from app.turns.identity import is_valid_identity
from app.turns.scheduler import TurnScheduler
from app.turns.snapshot import Snapshot

__all__ = [
    "DeviceIntent",
    "DeviceStatus",
    "TurnError",
    "MissingIdentity",
    "InvalidIdentity",
    "AlreadyActive",
    "NotInLine",
    "NoActiveTurn",
    "NotYourTurn",
    "Unauthorized",
    "is_valid_identity",
    "TurnScheduler",
    "Snapshot",
]
