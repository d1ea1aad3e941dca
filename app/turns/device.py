"""
Device proxy: the three abstract robot intents and their authorization rule.

The robot itself is never contacted here; an intent only changes the reported
``DeviceStatus``.  Whoever holds the active turn may act, and a request that
carries no identity at all is accepted as well.
"""

from enum import Enum

from app.turns.errors import NoActiveTurn, NotYourTurn


class DeviceStatus(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    STOPPED = "stopped"
    REBOOTING = "rebooting"


class DeviceIntent(str, Enum):
    START = "start"
    STOP = "stop"
    REBOOT = "reboot"

    @property
    def target_status(self) -> DeviceStatus:
        return _INTENT_STATUS[self]

    @property
    def message(self) -> str:
        return _INTENT_MESSAGES[self]


_INTENT_STATUS: dict[DeviceIntent, DeviceStatus] = {
    DeviceIntent.START: DeviceStatus.ACTIVE,
    DeviceIntent.STOP: DeviceStatus.STOPPED,
    DeviceIntent.REBOOT: DeviceStatus.REBOOTING,
}

_INTENT_MESSAGES: dict[DeviceIntent, str] = {
    DeviceIntent.START: "Robot started",
    DeviceIntent.STOP: "Robot stopped",
    DeviceIntent.REBOOT: "Robot rebooting",
}


def authorize_intent(active_identity: str | None, caller: str | None) -> str:
    """
    Return the identity that owns the device, or raise.

    - ``NoActiveTurn`` when nobody holds a turn.
    - ``NotYourTurn`` when *caller* is given and is not the turn holder.
    """
    if active_identity is None:
        raise NoActiveTurn()
    if caller and caller != active_identity:
        raise NotYourTurn()
    return active_identity
