"""
Shared FastAPI dependencies.
"""

import logging

from fastapi import HTTPException

from app.config import settings
from app.turns import TurnError, TurnScheduler

logger = logging.getLogger(__name__)

_scheduler: TurnScheduler | None = None


def build_scheduler() -> TurnScheduler:
    """Create a scheduler configured from ``settings``."""
    return TurnScheduler(
        turn_duration_seconds=settings.turn_duration_seconds,
        cooldown_seconds=settings.turn_cooldown_seconds,
        reboot_delay_seconds=settings.reboot_delay_seconds,
        session_ttl_seconds=settings.session_ttl_seconds,
        snapshot_preview_size=settings.snapshot_preview_size,
        status_preview_size=settings.status_preview_size,
        admin_secret=settings.admin_secret,
    )


def get_scheduler() -> TurnScheduler:
    """
    FastAPI dependency returning the process-wide scheduler, creating it on
    first use.
    """
    global _scheduler
    if _scheduler is None:
        _scheduler = build_scheduler()
    return _scheduler


def set_scheduler(scheduler: TurnScheduler | None) -> None:
    """Replace the process-wide scheduler (``None`` forces a rebuild)."""
    global _scheduler
    _scheduler = scheduler


def http_error(exc: TurnError) -> HTTPException:
    """Translate a scheduler error into the API's error envelope."""
    logger.info("Request rejected: %s (%s)", exc.kind, exc.message)
    return HTTPException(
        status_code=exc.status_code,
        detail={"status": "error", "error": exc.kind, "message": exc.message},
    )
