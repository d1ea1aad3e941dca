"""
Turn-expiry sweep — background task that ends the running turn once its time
budget is used up.

Design
------
- Every ``expiry_check_interval`` seconds the sweep asks the scheduler to expire
  the current turn.  The check and the transition happen under the scheduler
  lock, so a turn that was already ended by a leave or a reboot is left alone.
- A turn therefore overruns its budget by at most one interval.
- Any error in a tick is logged and the next tick runs as usual.
"""

import asyncio
import logging
from typing import Callable

from app.config import settings
from app.turns import TurnScheduler

logger = logging.getLogger(__name__)


async def run_turn_expiry_sweep(
    get_scheduler: Callable[[], TurnScheduler],
    interval: float | None = None,
) -> None:
    """
    Long-running coroutine: check for an expired turn every *interval* seconds.

    Intended to be launched as a background task from the FastAPI lifespan and
    cancelled on shutdown.
    """
    interval = float(settings.expiry_check_interval if interval is None else interval)
    logger.info("Turn expiry sweep starting (interval=%.1fs)", interval)

    while True:
        try:
            await asyncio.sleep(interval)
            if await get_scheduler().expire_turn():
                logger.debug("Expiry sweep ended a turn")

        except asyncio.CancelledError:
            logger.info("Turn expiry sweep cancelled — shutting down")
            break

        except Exception as exc:
            logger.error("Expiry sweep tick failed: %s", exc, exc_info=True)

    logger.info("Turn expiry sweep stopped")
