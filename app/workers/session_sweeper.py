"""
Session sweeper — background task that forgets identities that have been idle
for longer than ``session_ttl_seconds`` (24 h by default).

Session records only feed the status / health payloads, so evicting one never
affects the waiting line or the running turn.
"""

import asyncio
import logging
from typing import Callable

from app.config import settings
from app.turns import TurnScheduler

logger = logging.getLogger(__name__)


async def run_session_sweeper(
    get_scheduler: Callable[[], TurnScheduler],
    interval: float | None = None,
) -> None:
    """
    Long-running coroutine: evict stale sessions every *interval* seconds.

    Intended to be launched as a background task from the FastAPI lifespan and
    cancelled on shutdown.
    """
    interval = float(settings.session_sweep_interval if interval is None else interval)
    logger.info("Session sweeper starting (interval=%ds)", int(interval))

    while True:
        try:
            await asyncio.sleep(interval)
            evicted = await get_scheduler().evict_stale_sessions()
            if not evicted:
                logger.debug("Session sweep: nothing to evict")

        except asyncio.CancelledError:
            logger.info("Session sweeper cancelled — shutting down")
            break

        except Exception as exc:
            logger.error("Session sweep failed: %s", exc, exc_info=True)

    logger.info("Session sweeper stopped")
