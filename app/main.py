"""
Robot Queue — FastAPI application entry point.

Run with:
    python -m app.main            # binds API_HOST:API_PORT (default 0.0.0.0:3000)
or:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 3000
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.deps import get_scheduler
from app.api.routes import admin as admin_router
from app.api.routes import queue as queue_router
from app.api.routes import robot as robot_router
from app.api.routes import status as status_router
from app.api.routes import websocket as websocket_router
from app.config import settings
from app.workers.session_sweeper import run_session_sweeper
from app.workers.turn_expiry import run_turn_expiry_sweep

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the maintenance sweeps on startup; cancel them on shutdown."""
    expiry_task = asyncio.create_task(
        run_turn_expiry_sweep(get_scheduler), name="turn_expiry_sweep"
    )
    sweeper_task = asyncio.create_task(
        run_session_sweeper(get_scheduler), name="session_sweeper"
    )
    logger.info("Background workers started")
    try:
        yield
    finally:
        expiry_task.cancel()
        sweeper_task.cancel()
        try:
            await expiry_task
        except asyncio.CancelledError:
            pass
        try:
            await sweeper_task
        except asyncio.CancelledError:
            pass
        await get_scheduler().close()
        logger.info("Background workers stopped")


app = FastAPI(
    title="Robot Queue API",
    description="First-come-first-served, time-boxed access to a shared robot.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(status_router.router, tags=["health"])
app.include_router(queue_router.router, tags=["queue"])
app.include_router(robot_router.router, tags=["robot"])
app.include_router(admin_router.router, tags=["admin"])
app.include_router(websocket_router.router, tags=["websocket"])


def run() -> None:
    """Serve the app on the configured host and port."""
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
