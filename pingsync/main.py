"""PINGSYNC - FastAPI Application Entry Point.

Pingdom → Graphite incremental sync service.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pingsync.api.pingdom_routes import router as pingdom_router
from pingsync.api.sync_routes import router as sync_router
from pingsync.config import settings
from pingsync.core.errors import ConfigError
from pingsync.core.logging import get_logger
from pingsync.engine.orchestrator import SyncOrchestrator
from pingsync.scheduler.jobs import start_scheduler, stop_scheduler

logger = get_logger("main")

VERSION = "1.0.0"

IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 PINGSYNC starting up...")
    logger.info(f"🌍 Environment: {'SERVERLESS' if IS_SERVERLESS else 'LOCAL'}")
    orchestrator = None
    try:
        settings.validate_for_sync()
        orchestrator = SyncOrchestrator(config=settings)
    except ConfigError as e:
        logger.error(f"❌ Sync engine NOT configured, endpoints will answer 503: {e}")
    app.state.orchestrator = orchestrator

    if orchestrator is not None and not IS_SERVERLESS:
        start_scheduler(orchestrator, settings)
    yield
    if not IS_SERVERLESS:
        stop_scheduler()
    if orchestrator is not None:
        await orchestrator.close()
    logger.info("PINGSYNC shut down")


app = FastAPI(
    title="PINGSYNC",
    description="Incremental Pingdom → Graphite sync: checks, transaction monitors, outages and performance.",
    version=VERSION,
    lifespan=lifespan,
)

# Routers
app.include_router(pingdom_router)
app.include_router(sync_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    orchestrator = getattr(app.state, "orchestrator", None)
    return {
        "status": "healthy",
        "service": "pingsync",
        "version": VERSION,
        "configured": orchestrator is not None,
        "sync_running": bool(orchestrator and orchestrator.running),
    }
