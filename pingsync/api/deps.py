"""PINGSYNC - API Dependencies."""

from fastapi import HTTPException, Request

from pingsync.engine.orchestrator import SyncOrchestrator


def get_orchestrator(request: Request) -> SyncOrchestrator:
    """The orchestrator created by the application lifespan."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Sync engine is not configured")
    return orchestrator
