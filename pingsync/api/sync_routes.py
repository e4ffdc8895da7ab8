"""PINGSYNC - Sync Trigger Routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from pingsync.api.deps import get_orchestrator
from pingsync.core.errors import SinkError, SyncAbortedError, UpstreamError
from pingsync.core.logging import get_logger
from pingsync.engine.orchestrator import SyncOrchestrator
from pingsync.models.sync_models import SyncOptions, SyncReport

logger = get_logger("api.sync")

router = APIRouter(tags=["Sync"])


# ── Request / Response Models ──


class SyncRequest(BaseModel):
    """Request body for POST /sync."""

    summary_only: Optional[bool] = None
    """Skip raw per-probe results; defaults to the configured behavior."""

    model_config = {"json_schema_extra": {"examples": [{"summary_only": False}]}}


class SyncResponse(BaseModel):
    status: str = "success"
    report: SyncReport


class CurrentStatusResponse(BaseModel):
    status: str = "success"
    points: int


# ── Endpoints ──


@router.post("/sync", response_model=SyncResponse)
async def trigger_sync(
    request: Optional[SyncRequest] = None,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Run one incremental sync pass and return its report."""
    if orchestrator.running:
        raise HTTPException(status_code=409, detail="A sync pass is already running")

    summary_only = orchestrator.config.sync_summary_only
    if request is not None and request.summary_only is not None:
        summary_only = request.summary_only

    try:
        report = await orchestrator.run_sync(options=SyncOptions(summary_only=summary_only))
    except SyncAbortedError as e:
        logger.error(f"Sync aborted: {e}")
        detail = {"message": str(e)}
        if e.report is not None:
            detail["report"] = e.report.model_dump(mode="json")
        raise HTTPException(status_code=502, detail=detail)
    return SyncResponse(report=report)


@router.post("/status/current", response_model=CurrentStatusResponse)
async def push_current_status(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Send one status sample per live check and TM."""
    try:
        points = await orchestrator.update_current_status()
    except (UpstreamError, SinkError) as e:
        logger.error(f"Current status update failed: {e}")
        raise HTTPException(status_code=502, detail=f"Current status update failed: {e}")
    return CurrentStatusResponse(points=len(points))
