"""PINGSYNC - Pingdom Catalog Routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from pingsync.api.deps import get_orchestrator
from pingsync.core.errors import UpstreamError
from pingsync.core.logging import get_logger
from pingsync.engine.catalog import DAILY_API_LIMIT, DEFAULT_INTERVAL_MINUTES
from pingsync.engine.orchestrator import SyncOrchestrator
from pingsync.models.sync_models import Probe, QuotaAdvice

logger = get_logger("api.pingdom")

router = APIRouter(prefix="/pingdom", tags=["Pingdom"])


# ── Response Models ──


class EntityView(BaseModel):
    """One live check or TM."""

    id: str
    kind: str
    name: str
    hostname: Optional[str] = None
    group: Optional[str] = None
    status: Optional[str] = None


class EntitiesResponse(BaseModel):
    status: str = "success"
    count: int
    entities: List[EntityView]


class ProbesResponse(BaseModel):
    status: str = "success"
    count: int
    probes: List[Probe]


class AdviceResponse(BaseModel):
    status: str = "success"
    advice: QuotaAdvice
    fits: bool


class InitResponse(BaseModel):
    """Response for POST /pingdom/init."""

    status: str = "success"
    checks: int
    tms: int
    probes: int


# ── Endpoints ──


@router.get("/entities", response_model=EntitiesResponse)
async def list_entities(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Live checks and transaction monitors with their current status."""
    try:
        entities = await orchestrator.catalog.list_entities()
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=f"Pingdom listing failed: {e}")
    views = [
        EntityView(
            id=e.id,
            kind=e.kind.value,
            name=e.name,
            hostname=e.hostname,
            group=e.group,
            status=e.status,
        )
        for e in entities
    ]
    return EntitiesResponse(count=len(views), entities=views)


@router.get("/probes", response_model=ProbesResponse)
async def list_probes(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Pingdom probe servers."""
    try:
        probes = await orchestrator.catalog.list_probes()
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=f"Pingdom listing failed: {e}")
    return ProbesResponse(count=len(probes), probes=probes)


@router.get("/advice", response_model=AdviceResponse)
async def quota_advice(
    interval_minutes: int = Query(DEFAULT_INTERVAL_MINUTES, ge=1),
    daily_limit: int = Query(DAILY_API_LIMIT, ge=1),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Estimate the daily API usage of the stored catalog at a polling interval."""
    advice = orchestrator.catalog.quota_advice(interval_minutes, daily_limit)
    return AdviceResponse(advice=advice, fits=advice.fits)


@router.post("/init", response_model=InitResponse)
async def init_catalog(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Refresh the stored catalog from Pingdom. Surviving checkpoints are kept."""
    try:
        catalog = await orchestrator.catalog.refresh_catalog()
    except UpstreamError as e:
        logger.error(f"Catalog refresh failed: {e}")
        raise HTTPException(status_code=502, detail=f"Catalog refresh failed: {e}")
    return InitResponse(checks=len(catalog.checks), tms=len(catalog.tms), probes=len(catalog.probes))
