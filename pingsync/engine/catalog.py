"""PINGSYNC - Catalog Service.

Discovers checks, transaction monitors and probes, stores them in the
manifest, and estimates how a polling interval fits the API quota.
"""

import asyncio
from typing import List, Optional

from pingsync.config import Settings, settings as default_settings
from pingsync.connectors.pingdom.endpoints import PingdomEndpoints
from pingsync.core.category_registry import EntityKind, categories_for
from pingsync.core.logging import get_logger
from pingsync.manifest.base import ManifestStore
from pingsync.models.sync_models import Catalog, Entity, Probe, QuotaAdvice

logger = get_logger("engine.catalog")

DEFAULT_INTERVAL_MINUTES = 5
DAILY_API_LIMIT = 48000
# Listing calls made by every pass: checks and TMs
LISTING_CALLS_PER_RUN = 2


class CatalogService:
    def __init__(
        self,
        endpoints: PingdomEndpoints,
        manifest: ManifestStore,
        config: Optional[Settings] = None,
    ):
        self.endpoints = endpoints
        self.manifest = manifest
        self.config = config or default_settings

    async def refresh_catalog(self) -> Catalog:
        """List everything upstream and replace the stored catalog.

        Checkpoints of entities that still exist are kept.
        """
        checks, tms, probes = await asyncio.gather(
            self.endpoints.get_checks(),
            self.endpoints.get_tms(),
            self.endpoints.get_probes(),
        )
        catalog = Catalog(entities=[*checks, *tms], probes=probes)
        self.manifest.save_catalog(catalog.entities, catalog.probes)
        logger.info(
            f"✅ Catalog refreshed: {len(checks)} checks, {len(tms)} TMs, {len(probes)} probes"
        )
        return catalog

    async def list_entities(self) -> List[Entity]:
        """Live listing of checks and TMs, including their current status."""
        checks, tms = await asyncio.gather(self.endpoints.get_checks(), self.endpoints.get_tms())
        return [*checks, *tms]

    async def list_probes(self) -> List[Probe]:
        return await self.endpoints.get_probes()

    def quota_advice(
        self,
        interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
        daily_limit: int = DAILY_API_LIMIT,
        entities: Optional[List[Entity]] = None,
        summary_only: Optional[bool] = None,
    ) -> QuotaAdvice:
        """Estimate daily API usage for a polling interval.

        Uses the stored catalog unless ``entities`` is given.
        """
        if interval_minutes < 1:
            raise ValueError(f"interval_minutes must be >= 1, got {interval_minutes}")
        if entities is None:
            entities = self.manifest.load_entities()
        if summary_only is None:
            summary_only = self.config.sync_summary_only

        calls_per_run = LISTING_CALLS_PER_RUN + sum(
            len(categories_for(entity.kind, summary_only)) for entity in entities
        )
        runs_per_day = (24 * 60) // interval_minutes
        advice = QuotaAdvice(
            check_count=sum(1 for e in entities if e.kind is EntityKind.CHECK),
            tm_count=sum(1 for e in entities if e.kind is EntityKind.TM),
            calls_per_run=calls_per_run,
            interval_minutes=interval_minutes,
            daily_calls=calls_per_run * runs_per_day,
            daily_limit=daily_limit,
        )
        logger.info(
            f"{advice.calls_per_run} calls per run every {interval_minutes} min → "
            f"{advice.daily_calls}/{daily_limit} calls per day"
        )
        return advice
