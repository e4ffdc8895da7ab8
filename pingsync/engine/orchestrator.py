"""PINGSYNC - Sync Orchestrator.

One sync pass, in order:
  load checkpoints → resolve windows → fetch (bounded) → normalize →
  deliver → commit → flush

A checkpoint only moves after its batch reached Graphite, so a crash at any
point re-delivers data instead of losing it.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pingsync.config import Settings, settings as default_settings
from pingsync.connectors.graphite.client import GraphiteClient
from pingsync.connectors.pingdom.endpoints import PingdomEndpoints
from pingsync.core.category_registry import Category, categories_for, get_category
from pingsync.core.errors import (
    CheckpointRegressionError,
    PingsyncError,
    SinkError,
    SinkFatalError,
    SyncAbortedError,
)
from pingsync.core.logging import get_logger
from pingsync.engine.catalog import CatalogService
from pingsync.engine.checkpoint_store import CheckpointStore
from pingsync.engine.fetch_scheduler import run_all
from pingsync.engine.normalizer import build_points, current_status_points, normalize
from pingsync.engine.window_resolver import now_ts, resolve_window
from pingsync.manifest.base import ManifestStore
from pingsync.manifest.factory import build_manifest_store
from pingsync.models.sync_models import (
    CheckpointKey,
    Entity,
    FetchWindow,
    MetricPoint,
    Probe,
    SyncBatch,
    SyncFailure,
    SyncOptions,
    SyncReport,
)

logger = get_logger("engine.orchestrator")


@dataclass(frozen=True)
class WorkItem:
    """One entity×category to fetch in this pass."""

    entity: Entity
    category: Category
    window: FetchWindow

    @property
    def key(self) -> CheckpointKey:
        return CheckpointKey(self.entity.kind, self.entity.id, self.category)


class SyncOrchestrator:
    """Runs incremental Pingdom → Graphite sync passes."""

    def __init__(
        self,
        endpoints: Optional[PingdomEndpoints] = None,
        sink: Optional[GraphiteClient] = None,
        manifest: Optional[ManifestStore] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.endpoints = endpoints or PingdomEndpoints(config=self.config)
        self.sink = sink or GraphiteClient(self.config)
        self.manifest = manifest or build_manifest_store(self.config)
        self.catalog = CatalogService(self.endpoints, self.manifest, self.config)
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def close(self) -> None:
        await self.endpoints.close()
        await self.sink.close()

    # ── Full sync ──

    async def run_sync(
        self,
        entities: Optional[List[Entity]] = None,
        options: Optional[SyncOptions] = None,
    ) -> SyncReport:
        """Run one pass. Overlapping calls on the same orchestrator queue up.

        Raises:
            SyncAbortedError: Graphite became unusable or the first catalog
                refresh failed. ``report`` carries what was committed before.
        """
        options = options or SyncOptions(summary_only=self.config.sync_summary_only)
        async with self._lock:
            return await self._run(entities, options)

    async def _run(self, entities: Optional[List[Entity]], options: SyncOptions) -> SyncReport:
        report = SyncReport()
        now = options.now if options.now is not None else now_ts()

        # ── LOAD_CHECKPOINTS ──
        store = CheckpointStore.load(self.manifest)
        if store.is_empty() and not self.manifest.is_initialized():
            logger.info("Manifest is empty, refreshing the catalog first")
            try:
                await self.catalog.refresh_catalog()
            except PingsyncError as e:
                report.aborted = True
                report.abort_reason = f"catalog refresh failed: {e}"
                report.finished_at = datetime.now(timezone.utc)
                raise SyncAbortedError(f"Sync aborted, {report.abort_reason}", report) from e

        if entities is None:
            entities = self.manifest.load_entities()
        probes: Dict[str, Probe] = {p.id: p for p in self.manifest.load_probes()}

        items = self._plan(entities, store, now, options, report)
        logger.info(
            f"🔄 Sync pass: {len(entities)} entities, {len(items)} fetches, {len(report.skipped)} skipped"
        )

        # ── FETCH → NORMALIZE ──
        async def _fetch(item: WorkItem) -> SyncBatch:
            raw = await self.endpoints.fetch(item.category, item.entity, item.window.from_ts)
            return normalize(raw, item.category, store.get(item.key))

        outcomes = await run_all(
            items,
            _fetch,
            concurrency_limit=self.config.pingdom_concurrency,
            on_progress=options.on_progress,
        )

        # ── DELIVER → COMMIT ──
        try:
            for outcome in outcomes:
                item = outcome.item
                if not outcome.ok:
                    self._record_failure(report, item, "fetch", outcome.error)
                    continue

                batch: SyncBatch = outcome.value
                if not batch.results:
                    continue

                try:
                    points = build_points(item.entity, item.category, batch, probes)
                except Exception as e:
                    self._record_failure(report, item, "normalize", e)
                    continue

                try:
                    report.delivered_count += await self.sink.publish(points)
                except SinkFatalError as e:
                    self._record_failure(report, item, "deliver", e)
                    report.aborted = True
                    report.abort_reason = str(e)
                    raise SyncAbortedError(f"Sync aborted, Graphite unusable: {e}", report) from e
                except SinkError as e:
                    self._record_failure(report, item, "deliver", e)
                    continue

                try:
                    store.commit(item.key, batch.checkpoint)
                except CheckpointRegressionError as e:
                    self._record_failure(report, item, "commit", e)
                    continue
                report.committed_count += 1
        finally:
            # Whatever was committed before an abort is still durable
            store.flush(self.manifest)
            report.finished_at = datetime.now(timezone.utc)

        logger.info(
            f"✅ Sync done: {report.delivered_count} points delivered, "
            f"{report.committed_count} checkpoints committed, "
            f"{len(report.failed_entity_ids)} entities failed",
            extra={"points": report.delivered_count},
        )
        return report

    def _plan(
        self,
        entities: List[Entity],
        store: CheckpointStore,
        now: int,
        options: SyncOptions,
        report: SyncReport,
    ) -> List[WorkItem]:
        items: List[WorkItem] = []
        for entity in entities:
            for category in categories_for(entity.kind, options.summary_only):
                key = CheckpointKey(entity.kind, entity.id, category)
                window = resolve_window(
                    store.get(key),
                    get_category(category),
                    now,
                    max_horizon=self.config.max_horizon_seconds,
                )
                if window.skipped:
                    report.skipped.append(f"{key}: {window.reason}")
                    continue
                items.append(WorkItem(entity=entity, category=category, window=window))
        return items

    def _record_failure(self, report: SyncReport, item: WorkItem, stage: str, error: Exception) -> None:
        logger.error(
            f"❌ {item.entity.kind.value} {item.entity.name!r} ({item.entity.id}) "
            f"{item.category.value} {stage} failed: {error}",
            extra={
                "entity_id": item.entity.id,
                "entity_kind": item.entity.kind.value,
                "category": item.category.value,
                "status_code": getattr(error, "status_code", None),
            },
        )
        report.failures.append(
            SyncFailure(
                entity_id=item.entity.id,
                kind=item.entity.kind,
                category=item.category,
                stage=stage,
                error=str(error),
            )
        )

    # ── Current status ──

    async def update_current_status(self) -> List[MetricPoint]:
        """Publish one status sample per live entity. No checkpoint involved."""
        entities = await self.catalog.list_entities()
        points = current_status_points(entities, now_ts())
        await self.sink.publish(points)
        logger.info(f"📡 Current status of {len(entities)} entities sent", extra={"points": len(points)})
        return points
