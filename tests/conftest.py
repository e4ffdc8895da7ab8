"""Shared fixtures: in-memory fakes for Pingdom, Graphite and the manifest."""

from typing import Callable, Dict, List, Optional, Tuple

import pytest

from pingsync.config import Settings
from pingsync.core.category_registry import Category, EntityKind
from pingsync.manifest.base import CheckpointMap, ManifestStore
from pingsync.models.sync_models import Entity, MetricPoint, Probe

NOW = 1_700_000_000


class FakeEndpoints:
    """Stands in for PingdomEndpoints; answers from canned data."""

    def __init__(
        self,
        entities: Optional[List[Entity]] = None,
        probes: Optional[List[Probe]] = None,
        results: Optional[Dict[Tuple[str, Category], object]] = None,
    ):
        self.entities = entities or []
        self.probes = probes or []
        # (entity_id, category) -> list of raw results, or an exception to raise
        self.results = results or {}
        self.fetch_calls: List[Tuple[Category, str, int]] = []
        self.listing_calls = 0
        self.listing_error: Optional[Exception] = None
        self.closed = False

    async def get_checks(self) -> List[Entity]:
        self.listing_calls += 1
        if self.listing_error:
            raise self.listing_error
        return [e for e in self.entities if e.kind is EntityKind.CHECK]

    async def get_tms(self) -> List[Entity]:
        if self.listing_error:
            raise self.listing_error
        return [e for e in self.entities if e.kind is EntityKind.TM]

    async def get_probes(self) -> List[Probe]:
        return list(self.probes)

    async def fetch(self, category: Category, entity: Entity, since: int) -> List[dict]:
        self.fetch_calls.append((category, entity.id, since))
        answer = self.results.get((entity.id, category), [])
        if isinstance(answer, Exception):
            raise answer
        return [dict(r) for r in answer]

    def since_for(self, entity_id: str, category: Category) -> Optional[int]:
        for called_category, called_id, since in self.fetch_calls:
            if called_id == entity_id and called_category is category:
                return since
        return None

    async def close(self) -> None:
        self.closed = True


class FakeSink:
    """Stands in for GraphiteClient; records every published batch."""

    def __init__(self, fail_when: Optional[Callable[[List[MetricPoint]], Optional[Exception]]] = None):
        self.batches: List[List[MetricPoint]] = []
        self.fail_when = fail_when
        self.closed = False

    async def publish(self, points) -> int:
        points = list(points)
        if self.fail_when is not None:
            error = self.fail_when(points)
            if error is not None:
                raise error
        self.batches.append(points)
        return len(points)

    @property
    def points(self) -> List[MetricPoint]:
        return [p for batch in self.batches for p in batch]

    async def close(self) -> None:
        self.closed = True


class InMemoryManifest(ManifestStore):
    def __init__(
        self,
        entities: Optional[List[Entity]] = None,
        probes: Optional[List[Probe]] = None,
        checkpoints: Optional[CheckpointMap] = None,
    ):
        self.entities = list(entities or [])
        self.probes = list(probes or [])
        self.checkpoints: CheckpointMap = dict(checkpoints or {})
        self.checkpoint_saves = 0
        self.catalog_saves = 0

    def is_initialized(self) -> bool:
        return bool(self.entities or self.probes)

    def load_entities(self) -> List[Entity]:
        return list(self.entities)

    def load_probes(self) -> List[Probe]:
        return list(self.probes)

    def load_checkpoints(self) -> CheckpointMap:
        return {k: v for k, v in self.checkpoints.items() if not v.is_empty}

    def save_checkpoints(self, checkpoints: CheckpointMap) -> None:
        self.checkpoint_saves += 1
        self.checkpoints.update(checkpoints)

    def save_catalog(self, entities: List[Entity], probes: List[Probe]) -> None:
        self.catalog_saves += 1
        keep = {(e.kind, e.id) for e in entities}
        self.entities = list(entities)
        self.probes = list(probes)
        self.checkpoints = {
            k: v for k, v in self.checkpoints.items() if (k.kind, k.entity_id) in keep
        }


# ── Fixtures ──


@pytest.fixture
def config() -> Settings:
    return Settings(
        _env_file=None,
        pingdom_api_token="token",
        pingdom_app_key="app-key",
        pingdom_username="ops@example.com",
        pingdom_password="secret",
        pingdom_account_email="owner@example.com",
        graphite_hostname="graphite.example.com",
        graphite_auth="12345:api-key",
        manifest_path="unused.json",
        database_url="",
        pingdom_concurrency=3,
    )


@pytest.fixture
def check() -> Entity:
    return Entity(id=101, kind=EntityKind.CHECK, name="API Gateway (EU)", region="EU-West")


@pytest.fixture
def tm() -> Entity:
    return Entity(id="7", kind=EntityKind.TM, name="Checkout Flow", kitchen="Paris")


@pytest.fixture
def probes() -> List[Probe]:
    return [Probe(id=1, name="Frankfurt", countryiso="DE", city="Frankfurt", region="EU")]
