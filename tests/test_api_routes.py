import pytest
from fastapi.testclient import TestClient

from pingsync.api.deps import get_orchestrator
from pingsync.core.category_registry import Category
from pingsync.core.errors import SinkFatalError, UpstreamError
from pingsync.engine.orchestrator import SyncOrchestrator
from pingsync.main import app
from pingsync.models.sync_models import Checkpoint, CheckpointKey

from conftest import NOW, FakeEndpoints, FakeSink, InMemoryManifest


@pytest.fixture
def orchestrator(config, check, tm, probes):
    live_check = check.model_copy(update={"status": "up"})
    endpoints = FakeEndpoints(
        entities=[live_check, tm],
        probes=probes,
        results={(check.id, Category.OUTAGE): [{"timefrom": NOW - 100, "timeto": NOW - 50, "status": "up"}]},
    )
    manifest = InMemoryManifest(
        entities=[check, tm],
        probes=probes,
        checkpoints={CheckpointKey(check.kind, check.id, Category.OUTAGE): Checkpoint(latest_seen=NOW - 1000)},
    )
    return SyncOrchestrator(endpoints=endpoints, sink=FakeSink(), manifest=manifest, config=config)


@pytest.fixture
def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["service"] == "pingsync"


def test_list_entities(client):
    response = client.get("/pingdom/entities")
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    assert body["entities"][0] == {
        "id": "101",
        "kind": "check",
        "name": "API Gateway (EU)",
        "hostname": None,
        "group": "EU-West",
        "status": "up",
    }


def test_list_probes(client):
    body = client.get("/pingdom/probes").json()
    assert body["count"] == 1
    assert body["probes"][0]["city"] == "Frankfurt"


def test_advice(client):
    response = client.get("/pingdom/advice", params={"interval_minutes": 1, "daily_limit": 1000})
    assert response.status_code == 200
    advice = response.json()["advice"]
    # 2 listings + 3 check categories + 2 TM categories
    assert advice["calls_per_run"] == 7
    assert advice["daily_calls"] == 7 * 1440
    assert response.json()["fits"] is False


def test_advice_rejects_zero_interval(client):
    assert client.get("/pingdom/advice", params={"interval_minutes": 0}).status_code == 422


def test_init(client, orchestrator):
    response = client.post("/pingdom/init")
    assert response.status_code == 200
    assert response.json() == {"status": "success", "checks": 1, "tms": 1, "probes": 1}
    assert orchestrator.manifest.catalog_saves == 1


def test_init_upstream_failure(client, orchestrator):
    orchestrator.endpoints.listing_error = UpstreamError("GET checks failed: Forbidden", 403)
    assert client.post("/pingdom/init").status_code == 502


def test_sync_returns_report(client, orchestrator):
    response = client.post("/sync", json={"summary_only": True})
    assert response.status_code == 200
    report = response.json()["report"]
    assert report["committed_count"] == 1
    assert report["failed_entity_ids"] == []
    assert all(category is not Category.RESULTS for category, _, _ in orchestrator.endpoints.fetch_calls)


def test_sync_without_body_uses_configured_mode(client, orchestrator):
    response = client.post("/sync")
    assert response.status_code == 200
    assert any(category is Category.RESULTS for category, _, _ in orchestrator.endpoints.fetch_calls)


def test_sync_abort_is_502_with_report(client, orchestrator):
    orchestrator.sink.fail_when = lambda points: SinkFatalError("Graphite refused the push: 403 Forbidden", 403)
    response = client.post("/sync", json={})
    assert response.status_code == 502
    detail = response.json()["detail"]
    assert detail["report"]["aborted"] is True


def test_current_status(client, orchestrator):
    response = client.post("/status/current")
    assert response.status_code == 200
    assert response.json()["points"] == 2
    assert orchestrator.sink.points[0].path == "checks.api_gateway_eu.status"


def test_unconfigured_engine_answers_503():
    app.dependency_overrides.clear()
    app.state.orchestrator = None
    assert TestClient(app).post("/sync").status_code == 503
