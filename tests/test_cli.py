import pytest
from click.testing import CliRunner

from pingsync import cli
from pingsync.config import Settings
from pingsync.core.category_registry import Category, EntityKind
from pingsync.core.errors import SinkFatalError
from pingsync.engine.orchestrator import SyncOrchestrator
from pingsync.models.sync_models import Checkpoint, CheckpointKey

from conftest import NOW, FakeEndpoints, FakeSink, InMemoryManifest


@pytest.fixture
def orchestrator(config, check, tm, probes):
    endpoints = FakeEndpoints(
        entities=[check.model_copy(update={"status": "up"}), tm],
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
def runner(monkeypatch, config, orchestrator):
    monkeypatch.setattr(cli, "load_settings", lambda config_file=None: config)
    monkeypatch.setattr(cli, "build_orchestrator", lambda cfg: orchestrator)
    return CliRunner()


def test_list(runner):
    result = runner.invoke(cli.main, ["list"])
    assert result.exit_code == 0, result.output
    assert "API Gateway (EU)" in result.output
    assert "Checkout Flow" in result.output


def test_probes(runner):
    result = runner.invoke(cli.main, ["probes"])
    assert result.exit_code == 0, result.output
    assert "DE Frankfurt" in result.output


def test_advice(runner):
    result = runner.invoke(cli.main, ["advice", "--interval", "5"])
    assert result.exit_code == 0, result.output
    assert "7 calls per run" in result.output
    assert "fits" in result.output


def test_init(runner, orchestrator):
    result = runner.invoke(cli.main, ["init"])
    assert result.exit_code == 0, result.output
    assert "1 checks, 1 TMs, 1 probes" in result.output
    assert orchestrator.manifest.catalog_saves == 1


def test_update(runner, orchestrator):
    result = runner.invoke(cli.main, ["update", "--summary"])
    assert result.exit_code == 0, result.output
    assert "Checkpoints committed" in result.output
    key = CheckpointKey(EntityKind.CHECK, "101", Category.OUTAGE)
    assert orchestrator.manifest.checkpoints[key].latest_seen == NOW - 100
    assert all(c is not Category.RESULTS for c, _, _ in orchestrator.endpoints.fetch_calls)
    assert orchestrator.endpoints.closed


def test_update_abort_exits_1(runner, orchestrator):
    orchestrator.sink.fail_when = lambda points: SinkFatalError("Graphite refused the push: 401", 401)
    result = runner.invoke(cli.main, ["update"])
    assert result.exit_code == 1
    assert "Sync aborted" in result.output


def test_update_current_status(runner):
    result = runner.invoke(cli.main, ["update-current-status"])
    assert result.exit_code == 0, result.output
    assert "2 status metrics sent" in result.output


def test_missing_credentials_exit_1(monkeypatch):
    monkeypatch.setattr(cli, "load_settings", lambda config_file=None: Settings(_env_file=None))
    result = CliRunner().invoke(cli.main, ["update"])
    assert result.exit_code == 1
    assert "pingdom_api_token" in result.output
